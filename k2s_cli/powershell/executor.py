# /*
# Copyright 2026 The K2s Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""PowerShell script execution with structured results."""

from __future__ import annotations

import os
import queue
import signal
import subprocess
import threading
import time
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import IO, Any, Callable, TypeVar

from pydantic import TypeAdapter, ValidationError

from k2s_cli import logger
from k2s_cli.constants import (
    EXEC_SCRIPT_SUB_PATH,
    KILL_GRACE_PERIOD_SECONDS,
    PROCESS_POLL_INTERVAL_SECONDS,
    PS5_EXECUTABLE,
    PS7_EXECUTABLE,
    PS7_INSTALL_HINT_URL,
)
from k2s_cli.errors import (
    ExecutionCancelledError,
    MessageTypeMismatchError,
    PowerShellError,
    ProcessExitError,
    ProcessStartError,
    ResultUnmarshalError,
    UnexpectedMessageCountError,
)
from k2s_cli.powershell.decode import StructuredMessage, decode_message, is_encoded_message
from k2s_cli.powershell.output import OutputWriter
from k2s_cli.utils import require_command, windows_join

T = TypeVar("T")
PopenFunc = Callable[..., Any]
KillFunc = Callable[[Any], None]


class PowerShellVersion(str, Enum):
    V5 = "5"
    V7 = "7"


# ============================================================================
# Command construction
# ============================================================================

def build_cmd_string(script: str, message_type: str, *params: str) -> str:
    """Append the structured-output switches and extra parameters to a script call."""
    parts = [f"{script} -EncodeStructuredOutput -MessageType {message_type}"]
    parts.extend(params)
    return " ".join(parts)


def wrap_with_exec_script(install_dir: Path | str, cmd: str) -> str:
    """Route a command through the installation's ``Invoke-ExecScript.ps1`` wrapper."""
    wrapper = windows_join(install_dir, EXEC_SCRIPT_SUB_PATH)
    return f"&'{wrapper}' -Script \"{cmd}\""


def ps_command_args(version: PowerShellVersion, cmd: str) -> list[str]:
    """Build the interpreter argv for ``cmd``.

    Raises:
        ProcessStartError: If PowerShell 7 is requested but ``pwsh`` is missing.
    """
    if version == PowerShellVersion.V7:
        logger.info("Switching to PowerShell 7 command syntax")
        try:
            require_command(PS7_EXECUTABLE, hint=PS7_INSTALL_HINT_URL)
        except RuntimeError as err:
            raise ProcessStartError(str(err)) from err
        return [PS7_EXECUTABLE, "-Command", cmd]

    logger.info("Using PowerShell 5 command syntax")
    return [PS5_EXECUTABLE, cmd]


# ============================================================================
# Process handling
# ============================================================================

def _process_group_options() -> dict[str, Any]:
    # The script gets its own process group so a kill reaches everything it started.
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def kill_process_tree(process: Any) -> None:
    """Kill ``process`` together with every process it started."""
    if os.name == "nt":
        result = subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(process.pid)],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            logger.debug("taskkill failed with exit code %d: %s", result.returncode, result.stderr.strip())
            process.kill()
        return

    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug("Process group %d already exited", process.pid)


class _Event(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    CLOSED = "closed"


def _read_stream(stream: IO[str], kind: _Event, events: queue.Queue) -> None:
    try:
        for line in stream:
            events.put((kind, line.rstrip("\r\n")))
    except (OSError, ValueError) as err:
        # Raised when the stream is closed under us after a kill.
        logger.debug("Reading %s stopped: %s", kind.value, err)
    finally:
        events.put((_Event.CLOSED, kind))


class ScriptExecutor:
    """Runs one interpreter process and separates progress output from payloads.

    Both pipes are drained by their own reader thread; the calling thread is
    the single consumer of their events. Lines keep their order within a
    stream, but stdout and stderr lines may interleave arbitrarily. Empty
    lines are not forwarded.

    Args:
        writer: Receives the plain stdout and stderr lines.
        popen_func: Process factory, replaceable in tests.
        kill_func: Kills the process tree on cancellation or timeout.
        collect_messages: Decode marker lines into messages; when False every
            stdout line is plain output.
    """

    def __init__(
        self,
        writer: OutputWriter,
        popen_func: PopenFunc = subprocess.Popen,
        kill_func: KillFunc = kill_process_tree,
        collect_messages: bool = True,
    ) -> None:
        self._writer = writer
        self._popen_func = popen_func
        self._kill_func = kill_func
        self._collect_messages = collect_messages

    def execute(
        self,
        args: list[str],
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> list[StructuredMessage]:
        """Run ``args`` to completion and collect the decoded payloads.

        After a cancel or timeout the process tree is killed. Should the pipes
        stay open anyway, the readers are left behind once the grace period
        has passed.

        Args:
            args: Interpreter argv.
            cancel_event: When set, the process is killed.
            timeout: Seconds after which the process is killed.

        Returns:
            Every structured message found on stdout, in arrival order.

        Raises:
            ProcessStartError: If the process could not be started.
            ExecutionCancelledError: If cancelled or timed out.
            ProcessExitError: If the process exited with a non-zero code.
            PowerShellError: For the first marker line that could not be decoded.
        """
        try:
            process = self._popen_func(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                **_process_group_options(),
            )
        except OSError as err:
            raise ProcessStartError(f"command execution could not be started: {err}") from err
        logger.debug("PS command started")

        events: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=_read_stream, args=(process.stdout, _Event.STDOUT, events), daemon=True),
            threading.Thread(target=_read_stream, args=(process.stderr, _Event.STDERR, events), daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + timeout if timeout is not None else None
        abort_reason: str | None = None
        detach_at = 0.0
        messages: list[StructuredMessage] = []
        decode_errors: list[PowerShellError] = []
        open_streams = 2

        while open_streams:
            if abort_reason is None:
                abort_reason = self._abort_reason(cancel_event, deadline, timeout)
                if abort_reason is not None:
                    logger.warning("Killing PS command: %s", abort_reason)
                    self._kill_func(process)
                    detach_at = time.monotonic() + KILL_GRACE_PERIOD_SECONDS
            elif time.monotonic() >= detach_at:
                logger.warning("Output of killed PS command still open after %ss, no longer waiting for it",
                               KILL_GRACE_PERIOD_SECONDS)
                break

            try:
                kind, payload = events.get(timeout=PROCESS_POLL_INTERVAL_SECONDS)
            except queue.Empty:
                continue

            if kind is _Event.CLOSED:
                open_streams -= 1
                logger.debug("Stream closed: %s", payload.value)
            elif not payload:
                continue
            elif kind is _Event.STDERR:
                self._writer.write_err(payload)
            elif not self._collect_messages or not is_encoded_message(payload):
                self._writer.write_std(payload)
            else:
                try:
                    messages.append(decode_message(payload))
                    logger.debug("Message decoded")
                except PowerShellError as err:
                    decode_errors.append(err)

        self._writer.flush()

        if abort_reason is not None:
            try:
                process.wait(timeout=KILL_GRACE_PERIOD_SECONDS)
            except subprocess.TimeoutExpired:
                logger.warning("Killed PS command did not exit within %ss", KILL_GRACE_PERIOD_SECONDS)
            raise ExecutionCancelledError(f"command execution aborted: {abort_reason}")

        logger.debug("Waiting for PS command to finish")
        exit_code = process.wait()
        for reader in readers:
            reader.join()

        if exit_code != 0:
            raise ProcessExitError(
                f"command execution failed, see log output above. Error: exit code {exit_code}", exit_code)
        logger.debug("PS command finished")

        if decode_errors:
            if len(decode_errors) > 1:
                for err in decode_errors[1:]:
                    logger.error("Additional decode error: %s", err)
            raise decode_errors[0]
        return messages

    @staticmethod
    def _abort_reason(
        cancel_event: threading.Event | None,
        deadline: float | None,
        timeout: float | None,
    ) -> str | None:
        if cancel_event is not None and cancel_event.is_set():
            return "cancelled"
        if deadline is not None and time.monotonic() >= deadline:
            return f"timed out after {timeout}s"
        return None


# ============================================================================
# Structured execution
# ============================================================================

def convert_to_result(messages: list[StructuredMessage], message_type: str, result_type: Any) -> Any:
    """Check the payload types and count, then parse the payload as ``result_type``.

    Raises:
        MessageTypeMismatchError: If any message is tagged with another type.
        UnexpectedMessageCountError: Unless exactly one message was received.
        ResultUnmarshalError: If the payload does not fit ``result_type``.
    """
    for message in messages:
        if message.message_type != message_type:
            raise MessageTypeMismatchError(message_type, message.message_type)

    if len(messages) != 1:
        raise UnexpectedMessageCountError(len(messages))

    message = messages[0]
    logger.debug("Unmarshalling message: %s", message.data)
    try:
        result = TypeAdapter(result_type).validate_json(message.data)
    except ValidationError as err:
        raise ResultUnmarshalError(f"could not unmarshal structure: {err}") from err
    logger.info("Message unmarshalled")
    return result


def execute_ps_with_structured_result(
    script: str,
    message_type: str,
    result_type: type[T],
    writer: OutputWriter,
    *params: str,
    version: PowerShellVersion = PowerShellVersion.V5,
    install_dir: Path | str,
    cancel_event: threading.Event | None = None,
    timeout: float | None = None,
    popen_func: PopenFunc = subprocess.Popen,
) -> T:
    """Run a script and return its single structured result.

    Args:
        script: Script call expression, e.g. ``&'C:\\k\\addons\\Export.ps1'``.
        message_type: Type tag the result must carry.
        result_type: Pydantic model (or any type ``TypeAdapter`` accepts) for the payload.
        writer: Receives the plain stdout and stderr lines.
        *params: Extra parameters appended verbatim to the call.
        version: PowerShell version to run the script with.
        install_dir: Installation root holding the exec-script wrapper.
        cancel_event: Kills the process when set.
        timeout: Kills the process after this many seconds.
        popen_func: Process factory, replaceable in tests.

    Returns:
        The parsed payload.
    """
    cmd = build_cmd_string(script, message_type, *params)
    cmd = wrap_with_exec_script(install_dir, cmd)
    logger.debug("PS command created: %s", cmd)

    args = ps_command_args(version, cmd)
    messages = ScriptExecutor(writer, popen_func).execute(args, cancel_event=cancel_event, timeout=timeout)
    return convert_to_result(messages, message_type, result_type)


# ============================================================================
# Streaming execution
# ============================================================================

def execute_ps(
    script: str,
    writer: OutputWriter,
    version: PowerShellVersion = PowerShellVersion.V5,
    *,
    install_dir: Path | str,
    cancel_event: threading.Event | None = None,
    timeout: float | None = None,
    popen_func: PopenFunc = subprocess.Popen,
) -> timedelta:
    """Run a script that reports through its output only and return how long it took.

    Args:
        script: Script call expression including its parameters.
        writer: Receives the plain stdout and stderr lines.
        version: PowerShell version to run the script with.
        install_dir: Installation root holding the exec-script wrapper.
        cancel_event: Kills the process when set.
        timeout: Kills the process after this many seconds.
        popen_func: Process factory, replaceable in tests.

    Returns:
        Elapsed time, rounded to whole seconds.

    Raises:
        ProcessStartError: If the interpreter cannot be started.
        ExecutionCancelledError: If cancelled or timed out.
        ProcessExitError: If the script exited with a non-zero code.
    """
    cmd = wrap_with_exec_script(install_dir, script)
    logger.debug("PS command created: %s", cmd)

    args = ps_command_args(version, cmd)
    start = time.monotonic()
    ScriptExecutor(writer, popen_func, collect_messages=False).execute(
        args, cancel_event=cancel_event, timeout=timeout)
    return timedelta(seconds=round(time.monotonic() - start))
