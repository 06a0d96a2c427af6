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

"""Error taxonomy: command failures, catalog errors and PowerShell protocol errors."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field

from k2s_cli.constants import (
    CODE_FUNCTIONALITY_NOT_AVAILABLE,
    CODE_SYSTEM_IN_CORRUPTED_STATE,
    CODE_SYSTEM_NOT_INSTALLED,
    MSG_SYSTEM_IN_CORRUPTED_STATE,
    MSG_SYSTEM_NOT_INSTALLED,
)


# ============================================================================
# Command failures
# ============================================================================

class Severity(IntEnum):
    """Severity of a command failure reported by a script or by the CLI."""

    WARNING = 3
    ERROR = 4

    def __str__(self) -> str:
        return self.name.lower()


class CmdFailure(Exception):
    """A user-facing command failure.

    Attributes:
        severity: How the failure is rendered (warning or error).
        code: Machine-readable failure code, e.g. ``system-not-installed``.
        message: Human-readable failure message.
        suppress_cli_output: If set, the top-level CLI exits without printing.
    """

    def __init__(
        self,
        severity: Severity,
        code: str,
        message: str,
        suppress_cli_output: bool = False,
    ) -> None:
        super().__init__(f"{code}: {message}")
        self.severity = severity
        self.code = code
        self.message = message
        self.suppress_cli_output = suppress_cli_output

    @classmethod
    def from_payload(cls, payload: CmdFailurePayload) -> CmdFailure:
        try:
            severity = Severity(payload.severity)
        except ValueError:
            severity = Severity.ERROR
        return cls(severity, payload.code, payload.message, payload.suppress_cli_output)

    def to_payload(self) -> CmdFailurePayload:
        return CmdFailurePayload(
            severity=int(self.severity),
            code=self.code,
            message=self.message,
            suppress_cli_output=self.suppress_cli_output,
        )


class CmdFailurePayload(BaseModel):
    """Wire form of a :class:`CmdFailure` as emitted by the scripts."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    severity: int = int(Severity.ERROR)
    code: str = ""
    message: str = ""
    suppress_cli_output: bool = Field(default=False, alias="suppressCliOutput")


class CmdResult(BaseModel):
    """Generic script result: ``{"error": <failure> | null}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    error: CmdFailurePayload | None = None

    @property
    def failure(self) -> CmdFailure | None:
        if self.error is None:
            return None
        return CmdFailure.from_payload(self.error)


def system_not_installed_failure() -> CmdFailure:
    return CmdFailure(Severity.WARNING, CODE_SYSTEM_NOT_INSTALLED, MSG_SYSTEM_NOT_INSTALLED)


def system_in_corrupted_state_failure() -> CmdFailure:
    return CmdFailure(Severity.ERROR, CODE_SYSTEM_IN_CORRUPTED_STATE, MSG_SYSTEM_IN_CORRUPTED_STATE)


def functionality_not_available_failure(setup_name: str) -> CmdFailure:
    return CmdFailure(
        Severity.WARNING,
        CODE_FUNCTIONALITY_NOT_AVAILABLE,
        f"This functionality is not available because '{setup_name}' setup is deprecated.",
    )


# ============================================================================
# Setup state errors
# ============================================================================

class SystemStateError(Exception):
    """Base for errors describing the installation state read from the setup config."""

    code = ""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.code)


class SystemNotInstalledError(SystemStateError):
    code = CODE_SYSTEM_NOT_INSTALLED


class SystemInCorruptedStateError(SystemStateError):
    code = CODE_SYSTEM_IN_CORRUPTED_STATE


# ============================================================================
# Addon catalog errors
# ============================================================================

class ManifestError(Exception):
    """Base for every error that aborts loading of the addon catalog."""


class SchemaCompileError(ManifestError):
    pass


class ManifestReadError(ManifestError):
    pass


class ManifestParseError(ManifestError):
    pass


class ManifestValidationError(ManifestError):
    """A manifest violates the JSON schema.

    Attributes:
        path: Path of the offending manifest.
        violations: One line per schema violation.
    """

    def __init__(self, path: str, violations: list[str]) -> None:
        details = "\n".join(violations)
        super().__init__(f"validation failed for manifest '{path}':\n{details}")
        self.path = path
        self.violations = violations


class UnsupportedApiVersionError(ManifestError):
    pass


class MissingCommandConfigError(ManifestError):
    pass


class ImageExtractionError(ManifestError):
    """An additional images file of an addon cannot be read or parsed."""


class ConstraintError(ValueError):
    """A CLI flag value does not satisfy the constraint declared in the manifest."""


# ============================================================================
# PowerShell protocol errors
# ============================================================================

class PowerShellError(RuntimeError):
    """Base for errors raised while running a script or decoding its output."""


class ProcessStartError(PowerShellError):
    pass


class ProcessExitError(PowerShellError):
    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class MalformedMessageError(PowerShellError):
    pass


class MessageDecodeError(PowerShellError):
    pass


class UnexpectedMessageCountError(PowerShellError):
    def __init__(self, count: int) -> None:
        super().__init__(f"unexpected number of data objects. Expected 1, but got {count}")
        self.count = count


class MessageTypeMismatchError(PowerShellError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"unexpected result type. Expected '{expected}', but got '{actual}'")
        self.expected = expected
        self.actual = actual


class ResultUnmarshalError(PowerShellError):
    pass


class ExecutionCancelledError(PowerShellError):
    pass
