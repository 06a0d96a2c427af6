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

"""Utility functions for script paths, parameter quoting and command checks."""

from __future__ import annotations

import shutil
from datetime import timedelta
from pathlib import Path, PureWindowsPath
from typing import Iterable

from k2s_cli import console


def format_script_path(path: Path | str) -> str:
    """Turn a script path into a PowerShell call expression.

    Args:
        path: Path to a ``.ps1`` script.

    Returns:
        ``&'<path>'`` so that paths containing spaces are invoked correctly.
    """
    return f"&'{path}'"


def windows_join(base: Path | str, *parts: str) -> str:
    """Join path segments with backslashes, independent of the host platform."""
    return str(PureWindowsPath(str(base), *parts))


def quote_ps(value: str) -> str:
    """Single-quote a value for PowerShell, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def quote_ps_list(values: Iterable[str]) -> str:
    return ",".join(quote_ps(v) for v in values)


def require_command(cmd: str, hint: str | None = None) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.
        hint: Optional installation hint appended to the error message.

    Raises:
        RuntimeError: If the command is not found.
    """
    if shutil.which(cmd) is None:
        message = f"Required command '{cmd}' not found. Please install it first."
        if hint:
            message += f" See {hint}"
        raise RuntimeError(message)


def print_completed(command: str, duration: timedelta, log_file: Path | None = None) -> None:
    """Print the success line shown after a long-running command."""
    console.print(f"[green]\u2705 '{command}' completed in {duration}[/green]")
    if log_file is not None:
        console.print(f"[bright_cyan]Please see '{log_file}' for more information[/bright_cyan]")
