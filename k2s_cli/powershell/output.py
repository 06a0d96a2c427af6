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

"""Sinks for the plain output lines of a running script."""

from __future__ import annotations

from typing import Protocol

from rich.markup import escape

from k2s_cli import console
from k2s_cli.logs import ErrorLineBuffer


class OutputWriter(Protocol):
    def write_std(self, line: str) -> None: ...

    def write_err(self, line: str) -> None: ...

    def flush(self) -> None: ...


class PsCommandOutputWriter:
    """Prints script output to the terminal; stderr lines also go to a bounded log buffer."""

    def __init__(self, error_buffer: ErrorLineBuffer | None = None) -> None:
        self._error_buffer = error_buffer if error_buffer is not None else ErrorLineBuffer()

    def write_std(self, line: str) -> None:
        console.print(f"\u23f3 {escape(line)}", highlight=False)

    def write_err(self, line: str) -> None:
        self._error_buffer.log(line)
        console.print(f"\u23f3 [yellow]{escape(line)}[/yellow]", highlight=False)

    def flush(self) -> None:
        self._error_buffer.flush()
