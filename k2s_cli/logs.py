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

"""Logging setup and the bounded error-line buffer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from rich.logging import RichHandler

from k2s_cli import console, logger
from k2s_cli.constants import ERROR_LINE_BUFFER_LIMIT

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(name: str) -> int:
    """Map a level name (case-insensitive) to a :mod:`logging` level.

    Raises:
        ValueError: If the name is not a known level.
    """
    try:
        return _LEVELS[name.lower()]
    except KeyError as err:
        raise ValueError(f"invalid log level '{name}'") from err


def configure_logging(log_file: Path | None, level: str = "info", show_logs: bool = False) -> None:
    """Route the ``k2s_cli`` logger to the log file and optionally to the terminal.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        log_file: Log file path, or None to skip file logging.
        level: Level name accepted by :func:`parse_level`.
        show_logs: Also print log records to stderr.
    """
    numeric_level = parse_level(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    if show_logs:
        stream_handler = RichHandler(console=console, show_path=False, log_time_format=LOG_DATE_FORMAT)
        stream_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(stream_handler)

    logger.setLevel(numeric_level)
    logger.propagate = False


def _log_error_lines(lines: list[str]) -> None:
    logger.error("Flushing error lines (count=%d): %s", len(lines), lines)


class ErrorLineBuffer:
    """Collects error lines and flushes them in batches.

    The buffer flushes on its own once ``limit`` lines are pending, so the
    memory held for a chatty script stays bounded.
    """

    def __init__(
        self,
        limit: int = ERROR_LINE_BUFFER_LIMIT,
        flush_func: Callable[[list[str]], None] = _log_error_lines,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._limit = limit
        self._flush_func = flush_func
        self._lines: list[str] = []

    def __len__(self) -> int:
        return len(self._lines)

    def log(self, line: str) -> None:
        self._lines.append(line)
        if len(self._lines) >= self._limit:
            self.flush()

    def flush(self) -> None:
        if not self._lines:
            return
        lines, self._lines = self._lines, []
        self._flush_func(lines)
