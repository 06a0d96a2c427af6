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

"""Helpers shared by the command modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import click
from rich.table import Table

from k2s_cli import console, logger
from k2s_cli.addons import AddonCatalog, Addons
from k2s_cli.config import CliConfig, SetupConfig, default_ps_version, determine_ps_version, read_setup_config
from k2s_cli.constants import JSON_OUTPUT_OPTION, OUTPUT_FLAG_SHORTHAND
from k2s_cli.errors import (
    CmdFailure,
    Severity,
    SystemInCorruptedStateError,
    SystemNotInstalledError,
    system_in_corrupted_state_failure,
    system_not_installed_failure,
)
from k2s_cli.logs import configure_logging
from k2s_cli.powershell import PowerShellVersion, execute_ps, execute_ps_with_structured_result


@dataclass
class CmdContext:
    """State handed to every command through ``click.Context.obj``.

    Attributes:
        config: Resolved CLI settings.
        catalog: The installation's addon catalog.
        run_structured: Structured script runner, replaceable in tests.
        run_streaming: Streaming script runner, replaceable in tests.
    """

    config: CliConfig
    catalog: AddonCatalog
    run_structured: Callable[..., Any] = field(default=execute_ps_with_structured_result)
    run_streaming: Callable[..., Any] = field(default=execute_ps)

    def show_logs(self) -> None:
        configure_logging(self.config.log_file, self.config.log_level, show_logs=True)


def get_context() -> CmdContext:
    """Return the :class:`CmdContext` of the running command."""
    ctx = click.get_current_context()
    cmd_context = ctx.find_object(CmdContext)
    if cmd_context is None:
        raise RuntimeError("command context not initialized")
    return cmd_context


def check_output_option(value: str | None) -> bool:
    """Validate an ``-o`` output format value; return whether JSON was requested.

    Raises:
        click.BadParameter: For anything other than ``json``.
    """
    if not value:
        return False
    if value != JSON_OUTPUT_OPTION:
        raise click.BadParameter(f"parameter '{value}' not supported for flag '{OUTPUT_FLAG_SHORTHAND}'")
    return True


def load_installed_setup(config: CliConfig) -> SetupConfig:
    """Read the setup config, mapping the known setup states to command failures.

    Raises:
        CmdFailure: If K2s is not installed or in a corrupted state.
    """
    try:
        return read_setup_config(config.config_dir)
    except SystemNotInstalledError as err:
        raise system_not_installed_failure() from err
    except SystemInCorruptedStateError as err:
        raise system_in_corrupted_state_failure() from err


def resolve_ps_version(config: CliConfig) -> PowerShellVersion:
    """PowerShell version for the installed setup, falling back to the default when not installed."""
    try:
        setup = read_setup_config(config.config_dir)
    except SystemNotInstalledError:
        version = default_ps_version()
        logger.info("Setup not installed, falling back to default PowerShell version %s", version.value)
        return version
    except SystemInCorruptedStateError as err:
        raise system_in_corrupted_state_failure() from err
    return determine_ps_version(setup)


def log_addons(addons: Addons) -> None:
    logger.debug(
        "addons loaded (count=%d): %s",
        len(addons),
        [(a.name, str(a.directory), [impl.name for impl in a.implementations]) for a in addons],
    )


def validate_addon_names(addons: Addons, activity: str, names: list[str]) -> None:
    """Check that every name is ``<addon>`` or ``<addon> <implementation>``.

    Raises:
        CmdFailure: For the first unknown name, after printing the valid names.
    """
    for name in names:
        splits = name.split(" ")
        found = False
        if len(splits) == 2:
            addon = addons.find(splits[0])
            found = addon is not None and addon.find_implementation(splits[1]) is not None
        elif len(splits) < 2:
            found = addons.find(name) is not None

        if not found:
            _print_valid_addon_names(addons)
            raise CmdFailure(
                Severity.WARNING,
                "addon-name-invalid",
                f"Addon '{name}' not supported for {activity}, aborting.",
            )


def _print_valid_addon_names(addons: Addons) -> None:
    table = Table("Available addon names")
    for addon in addons:
        for impl in addon.implementations:
            table.add_row(impl.addons_cmd_name or addon.name)
    console.print(table)
