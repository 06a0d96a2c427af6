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

"""``addons status`` command tree and status printers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import click
from pydantic import BaseModel, ConfigDict, Field
from rich.markup import escape
from rich.panel import Panel

from k2s_cli import console, logger, out_console
from k2s_cli.addons import Addon, Addons
from k2s_cli.addons.model import format_value
from k2s_cli.commands.common import check_output_option, get_context
from k2s_cli.config import determine_ps_version, read_setup_config
from k2s_cli.constants import (
    ADDON_STATUS_SCRIPT,
    MESSAGE_TYPE_ADDON_STATUS,
    OUTPUT_FLAG_NAME,
    OUTPUT_FLAG_SHORTHAND,
    OUTPUT_FORMAT_USAGE,
    SPINNER_TEXT,
)
from k2s_cli.errors import (
    CmdFailure,
    CmdFailurePayload,
    SystemInCorruptedStateError,
    SystemNotInstalledError,
    SystemStateError,
    system_in_corrupted_state_failure,
    system_not_installed_failure,
)
from k2s_cli.powershell import PsCommandOutputWriter
from k2s_cli.utils import format_script_path

LoadFunc = Callable[[str, str], "AddonStatus"]


# ============================================================================
# Status models
# ============================================================================

class AddonStatusProp(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    value: Any = None
    okay: bool | None = None
    message: str | None = None


class AddonStatus(BaseModel):
    """Result of an addon's ``Get-Status.ps1``."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool | None = None
    props: list[AddonStatusProp] = Field(default_factory=list)
    error: CmdFailurePayload | None = None

    @property
    def failure(self) -> CmdFailure | None:
        return CmdFailure.from_payload(self.error) if self.error is not None else None


class AddonPrintStatus(BaseModel):
    name: str
    enabled: bool | None = None
    props: list[AddonStatusProp] | None = None
    error: str | None = None


# ============================================================================
# Printers
# ============================================================================

def get_prop_text(prop: AddonStatusProp) -> str:
    """Render a status property.

    Properties without an ``okay`` verdict highlight their value or message;
    properties with a verdict are colored by :func:`print_prop` instead.
    """
    if prop.okay is None and prop.message is None:
        return f"{escape(prop.name)}: [cyan]{escape(format_value(prop.value))}[/cyan]"
    if prop.okay is None:
        return f"[cyan]{escape(prop.message)}[/cyan]"
    if prop.message is None:
        return f"{escape(prop.name)}: {escape(format_value(prop.value))}"
    return escape(prop.message)


def print_prop(prop: AddonStatusProp) -> None:
    text = get_prop_text(prop)
    if prop.okay is None:
        out_console.print(text)
    elif prop.okay:
        out_console.print(f"[green]\u2705 {text}[/green]")
    else:
        out_console.print(f"[yellow]\u26a0\ufe0f  {text}[/yellow]")


class JsonStatusPrinter:
    """Prints the status as a single JSON document on stdout."""

    def print_status(self, addon_name: str, implementation: str, load_func: LoadFunc) -> None:
        status = load_func(addon_name, implementation)

        print_status = AddonPrintStatus(name=addon_name)
        failure = status.failure
        if failure is None:
            print_status.enabled = status.enabled
            print_status.props = status.props
        else:
            print_status.error = failure.code
            failure.suppress_cli_output = True

        self._print(print_status)
        if failure is not None:
            raise failure

    def system_error(self, addon_name: str, error: SystemStateError, failure_func: Callable[[], CmdFailure]) -> CmdFailure:
        self._print(AddonPrintStatus(name=addon_name, error=error.code))
        failure = failure_func()
        failure.suppress_cli_output = True
        return failure

    @staticmethod
    def _print(print_status: AddonPrintStatus) -> None:
        status_json = print_status.model_dump_json(indent=2)
        logger.info("Printing status: %s", status_json)
        out_console.print(status_json, markup=False, highlight=False, soft_wrap=True)


class UserFriendlyStatusPrinter:
    """Prints a header, the enabled state and the status properties."""

    def print_status(self, addon_name: str, implementation: str, load_func: LoadFunc) -> None:
        with console.status(SPINNER_TEXT):
            status = load_func(addon_name, implementation)

        if status.failure is not None:
            raise status.failure
        if status.enabled is None:
            raise ValueError(f"enabled/disabled info missing for '{addon_name}' addon")

        out_console.print(Panel.fit("ADDON STATUS", style="bold blue"))
        state = "enabled" if status.enabled else "disabled"
        if implementation:
            out_console.print(
                f"Implementation [cyan]{escape(implementation)}[/cyan] of Addon "
                f"[cyan]{escape(addon_name)}[/cyan] is [cyan]{state}[/cyan]")
        else:
            out_console.print(f"Addon [cyan]{escape(addon_name)}[/cyan] is [cyan]{state}[/cyan]")

        if status.enabled:
            for prop in status.props:
                print_prop(prop)

    def system_error(self, addon_name: str, error: SystemStateError, failure_func: Callable[[], CmdFailure]) -> CmdFailure:
        return failure_func()


def determine_printer(as_json: bool) -> JsonStatusPrinter | UserFriendlyStatusPrinter:
    return JsonStatusPrinter() if as_json else UserFriendlyStatusPrinter()


# ============================================================================
# Commands
# ============================================================================

def run_status(addon: Addon, implementation: str, output: str | None) -> None:
    """Load and print the status of an addon or one of its implementations."""
    printer = determine_printer(check_output_option(output))
    cmd_context = get_context()

    try:
        setup = read_setup_config(cmd_context.config.config_dir)
    except SystemInCorruptedStateError as err:
        raise printer.system_error(addon.name, err, system_in_corrupted_state_failure) from err
    except SystemNotInstalledError as err:
        raise printer.system_error(addon.name, err, system_not_installed_failure) from err

    def load_status(addon_name: str, impl_name: str) -> AddonStatus:
        directory = Path(addon.directory) / impl_name if impl_name else Path(addon.directory)
        logger.info("Loading status of addon '%s' from '%s'", addon_name, directory)
        return cmd_context.run_structured(
            format_script_path(directory / ADDON_STATUS_SCRIPT),
            MESSAGE_TYPE_ADDON_STATUS,
            AddonStatus,
            PsCommandOutputWriter(),
            version=determine_ps_version(setup),
            install_dir=cmd_context.config.install_dir,
        )

    printer.print_status(addon.name, implementation, load_status)


def _output_option() -> click.Option:
    return click.Option(
        [f"--{OUTPUT_FLAG_NAME}", f"-{OUTPUT_FLAG_SHORTHAND}"],
        default="",
        help=OUTPUT_FORMAT_USAGE,
    )


def _new_implementation_cmd(addon: Addon, implementation: str) -> click.Command:
    return click.Command(
        implementation,
        help=f"Prints the {addon.name} {implementation} status",
        params=[_output_option()],
        callback=lambda output: run_status(addon, implementation, output),
    )


def _new_status_cmd(addon: Addon) -> click.Command:
    other_impls = [impl.name for impl in addon.implementations if impl.name != addon.name]
    has_default_impl = len(other_impls) < len(addon.implementations)
    help_text = f"Prints the {addon.name} status"

    if not other_impls:
        return click.Command(
            addon.name,
            help=help_text,
            epilog=f"Example: k2s addons status {addon.name}",
            params=[_output_option()],
            callback=lambda output: run_status(addon, "", output),
        )

    @click.pass_context
    def _group_callback(ctx: click.Context, output: str) -> None:
        if ctx.invoked_subcommand is None:
            run_status(addon, "", output)

    group = click.Group(
        addon.name,
        help=help_text,
        params=[_output_option()] if has_default_impl else [],
        callback=_group_callback if has_default_impl else None,
        invoke_without_command=has_default_impl,
    )
    for impl_name in other_impls:
        logger.debug("Creating status sub-command for addon '%s' implementation '%s'", addon.name, impl_name)
        group.add_command(_new_implementation_cmd(addon, impl_name))
    return group


def build_status_group(addons: Addons) -> click.Group:
    group = click.Group("status", help="Prints the status of a specific addon")
    for addon in addons.sorted():
        group.add_command(_new_status_cmd(addon))
    return group
