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

"""Addon subcommands (ls, export) and the per-addon command tree."""

from __future__ import annotations

import time
from datetime import timedelta

import click
import typer
from pydantic import BaseModel, ConfigDict, Field
from rich.panel import Panel
from rich.tree import Tree

from k2s_cli import console, logger, out_console
from k2s_cli.addons import Addons
from k2s_cli.commands import generic_cmd, status_cmd
from k2s_cli.commands.common import (
    check_output_option,
    get_context,
    load_installed_setup,
    log_addons,
    resolve_ps_version,
    validate_addon_names,
)
from k2s_cli.config import SetupName, determine_ps_version
from k2s_cli.constants import (
    ENABLED_ADDONS_SCRIPT,
    EXPORT_ADDONS_SCRIPT,
    MESSAGE_TYPE_CMD_RESULT,
    MESSAGE_TYPE_ENABLED_ADDONS,
    OUTPUT_FLAG_USAGE,
    OUTPUT_FORMAT_USAGE,
    SHOW_LOGS_PARAM,
    SPINNER_TEXT,
)
from k2s_cli.errors import CmdResult, functionality_not_available_failure
from k2s_cli.powershell import PsCommandOutputWriter
from k2s_cli.utils import format_script_path, print_completed, quote_ps, quote_ps_list

app = typer.Typer(help="Addons add optional functionality to a K2s cluster.")


# ============================================================================
# Result and print models
# ============================================================================

class EnabledAddon(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    implementations: list[str] = Field(default_factory=list)


class EnabledAddons(BaseModel):
    model_config = ConfigDict(extra="ignore")

    addons: list[EnabledAddon] = Field(default_factory=list)


class AddonListEntry(BaseModel):
    name: str
    description: str
    implementations: list[str]


class AddonPrintList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled_addons: list[AddonListEntry] = Field(default_factory=list, alias="enabledAddons")
    disabled_addons: list[AddonListEntry] = Field(default_factory=list, alias="disabledAddons")


def to_print_list(enabled: list[EnabledAddon], addons: Addons) -> AddonPrintList:
    """Split the catalog into enabled and disabled addons.

    An addon with only some implementations enabled shows up in both lists,
    each time with the matching subset of implementations.
    """
    enabled_by_name = {entry.name: entry for entry in enabled}
    print_list = AddonPrintList()

    for addon in addons:
        implementations = [impl.name for impl in addon.implementations]
        entry = enabled_by_name.get(addon.name)
        if entry is None:
            print_list.disabled_addons.append(
                AddonListEntry(name=addon.name, description=addon.metadata.description,
                               implementations=implementations))
            continue

        print_list.enabled_addons.append(
            AddonListEntry(name=addon.name, description=addon.metadata.description,
                           implementations=list(entry.implementations)))
        still_disabled = [name for name in implementations if name not in entry.implementations]
        if still_disabled:
            print_list.disabled_addons.append(
                AddonListEntry(name=addon.name, description=addon.metadata.description,
                               implementations=still_disabled))
    return print_list


def _add_branch(tree: Tree, title: str, entries: list[AddonListEntry]) -> None:
    branch = tree.add(f"[bold]{title}[/bold]")
    for entry in entries:
        node = branch.add(f"[cyan]{entry.name}[/cyan]  {entry.description}")
        # Single-implementation addons name their implementation after themselves.
        if entry.implementations != [entry.name]:
            for impl in entry.implementations:
                node.add(impl)


def render_addon_tree(print_list: AddonPrintList) -> Tree:
    tree = Tree("Addons")
    _add_branch(tree, "Enabled", print_list.enabled_addons)
    _add_branch(tree, "Disabled", print_list.disabled_addons)
    return tree


# ============================================================================
# ls
# ============================================================================

def _load_enabled_addons() -> EnabledAddons:
    cmd_context = get_context()
    version = resolve_ps_version(cmd_context.config)
    script = format_script_path(cmd_context.catalog.addons_dir / ENABLED_ADDONS_SCRIPT)
    return cmd_context.run_structured(
        script,
        MESSAGE_TYPE_ENABLED_ADDONS,
        EnabledAddons,
        PsCommandOutputWriter(),
        version=version,
        install_dir=cmd_context.config.install_dir,
    )


@app.command("ls")
def list_addons(
    output: str = typer.Option("", "--output", "-o", help=OUTPUT_FORMAT_USAGE),
) -> None:
    """List addons available for K2s."""
    as_json = check_output_option(output)
    addons = get_context().catalog.load()
    log_addons(addons)
    logger.info("Listing addons")

    if as_json:
        enabled = _load_enabled_addons()
        print_list = to_print_list(enabled.addons, addons)
        out_console.print(print_list.model_dump_json(by_alias=True, indent=2),
                          markup=False, highlight=False, soft_wrap=True)
        return

    with console.status(SPINNER_TEXT):
        enabled = _load_enabled_addons()

    out_console.print(Panel.fit("Available Addons", style="bold blue"))
    out_console.print(render_addon_tree(to_print_list(enabled.addons, addons)))
    logger.info("Addons listed")


# ============================================================================
# export
# ============================================================================

def build_export_params(names: list[str], directory: str, proxy: str, show_logs: bool) -> list[str]:
    """Build the ``Export.ps1`` parameters.

    Args:
        names: Addon names (``<addon>`` or ``<addon> <impl>``); empty exports all.
        directory: Target directory.
        proxy: HTTP proxy, or empty.
        show_logs: Pass ``-ShowLogs``.

    Returns:
        Parameter strings in the order the script expects them.
    """
    params = [f"-ExportDir {quote_ps(directory)}"]
    params.append(f"-Names {quote_ps_list(names)}" if names else "-All")
    if show_logs:
        params.append(SHOW_LOGS_PARAM)
    if proxy:
        params.append(f"-Proxy {proxy}")
    return params


def collect_offline_images(addons: Addons, names: list[str]) -> list[str]:
    """Additional Linux images of the selected implementations, without duplicates.

    Args:
        addons: Loaded addons.
        names: Validated ``<addon>`` or ``<addon> <impl>`` names; empty selects all.
    """
    selected = []
    for addon in addons:
        for impl in addon.implementations:
            if not names or addon.name in names or impl.addons_cmd_name in names:
                selected.append(impl)

    images: list[str] = []
    for impl in selected:
        images.extend(impl.offline_usage.linux.additional_images)
        images.extend(impl.extract_images_from_files())
    return list(dict.fromkeys(images))


@app.command("export")
def export_addons(
    names: list[str] = typer.Argument(None, help="Addons to export, e.g. 'registry' or 'ingress nginx'"),
    directory: str = typer.Option("", "--directory", "-d", help="Directory for addon export"),
    proxy: str = typer.Option("", "--proxy", "-p", help="HTTP Proxy"),
    output: bool = typer.Option(False, "--output", "-o", help=OUTPUT_FLAG_USAGE),
) -> None:
    """Export addons for offline usage.

    Examples:

        k2s addons export registry traefik -d C:\\tmp

        k2s addons export -d C:\\tmp
    """
    cmd_context = get_context()
    if output:
        cmd_context.show_logs()
    names = names or []

    addons = cmd_context.catalog.load()
    log_addons(addons)
    validate_addon_names(addons, "export", names)

    if not directory:
        raise click.UsageError("no export path provided")

    images = collect_offline_images(addons, names)
    logger.info("Additional Linux images to export (count=%d): %s", len(images), images)

    script = format_script_path(cmd_context.catalog.addons_dir / EXPORT_ADDONS_SCRIPT)
    params = build_export_params(names, directory, proxy, output)
    logger.debug("PS command created: %s %s", script, params)

    start = time.monotonic()
    setup = load_installed_setup(cmd_context.config)
    if setup.setup_name == SetupName.MULTI_VM_K8S.value:
        raise functionality_not_available_failure(setup.setup_name)

    result = cmd_context.run_structured(
        script,
        MESSAGE_TYPE_CMD_RESULT,
        CmdResult,
        PsCommandOutputWriter(),
        *params,
        version=determine_ps_version(setup),
        install_dir=cmd_context.config.install_dir,
    )
    if result.failure is not None:
        raise result.failure

    duration = timedelta(seconds=round(time.monotonic() - start))
    print_completed("addons export", duration, cmd_context.config.log_file)


# ============================================================================
# Dynamic addon commands
# ============================================================================

def register_addon_commands(group: click.Group, addons: Addons) -> None:
    """Attach ``status`` and the per-command groups built from the manifests."""
    group.add_command(status_cmd.build_status_group(addons))
    for command in generic_cmd.build_commands(addons):
        group.add_command(command)
