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

"""Addon commands generated from the manifests (enable, disable, ...).

Every command name found in the manifests becomes a group under ``addons``;
each addon offering it becomes a sub-command whose flags come from the
manifest's CLI config.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any

import click
from click.core import ParameterSource

from k2s_cli import console, logger
from k2s_cli.addons import Addon, Addons, CliFlag, Implementation
from k2s_cli.addons.model import AddonCmd, CliExample, FlagType, format_value
from k2s_cli.commands.common import get_context, load_installed_setup
from k2s_cli.config import determine_ps_version
from k2s_cli.constants import (
    MESSAGE_TYPE_CMD_RESULT,
    OUTPUT_FLAG_NAME,
    OUTPUT_FLAG_SHORTHAND,
    OUTPUT_FLAG_USAGE,
    SHOW_LOGS_PARAM,
)
from k2s_cli.errors import CmdResult, ConstraintError, MissingCommandConfigError
from k2s_cli.powershell import PsCommandOutputWriter
from k2s_cli.utils import format_script_path, print_completed

_CLICK_TYPES = {
    FlagType.STRING: click.STRING,
    FlagType.INT: click.INT,
    FlagType.FLOAT: click.FLOAT,
}


# ============================================================================
# Flag handling
# ============================================================================

def build_option(flag: CliFlag) -> click.Option:
    """Create the click option for a manifest flag; the default's type picks the option type."""
    long_decl = f"--{flag.name}"
    if flag.flag_type is FlagType.BOOL and flag.default is True:
        long_decl = f"--{flag.name}/--no-{flag.name}"
    decls = [long_decl]
    if flag.shorthand:
        decls.append(f"-{flag.shorthand}")

    help_text = flag.full_description() or None
    if flag.flag_type is FlagType.BOOL:
        return click.Option(decls, is_flag=True, default=flag.default, help=help_text)
    return click.Option(decls, type=_CLICK_TYPES[flag.flag_type], default=flag.default,
                        show_default=True, help=help_text)


def format_epilog(examples: list[CliExample]) -> str | None:
    """Render manifest examples as help epilog; ``\\b`` stops click from rewrapping them."""
    if not examples:
        return None
    blocks = [f"\b\n{str(example).rstrip()}" for example in examples]
    return "Examples:\n\n" + "\n\n".join(blocks)


def _output_option() -> click.Option:
    return click.Option([f"--{OUTPUT_FLAG_NAME}", f"-{OUTPUT_FLAG_SHORTHAND}"], is_flag=True,
                        default=False, help=OUTPUT_FLAG_USAGE)


def collect_set_flags(ctx: click.Context, option_flags: dict[str, str]) -> list[tuple[str, Any]]:
    """Return ``(flag name, value)`` for every flag given on the command line, sorted by name.

    Args:
        ctx: Context of the running addon command.
        option_flags: Maps click parameter names to manifest flag names.
    """
    set_flags = []
    for param_name, flag_name in option_flags.items():
        if ctx.get_parameter_source(param_name) is ParameterSource.COMMANDLINE:
            set_flags.append((flag_name, ctx.params[param_name]))
    return sorted(set_flags, key=lambda item: item[0])


def build_ps_params(cmd_config: AddonCmd, set_flags: list[tuple[str, Any]]) -> list[str]:
    """Convert explicitly set flags into script parameters.

    Args:
        cmd_config: Manifest config of the command being run.
        set_flags: Flags given on the command line, see :func:`collect_set_flags`.

    Returns:
        Parameter strings such as ``-Ingress nginx`` or ``-ShowLogs``.

    Raises:
        ConstraintError: If a value violates its constraint or two exclusive flags are set.
        ValueError: If a mapped flag has no CLI config.
    """
    if cmd_config.cli is not None:
        cmd_config.cli.check_exclusion_groups(name for name, _ in set_flags)

    params: list[str] = []
    for name, value in set_flags:
        if name == OUTPUT_FLAG_NAME:
            params.append(SHOW_LOGS_PARAM)
            continue

        script_param = cmd_config.script.script_parameter_for(name)
        if script_param is None:
            logger.warning("CLI flag '%s' set, but missing PowerShell parameter mapping in "
                           "'parameterMappings' of 'addon.manifest.yaml'; not parameterized.", name)
            continue

        flag_config = cmd_config.cli.find_flag(name) if cmd_config.cli is not None else None
        if flag_config is None:
            raise ValueError(f"flag config not found for flag '{name}'")

        if flag_config.flag_type is FlagType.BOOL:
            if value:
                params.append(f"-{script_param}")
            continue

        try:
            flag_config.validate_value(value)
        except ConstraintError as err:
            raise ConstraintError(f"validation error for flag '{name}': {err}") from err
        params.append(f"-{script_param} {format_value(value)}")
    return params


# ============================================================================
# Execution
# ============================================================================

def run_addon_cmd(addon: Addon, cmd_name: str, implementation: Implementation,
                  option_flags: dict[str, str]) -> None:
    """Run the script behind ``cmd_name`` for one addon implementation."""
    ctx = click.get_current_context()
    cmd_context = get_context()
    if ctx.params.get(OUTPUT_FLAG_NAME):
        cmd_context.show_logs()

    if len(addon.implementations) > 1:
        logger.info("Running addon command '%s' for addon '%s' implementation '%s'",
                    cmd_name, addon.name, implementation.name)
        console.print(f"\U0001f916 Running '{cmd_name}' for implementation '{implementation.name}' of '{addon.name}' addon")
    else:
        logger.info("Running addon command '%s' for addon '%s'", cmd_name, addon.name)
        console.print(f"\U0001f916 Running '{cmd_name}' for '{addon.name}' addon")

    cmd_config = implementation.commands[cmd_name]
    script = format_script_path(addon.script_path(cmd_config))
    params = build_ps_params(cmd_config, collect_set_flags(ctx, option_flags))
    logger.debug("PS command created: %s %s", script, params)

    start = time.monotonic()
    setup = load_installed_setup(cmd_context.config)
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
    print_completed(f"addons {cmd_name} {addon.name}", duration, cmd_context.config.log_file)


# ============================================================================
# Command tree
# ============================================================================

def _new_leaf_cmd(name: str, help_text: str, addon: Addon, cmd_name: str,
                  implementation: Implementation) -> click.Command:
    cmd_config = implementation.commands[cmd_name]
    params: list[click.Parameter] = []
    option_flags: dict[str, str] = {}
    epilog = None

    if cmd_config.cli is not None:
        epilog = format_epilog(cmd_config.cli.examples)
        for flag in cmd_config.cli.flags:
            option = build_option(flag)
            params.append(option)
            option_flags[option.name] = flag.name

    output_option = _output_option()
    params.append(output_option)
    option_flags[output_option.name] = OUTPUT_FLAG_NAME

    def _callback(**_: Any) -> None:
        run_addon_cmd(addon, cmd_name, implementation, option_flags)

    return click.Command(name, help=help_text, epilog=epilog, params=params, callback=_callback)


def _new_addon_cmd(addon: Addon, cmd_name: str) -> click.Command:
    logger.debug("Creating sub-command '%s' for addon '%s'", cmd_name, addon.name)
    if len(addon.implementations) == 1:
        return _new_leaf_cmd(addon.name, f"Runs '{cmd_name}' for '{addon.name}' addon",
                             addon, cmd_name, addon.implementations[0])

    group = click.Group(addon.name, help=f"Runs '{cmd_name}' for '{addon.name}' addon")
    for impl in addon.implementations:
        if not impl.commands or cmd_name not in impl.commands:
            logger.debug("Implementation '%s' of addon '%s' has no '%s' command", impl.name, addon.name, cmd_name)
            continue
        group.add_command(_new_leaf_cmd(
            impl.name,
            f"Runs '{cmd_name}' for '{impl.name}' implementation of '{addon.name}' addon",
            addon, cmd_name, impl))
    return group


def build_commands(addons: Addons) -> list[click.Group]:
    """Build one group per command name, each holding the addons that offer it.

    Returns:
        Groups sorted by command name.

    Raises:
        MissingCommandConfigError: If an addon's first implementation has no commands.
    """
    groups: dict[str, click.Group] = {}
    for addon in addons:
        if not addon.implementations or not addon.implementations[0].commands:
            raise MissingCommandConfigError(f"no cmd config found for addon '{addon.name}'")

        for cmd_name in addon.implementations[0].commands:
            if cmd_name not in groups:
                logger.debug("Creating addon command group '%s'", cmd_name)
                groups[cmd_name] = click.Group(cmd_name, help=f"Runs '{cmd_name}' for the specific addon")
            groups[cmd_name].add_command(_new_addon_cmd(addon, cmd_name))

    return [groups[name] for name in sorted(groups)]
