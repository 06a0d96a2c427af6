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

"""Cluster lifecycle commands (start, stop)."""

from __future__ import annotations

import platform
from pathlib import Path

import typer

from k2s_cli import console, logger
from k2s_cli.commands.common import get_context, load_installed_setup
from k2s_cli.config import SetupName, determine_ps_version
from k2s_cli.constants import (
    K2S_START_SCRIPT_SUB_PATH,
    K2S_STOP_SCRIPT_SUB_PATH,
    MULTIVM_START_SCRIPT_SUB_PATH,
    MULTIVM_STOP_SCRIPT_SUB_PATH,
    OUTPUT_FLAG_USAGE,
    SHOW_LOGS_PARAM,
)
from k2s_cli.powershell import PsCommandOutputWriter
from k2s_cli.utils import format_script_path, print_completed, quote_ps, windows_join

ADDITIONAL_HOOKS_DIR_USAGE = "Directory containing additional hooks to be executed"
AUTOUSE_CACHED_VSWITCH_USAGE = (
    "Automatically utilizes the cached vSwitch 'cbr0' and 'KubeSwitch' for cluster connectivity through the host machine"
)
CACHE_VSWITCH_USAGE = (
    "Cache vswitches 'cbr0' and 'KubeSwitch' for cluster connectivity through the host machine."
)

_SCRIPTS = {
    "start": {
        SetupName.K2S.value: K2S_START_SCRIPT_SUB_PATH,
        SetupName.MULTI_VM_K8S.value: MULTIVM_START_SCRIPT_SUB_PATH,
    },
    "stop": {
        SetupName.K2S.value: K2S_STOP_SCRIPT_SUB_PATH,
        SetupName.MULTI_VM_K8S.value: MULTIVM_STOP_SCRIPT_SUB_PATH,
    },
}

# Switch passed to the k2s setup's script when the vSwitch flag is set.
_VSWITCH_PARAMS = {
    "start": "-UseCachedK2sVSwitches",
    "stop": "-CacheK2sVSwitches",
}


def build_lifecycle_cmd(
    action: str,
    setup_name: str,
    install_dir: Path | str,
    show_logs: bool = False,
    additional_hooks_dir: str = "",
    vswitch: bool = False,
) -> str:
    """Build the script call that starts or stops the cluster of a setup.

    Args:
        action: ``start`` or ``stop``.
        setup_name: Setup type from the setup config.
        install_dir: K2s installation root.
        show_logs: Pass ``-ShowLogs``.
        additional_hooks_dir: Extra hooks directory, or empty.
        vswitch: Cached vSwitch switch; only honored by the k2s setup.

    Returns:
        The script call including its parameters.

    Raises:
        ValueError: For build-only or unknown setups.
    """
    if setup_name == SetupName.BUILD_ONLY_ENV.value:
        raise ValueError(f"there is no cluster to {action} in build-only setup mode ;-). Aborting")

    sub_path = _SCRIPTS[action].get(setup_name)
    if sub_path is None:
        raise ValueError(
            "could not determine the setup type, aborting. If you are sure you have a K2s setup "
            f"installed, call the correct {action} script directly"
        )

    cmd = format_script_path(windows_join(install_dir, sub_path))
    if additional_hooks_dir:
        cmd += f" -AdditionalHooksDir {quote_ps(additional_hooks_dir)}"
    if vswitch and setup_name == SetupName.K2S.value:
        cmd += f" {_VSWITCH_PARAMS[action]}"
    if show_logs:
        cmd += f" {SHOW_LOGS_PARAM}"
    return cmd


def _run(action: str, output: bool, additional_hooks_dir: str, vswitch: bool) -> None:
    cmd_context = get_context()
    if output:
        cmd_context.show_logs()

    setup = load_installed_setup(cmd_context.config)
    cmd = build_lifecycle_cmd(
        action,
        setup.setup_name,
        cmd_context.config.install_dir,
        show_logs=output,
        additional_hooks_dir=additional_hooks_dir,
        vswitch=vswitch,
    )
    logger.debug("PS command created: %s", cmd)

    duration = cmd_context.run_streaming(
        cmd,
        PsCommandOutputWriter(),
        determine_ps_version(setup),
        install_dir=cmd_context.config.install_dir,
    )
    print_completed(action.capitalize(), duration, cmd_context.config.log_file)


def start(
    additional_hooks_dir: str = typer.Option("", "--additional-hooks-dir", help=ADDITIONAL_HOOKS_DIR_USAGE),
    autouse_cached_vswitch: bool = typer.Option(
        False, "--autouse-cached-vswitch", help=AUTOUSE_CACHED_VSWITCH_USAGE
    ),
    output: bool = typer.Option(False, "--output", "-o", help=OUTPUT_FLAG_USAGE),
) -> None:
    """Starts K2s cluster on the host machine."""
    console.print(f"\U0001f916 Starting K2s on {platform.system().lower()}/{platform.machine().lower()}")
    _run("start", output, additional_hooks_dir, autouse_cached_vswitch)


def stop(
    additional_hooks_dir: str = typer.Option("", "--additional-hooks-dir", help=ADDITIONAL_HOOKS_DIR_USAGE),
    cache_vswitch: bool = typer.Option(False, "--cache-vswitch", help=CACHE_VSWITCH_USAGE),
    output: bool = typer.Option(False, "--output", "-o", help=OUTPUT_FLAG_USAGE),
) -> None:
    """Stops K2s cluster on the host machine."""
    console.print("\U0001f6d1 Stopping K2s cluster")
    _run("stop", output, additional_hooks_dir, cache_vswitch)
