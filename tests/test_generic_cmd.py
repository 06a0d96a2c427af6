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

import click
import pytest

from k2s_cli.addons.model import Addon, AddonCmd, Addons, CliFlag
from k2s_cli.commands.generic_cmd import build_commands, build_option, build_ps_params, format_epilog
from k2s_cli.errors import CmdFailure, ConstraintError, MissingCommandConfigError

from conftest import invoke_cli, write_setup


def _enable_cmd(cmd_context) -> AddonCmd:
    return cmd_context.catalog.load().find("dashboard").implementations[0].commands["enable"]


# ============================================================================
# Parameter building
# ============================================================================

def test_build_ps_params(cmd_context) -> None:
    params = build_ps_params(_enable_cmd(cmd_context), [
        ("ingress", "nginx"), ("metrics", True), ("output", True), ("replicas", 3),
    ])
    assert params == ["-Ingress nginx", "-EnableMetrics", "-ShowLogs", "-Replicas 3"]


def test_false_bool_flag_is_not_passed(cmd_context) -> None:
    assert build_ps_params(_enable_cmd(cmd_context), [("metrics", False)]) == []


def test_unmapped_flag_is_skipped(cmd_context) -> None:
    assert build_ps_params(_enable_cmd(cmd_context), [("proxy", "http://proxy:8080")]) == []


def test_constraint_violation_names_the_flag(cmd_context) -> None:
    with pytest.raises(ConstraintError, match=r"validation error for flag 'replicas': '9' is out of range \[1,5\]"):
        build_ps_params(_enable_cmd(cmd_context), [("replicas", 9)])


def test_exclusive_flags(cmd_context) -> None:
    with pytest.raises(ConstraintError, match="flags offline, proxy are mutually exclusive"):
        build_ps_params(_enable_cmd(cmd_context), [("offline", True), ("proxy", "http://proxy:8080")])


def test_build_option_types() -> None:
    assert build_option(CliFlag(name="count", default=2)).type is click.INT
    assert build_option(CliFlag(name="ratio", default=0.5)).type is click.FLOAT
    assert build_option(CliFlag(name="name", default="x", shorthand="n")).opts == ["--name", "-n"]

    switch = build_option(CliFlag(name="metrics", default=False))
    assert switch.is_flag
    assert switch.secondary_opts == []

    toggle = build_option(CliFlag(name="dns", default=True))
    assert toggle.is_flag
    assert toggle.secondary_opts == ["--no-dns"]


def test_format_epilog(cmd_context) -> None:
    examples = _enable_cmd(cmd_context).cli.examples
    assert format_epilog(examples) == (
        "Examples:\n\n\b\n  // enable with ingress\n  k2s addons enable dashboard --ingress nginx"
    )
    assert format_epilog([]) is None


# ============================================================================
# Command tree
# ============================================================================

def test_build_commands(cmd_context) -> None:
    groups = build_commands(cmd_context.catalog.load())

    assert [group.name for group in groups] == ["disable", "enable"]
    enable = groups[1]
    assert enable.help == "Runs 'enable' for the specific addon"
    assert isinstance(enable.commands["dashboard"], click.Command)
    assert not isinstance(enable.commands["dashboard"], click.Group)
    assert sorted(enable.commands["ingress"].commands) == ["nginx", "traefik"]
    assert enable.commands["ingress"].commands["nginx"].help == (
        "Runs 'enable' for 'nginx' implementation of 'ingress' addon"
    )


def test_build_commands_requires_command_config() -> None:
    addon = Addon.model_validate({
        "apiVersion": "v1",
        "metadata": {"name": "empty"},
        "spec": {"implementations": [{"name": "empty"}]},
    })
    with pytest.raises(MissingCommandConfigError, match="no cmd config found for addon 'empty'"):
        build_commands(Addons([addon]))


def test_help_shows_constraints_and_examples(cmd_context) -> None:
    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard", "--help"])

    assert result.exit_code == 0, result.output
    assert "[none|nginx|traefik]" in result.output
    assert "k2s addons enable dashboard --ingress nginx" in result.output


# ============================================================================
# Execution
# ============================================================================

def test_enable_passes_only_explicit_flags(cmd_context, structured_runner, config_dir) -> None:
    write_setup(config_dir, SetupType="k2s")

    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard", "-i", "nginx", "--replicas", "3", "-o"])

    assert result.exit_code == 0, result.output
    call = structured_runner.calls[0]
    assert call.script.endswith("Enable.ps1'")
    assert str(cmd_context.catalog.addons_dir / "dashboard") in call.script
    assert call.message_type == "CmdResult"
    assert call.params == ("-Ingress nginx", "-ShowLogs", "-Replicas 3")
    assert "Running 'enable' for 'dashboard' addon" in result.output
    assert "'addons enable dashboard' completed" in result.output


def test_enable_without_flags(cmd_context, structured_runner, config_dir) -> None:
    write_setup(config_dir, SetupType="k2s")

    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard"])

    assert result.exit_code == 0, result.output
    assert structured_runner.calls[0].params == ()


def test_enable_implementation(cmd_context, structured_runner, config_dir) -> None:
    write_setup(config_dir, SetupType="k2s")

    result = invoke_cli(cmd_context, ["addons", "disable", "ingress", "traefik"])

    assert result.exit_code == 0, result.output
    assert "Disable.ps1'" in structured_runner.calls[0].script
    assert "traefik" in structured_runner.calls[0].script
    assert "implementation 'traefik' of 'ingress' addon" in result.output


def test_invalid_flag_value_stops_before_running(cmd_context, structured_runner, config_dir) -> None:
    write_setup(config_dir, SetupType="k2s")

    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard", "--ingress", "haproxy"])

    assert isinstance(result.exception, ConstraintError)
    assert "validation error for flag 'ingress'" in str(result.exception)
    assert not structured_runner.calls


def test_enable_when_not_installed(cmd_context, structured_runner) -> None:
    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard"])

    assert result.exception.code == "system-not-installed"
    assert not structured_runner.calls


def test_enable_raises_script_failure(cmd_context, structured_runner, config_dir) -> None:
    write_setup(config_dir, SetupType="k2s")
    structured_runner.payloads.append(
        {"error": {"severity": 3, "code": "addon-already-enabled", "message": "already enabled",
                   "suppressCliOutput": True}})

    result = invoke_cli(cmd_context, ["addons", "enable", "dashboard"])

    assert isinstance(result.exception, CmdFailure)
    assert result.exception.code == "addon-already-enabled"
    assert result.exception.suppress_cli_output
