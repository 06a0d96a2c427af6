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

"""
cli.py - Command-line front end for K2s.

Subcommands:
    addons   List, export and inspect addons; enable/disable and the other
             addon commands are generated from the addon manifests
    start    Start the K2s cluster
    stop     Stop the K2s cluster

Examples:
    # List addons and their state
    k2s addons ls

    # Enable an addon with a flag taken from its manifest
    k2s addons enable ingress nginx -o

    # Print an addon's status as JSON
    k2s addons status registry -o json

For detailed usage information, run: k2s --help
"""

from __future__ import annotations

import sys

import click
import typer
from rich.markup import escape

from k2s_cli import console, logger
from k2s_cli.addons import AddonCatalog
from k2s_cli.commands import addons_cmd, lifecycle_cmd
from k2s_cli.commands.common import CmdContext, log_addons
from k2s_cli.config import CliConfig
from k2s_cli.errors import CmdFailure, Severity
from k2s_cli.logs import configure_logging, parse_level

app = typer.Typer(
    help="k2s - Kubernetes distribution for Windows & Linux workloads.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbosity: str = typer.Option("info", "--verbosity", "-v", help="Log level: debug, info, warning or error"),
) -> None:
    """Initialize logging for all subcommands."""
    try:
        parse_level(verbosity)
    except ValueError as err:
        raise typer.BadParameter(str(err), param_hint="'--verbosity'") from err

    cmd_context = click.get_current_context().find_object(CmdContext)
    if cmd_context is None:
        return
    cmd_context.config = cmd_context.config.model_copy(update={"log_level": verbosity})
    configure_logging(cmd_context.config.log_file, verbosity)
    logger.debug("Logging initialized (level=%s, file=%s)", verbosity, cmd_context.config.log_file)


app.add_typer(addons_cmd.app, name="addons")
app.command("start")(lifecycle_cmd.start)
app.command("stop")(lifecycle_cmd.stop)


def build_cli(catalog: AddonCatalog) -> click.Group:
    """Build the full command tree, including the commands generated from the addon manifests.

    Raises:
        ManifestError: If the addon manifests cannot be loaded.
    """
    group = typer.main.get_group(app)
    addons = catalog.load()
    log_addons(addons)
    addons_cmd.register_addon_commands(group.commands["addons"], addons)
    return group


def render_failure(failure: CmdFailure) -> None:
    if failure.suppress_cli_output:
        logger.debug("CLI output of failure '%s' suppressed", failure.code)
        return
    if failure.severity == Severity.WARNING:
        console.print(f"[yellow]\u2139\ufe0f  {escape(failure.message)}[/yellow]")
    else:
        console.print(f"[red]\u274c {escape(failure.message)}[/red]")


def run(args: list[str] | None, cmd_context: CmdContext) -> int:
    """Run the CLI and map failures to an exit code.

    Args:
        args: Command-line arguments without the program name, or None for ``sys.argv``.
        cmd_context: Context handed to the commands.

    Returns:
        Process exit code.
    """
    try:
        cli = build_cli(cmd_context.catalog)
        rv = cli.main(args=args, prog_name="k2s", obj=cmd_context, standalone_mode=False)
    except click.ClickException as err:
        err.show()
        return err.exit_code
    except click.exceptions.Abort:
        console.print("Aborted!")
        return 1
    except CmdFailure as failure:
        logger.error("Command failed: %s", failure)
        render_failure(failure)
        return 1
    except Exception as err:
        logger.exception("Command failed")
        console.print(f"[red]\u274c {escape(str(err))}[/red]")
        return 1
    # click returns the exit code for --help and ctx.exit()
    return rv if isinstance(rv, int) else 0


def main() -> None:
    config = CliConfig()
    configure_logging(config.log_file, config.log_level)
    cmd_context = CmdContext(config=config, catalog=AddonCatalog(config.install_dir))
    sys.exit(run(None, cmd_context))


if __name__ == "__main__":
    main()
