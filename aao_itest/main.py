"""
AAO integration-test harness — CLI entrypoint.

Usage:
    aao-itest --help
    aao-itest list
    aao-itest custom-tags setup
    aao-itest byoc-credentials explain 4
    python -m aao_itest.main custom-tags run
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import click

from aao_itest import __version__
from aao_itest.core.observability.logging_config import DEFAULT_LEVEL, setup_logging
from aao_itest.scenarios import SCENARIOS
from aao_itest.ui.cli.scenarios import HarnessGroup, require_subcommand, scenario_group


@click.group(cls=HarnessGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="aao-itest")
@click.option("--verbose", "-v", is_flag=True, help="Debug output from the harness itself.")
@click.option("--quiet", "-q", is_flag=True, help="Only warnings and errors.")
@click.option("--debug", is_flag=True, help="Debug logging everywhere, including the AWS SDK.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to itest.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Integration tests for the AWS Account Operator."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug or verbose:
        level = "DEBUG"
    elif quiet:
        level = "WARNING"
    else:
        level = os.environ.get("AAO_ITEST_LOG_LEVEL", DEFAULT_LEVEL)

    setup_logging(
        level=level,
        log_file=os.environ.get("AAO_ITEST_LOG_FILE"),
        log_file_level=os.environ.get("AAO_ITEST_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )

    require_subcommand(ctx)


@cli.command("list")
@click.option("--codes", "show_codes", is_flag=True, help="Include each scenario's exit codes.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_scenarios(show_codes: bool, as_json: bool) -> None:
    """List the available scenarios."""
    if as_json:
        payload = {
            name: {
                "description": scenario.description,
                "codes": {str(code): text for code, text in scenario.registry.entries()},
            }
            for name, scenario in SCENARIOS.items()
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for name, scenario in SCENARIOS.items():
        click.echo(f"{name:<20} {scenario.description}")
        if show_codes:
            for code, text in scenario.registry.entries():
                click.echo(f"{'':<20}   {code:>3}  {text}")


# ── Register scenario groups ────────────────────────────────────

for _scenario in SCENARIOS.values():
    cli.add_command(scenario_group(_scenario))


if __name__ == "__main__":
    cli()
