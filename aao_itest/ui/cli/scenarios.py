"""
CLI commands for scenarios — one command group per scenario.

    aao-itest custom-tags setup
    aao-itest custom-tags test
    aao-itest custom-tags cleanup
    aao-itest custom-tags run
    aao-itest custom-tags explain 3

Each phase command exits with the phase's registered code. Thin
wrappers over ``aao_itest.core.engine.runner``.
"""

from __future__ import annotations

import json
import logging
import os
import time
from functools import partial
from pathlib import Path
from typing import Any

import click

from aao_itest.adapters.base import ClusterClient, IdentityClient
from aao_itest.core.config.settings import ConfigError, HarnessSettings, load_settings
from aao_itest.core.engine.runner import (
    Harness,
    Phase,
    PhaseReport,
    Scenario,
    ScenarioRunner,
    overall_exit_code,
)
from aao_itest.core.services.exit_codes import EXIT_USAGE, UNEXPECTED_ERROR_CODE
from aao_itest.core.services.preflight import default_checks, run_preflight

logger = logging.getLogger(__name__)


class HarnessGroup(click.Group):
    """Group whose usage errors exit with EXIT_USAGE, not click's 2.

    2 is a scenario failure code, so a typo must not look like one.
    """

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_USAGE
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = EXIT_USAGE
            raise


def require_subcommand(ctx: click.Context) -> None:
    """Print usage and exit 64 when a group is called without a verb."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help(), err=True)
        ctx.exit(EXIT_USAGE)


# ── Wiring ──────────────────────────────────────────────────────


def _default_cluster(settings: HarnessSettings) -> ClusterClient:
    from aao_itest.adapters.cluster import CliClusterClient

    return CliClusterClient(settings.cli, request_timeout=int(settings.request_timeout))


def _default_identity(settings: HarnessSettings) -> IdentityClient:
    from aao_itest.adapters.aws import StsIdentityClient

    return StsIdentityClient(region_name=settings.aws_region)


def _build_runner(ctx: click.Context, scenario_cls: type[Scenario]) -> ScenarioRunner:
    """Load settings, construct collaborators and the scenario.

    ``ctx.obj`` may carry ``cluster_factory`` / ``identity_factory`` /
    ``sleep`` / ``clock`` overrides (used by tests).

    Raises:
        ConfigError: If settings or scenario config are invalid.
    """
    obj = ctx.obj or {}
    config_path: Path | None = obj.get("config_path")
    settings = load_settings(config_path)

    cluster_factory = obj.get("cluster_factory", _default_cluster)
    identity_factory = obj.get("identity_factory", _default_identity)
    cluster = cluster_factory(settings)

    harness = Harness(
        cluster=cluster,
        settings=settings,
        identity=identity_factory(settings),
        sleep=obj.get("sleep", time.sleep),
        clock=obj.get("clock", time.monotonic),
    )
    config = scenario_cls.build_config(settings, os.environ)
    scenario = scenario_cls(harness, config)

    preflight = None
    if settings.skip_preflight:
        logger.info("Skipping pre-flight checks")
    else:
        checks = default_checks(cluster, settings.operator_namespace)
        preflight = partial(run_preflight, checks)

    return ScenarioRunner(scenario, preflight=preflight, clock=harness.clock)


def _emit(reports: list[PhaseReport], as_json: bool) -> None:
    if as_json:
        payload = [r.to_dict() for r in reports]
        click.echo(json.dumps(payload[0] if len(payload) == 1 else payload, indent=2))


def _run(ctx: click.Context, scenario_cls: type[Scenario], phases: list[Phase] | None, as_json: bool) -> None:
    try:
        runner = _build_runner(ctx, scenario_cls)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        ctx.exit(UNEXPECTED_ERROR_CODE)
        return

    if phases is None:
        reports = runner.run_all()
    else:
        reports = [runner.run_phase(phase) for phase in phases]

    _emit(reports, as_json)
    ctx.exit(overall_exit_code(reports))


# ── Group factory ───────────────────────────────────────────────


def scenario_group(scenario_cls: type[Scenario]) -> click.Group:
    """Build the ``<scenario> setup|test|cleanup|run|explain`` group."""

    @click.group(scenario_cls.name, cls=HarnessGroup, invoke_without_command=True, help=scenario_cls.description)
    @click.pass_context
    def group(ctx: click.Context) -> None:
        require_subcommand(ctx)

    def _phase_command(phase: Phase, help_text: str) -> None:
        @group.command(phase.value, help=help_text)
        @click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the phase report as JSON.")
        @click.pass_context
        def command(ctx: click.Context, as_json: bool) -> None:
            _run(ctx, scenario_cls, [phase], as_json)

    _phase_command(Phase.SETUP, "Create the scenario's resources and wait until Ready.")
    _phase_command(Phase.TEST, "Run the assertions against the live resources.")
    _phase_command(Phase.CLEANUP, "Delete everything setup may have created.")

    @group.command("run")
    @click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the phase reports as JSON.")
    @click.pass_context
    def run_all(ctx: click.Context, as_json: bool) -> None:
        """Setup, test (if setup passed) and cleanup in one go."""
        _run(ctx, scenario_cls, None, as_json)

    @group.command("explain")
    @click.argument("code", type=int)
    def explain(code: int) -> None:
        """Print the meaning of an exit code."""
        click.echo(scenario_cls.registry.explain(code))

    @group.command("codes")
    @click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
    def codes(as_json: bool) -> None:
        """List every exit code this scenario can return."""
        entries = scenario_cls.registry.entries()
        if as_json:
            click.echo(json.dumps({str(code): text for code, text in entries}, indent=2))
            return
        for code, text in entries:
            click.echo(f"{code:>3}  {text}")

    return group
