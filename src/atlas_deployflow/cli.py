"""
CLI do Atlas DeployFlow.

    atlas-deployflow run --defaults config/pipeline.defaults.yaml \\
                         --pipeline pipelines/demo.yaml [--local config/local.yaml]

Exit codes:
    0 → run succeeded
    1 → run failed
    2 → run aborted (quality gate ou cancelamento)
    3 → configuração ou definição inválida (nenhuma run iniciada)
"""

from __future__ import annotations

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import click

from atlas_deployflow import __version__
from atlas_deployflow.bootstrap import run_pipeline
from atlas_deployflow.core.config.errors import ConfigError
from atlas_deployflow.core.engine.planner import PlanError
from atlas_deployflow.core.exceptions import EngineConfigurationError
from atlas_deployflow.core.pipeline.types import RunStatus


EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2
EXIT_INVALID = 3

_EXIT_BY_STATUS = {
    RunStatus.SUCCEEDED: EXIT_SUCCEEDED,
    RunStatus.FAILED: EXIT_FAILED,
    RunStatus.ABORTED: EXIT_ABORTED,
}


@click.group()
@click.version_option(version=__version__, prog_name="atlas-deployflow")
@click.help_option("-h", "--help")
def cli() -> None:
    """Atlas DeployFlow - orquestrador sequencial de pipelines de CI/CD."""


@cli.command("run")
@click.option("--defaults", "defaults_path", required=True, type=click.Path(dir_okay=False, path_type=Path), help="Config defaults (YAML/JSON)")
@click.option("--pipeline", "pipeline_path", required=True, type=click.Path(dir_okay=False, path_type=Path), help="Pipeline definition (YAML/JSON)")
@click.option("--local", "local_path", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Optional local override")
@click.option("--run-id", default=None, help="Explicit run id (default: timestamp + random suffix)")
def run_command(defaults_path: Path, pipeline_path: Path, local_path: Optional[Path], run_id: Optional[str]) -> None:
    """Executa uma run do pipeline e sai com o código do status terminal."""
    cancel_event = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())

    try:
        result = run_pipeline(
            defaults_path=defaults_path,
            pipeline_path=pipeline_path,
            local_path=local_path,
            run_id=run_id,
            cancel_event=cancel_event,
        )
    except (ConfigError, PlanError, EngineConfigurationError, ValueError, FileNotFoundError) as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(EXIT_INVALID)
    finally:
        signal.signal(signal.SIGINT, previous)

    click.echo(f"[RUN] {result.run_id}: {result.status.value}" + (f" ({result.reason})" if result.reason else ""))
    for stage_id, stage_result in result.stages.items():
        click.echo(f"  * {stage_id}: {stage_result.status.value} - {stage_result.summary}")
    if result.notification is not None and result.notification.skipped:
        click.echo("  [WARN] notification skipped: no recipients configured", err=True)
    elif result.notification is not None and not result.notification.sent:
        click.echo("  [WARN] notification not delivered", err=True)

    sys.exit(_EXIT_BY_STATUS.get(result.status, EXIT_FAILED))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
