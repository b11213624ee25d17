"""Command line interface for the dfreco audio regression harness."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import typer

from .harness.catalog import scan_directory
from .harness.config import HarnessConfig
from .harness.errors import HarnessError
from .harness.logging_utils import _make_json_safe
from .harness.runner import run_harness_sync
from .harness.session import plan_sessions

# Enable rich-rendered help panels by default; allow opt-out via DF_RECO_CLI_RICH=0/false.
_rich_pref = os.getenv("DF_RECO_CLI_RICH", "").strip().lower()
try:  # Typer <0.12.3 lacks rich_utils
    typer.rich_utils.USE_RICH = _rich_pref not in {"0", "false", "no", "off"}  # type: ignore[attr-defined]
except AttributeError:
    pass

app = typer.Typer(help="Replay recorded audio samples against a Dialogflow agent.")


def _load_config(**overrides: Any) -> HarnessConfig:
    try:
        return HarnessConfig.from_env(**overrides)
    except HarnessError as exc:
        raise typer.BadParameter(str(exc)) from exc


def core_run(config: HarnessConfig, directory: Path | None):
    return run_harness_sync(config, directory)


@app.command(help="Run every sample in DIRECTORY and log the detected intents.")
def run(
    directory: Path | None = typer.Argument(
        None, help="Testing directory (defaults to DF_RECO_TESTING_PATH)"
    ),
    project: str | None = typer.Option(None, help="Dialogflow project id"),
    language: str | None = typer.Option(None, help="Language code, e.g. de-DE"),
    fixed_context: str | None = typer.Option(
        None, help="Reset contexts and pin this context before every sample"
    ),
    context_lifespan: int | None = typer.Option(
        None, help="Lifespan (turns) of the pinned context"
    ),
    sample_rate: int | None = typer.Option(None, help="Sample rate of the audio files (Hz)"),
    credentials: Path | None = typer.Option(
        None, help="Service account JSON (overrides GOOGLE_APPLICATION_CREDENTIALS)"
    ),
    log_dir: Path | None = typer.Option(None, help="Directory for run log files"),
    serial: bool = typer.Option(
        False, "--serial", help="Send ordinary samples one after another", is_flag=True
    ),
    strict_initial: bool = typer.Option(
        False,
        "--strict-initial",
        help="Fail when more than one initial sample is present",
        is_flag=True,
    ),
    output_contexts: bool = typer.Option(
        False, "--output-contexts", help="Log output contexts of every response", is_flag=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug lines on console"),
):
    config = _load_config(
        testing_path=directory,
        project_id=project,
        language_code=language,
        fixed_context=fixed_context,
        context_lifespan=context_lifespan,
        sample_rate_hertz=sample_rate,
        credentials=credentials,
        log_dir=log_dir,
        concurrent=False if serial else None,
        strict_initial=strict_initial or None,
        log_output_contexts=output_contexts or None,
        verbose=verbose or None,
    )
    try:
        report = core_run(config, config.require_testing_path())
    except HarnessError as exc:
        typer.secho(f"Run failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(json.dumps(_make_json_safe(report.summary()), indent=2))


@app.command(help="List the samples in DIRECTORY and the session strategy without sending.")
def scan(
    directory: Path | None = typer.Argument(
        None, help="Testing directory (defaults to DF_RECO_TESTING_PATH)"
    ),
    strict_initial: bool = typer.Option(False, "--strict-initial", is_flag=True),
):
    config = _load_config(testing_path=directory, strict_initial=strict_initial or None)
    try:
        catalog = scan_directory(
            config.require_testing_path(),
            extension=config.audio_extension,
            initial_prefix=config.initial_prefix,
            strict_initial=config.strict_initial,
        )
    except HarnessError as exc:
        typer.secho(f"Scan failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    plan = plan_sessions(catalog, config.context_override)
    payload = {
        "directory": catalog.directory,
        "initial": catalog.initial.filename if catalog.initial else None,
        "samples": [sample.filename for sample in catalog.samples],
        "strategy": plan.strategy,
        "sessions": len(plan.session_ids()),
    }
    typer.echo(json.dumps(_make_json_safe(payload), indent=2))


def main() -> None:
    """Console script entry point for the dfreco CLI (Typer app)."""
    app()


if __name__ == "__main__":  # pragma: no cover
    app()
