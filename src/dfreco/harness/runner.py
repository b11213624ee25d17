"""Top-level entry point tying a configuration to one complete harness run."""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

from .config import HarnessConfig
from .detection import DetectionClient, SessionsClientLike
from .dispatcher import RunDispatcher, RunReport
from .errors import HarnessError
from .logging_utils import OrderedLogCache, RunLogger, _fmt_hms_ms

__all__ = ["run_harness", "run_harness_sync"]


async def run_harness(
    config: HarnessConfig,
    directory: Path | str | None = None,
    *,
    client: SessionsClientLike | None = None,
    corelog: RunLogger | None = None,
) -> RunReport:
    """Run every sample in ``directory`` and flush the ordered log.

    Fatal errors (unreadable directory, unusable configuration) are logged once
    and re-raised; no per-sample lines are emitted in that case.
    """

    run_id = uuid.uuid4().hex[:12]
    owns_logger = corelog is None
    if corelog is None:
        corelog = RunLogger(
            run_id,
            config.log_dir,
            console_level=logging.DEBUG if config.verbose else logging.INFO,
        )
    cache = OrderedLogCache()
    corelog.info(
        "Connecting with credentials from %s.",
        config.credentials or "application default credentials",
    )
    try:
        async with DetectionClient(config, client) as detection:
            dispatcher = RunDispatcher(config, detection, cache, corelog=corelog, run_id=run_id)
            try:
                report = await dispatcher.run(directory)
            except HarnessError as exc:
                corelog.error("Run aborted: %s", exc)
                corelog.event(None, "fatal", error=f"{type(exc).__name__}: {exc}")
                raise

        cache.flush(corelog.log)
        corelog.info(
            "Run finished: %d ok, %d failed in %s",
            report.succeeded,
            report.failed,
            _fmt_hms_ms(report.elapsed_ms),
        )
        corelog.event(None, "summary", **report.summary())
        return report
    finally:
        if owns_logger:
            corelog.close()


def run_harness_sync(config: HarnessConfig, directory: Path | str | None = None) -> RunReport:
    return asyncio.run(run_harness(config, directory))
