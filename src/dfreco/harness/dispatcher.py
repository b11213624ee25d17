"""Run dispatcher: drives every sample of a batch through the detection client."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .catalog import AudioSample, SampleCatalog, scan_directory
from .config import HarnessConfig
from .detection import DetectionClient
from .errors import HarnessError, attach_context
from .logging_utils import OrderedLogCache, RunLogger
from .models import DetectionResult
from .report import format_failure, format_result
from .session import SessionPlan, SessionSpec, SessionStrategy, plan_sessions

__all__ = ["RunDispatcher", "RunReport", "RunState"]

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING_INITIAL = "running_initial"
    RUNNING_BATCH = "running_batch"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunReport:
    run_id: str
    directory: Path
    state: RunState = RunState.IDLE
    strategy: SessionStrategy | None = None
    initial: str | None = None
    dispatched: list[str] = field(default_factory=list)
    sessions: dict[str, str] = field(default_factory=dict)
    results: dict[str, DetectionResult] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "directory": self.directory.as_posix(),
            "state": self.state.value,
            "strategy": self.strategy.value if self.strategy else None,
            "initial": self.initial,
            "dispatched": len(self.dispatched),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": dict(self.failures),
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


class RunDispatcher:
    """Sequence the initial sample, then fan out the rest of the batch.

    The initial sample (if any) is awaited before anything else is sent since
    later turns depend on the state it seeds.  Ordinary samples are then
    dispatched in catalog order, all at once when ``config.concurrent`` is set,
    and joined before :meth:`run` returns.  A failing sample is logged under
    its own identifier and never affects its siblings.
    """

    def __init__(
        self,
        config: HarnessConfig,
        client: DetectionClient,
        cache: OrderedLogCache,
        *,
        corelog: RunLogger | None = None,
        id_factory: Callable[[], str] | None = None,
        run_id: str | None = None,
    ):
        self.config = config
        self.client = client
        self.cache = cache
        self.corelog = corelog
        self.id_factory = id_factory
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, report: RunReport, state: RunState) -> None:
        logger.debug("run %s: %s -> %s", self.run_id, self._state.value, state.value)
        self._state = state
        report.state = state

    def _run_log(self) -> logging.Logger:
        return self.corelog.log if self.corelog is not None else logger

    def _plan(self, catalog: SampleCatalog) -> SessionPlan:
        if self.id_factory is None:
            return plan_sessions(catalog, self.config.context_override)
        return plan_sessions(catalog, self.config.context_override, id_factory=self.id_factory)

    async def run(self, directory: Path | str | None = None) -> RunReport:
        """Run the whole batch found in ``directory``.

        Raises:
            DirectoryReadError: the directory cannot be listed.
            ConfigurationError: the batch is unusable (e.g. duplicate initial
                samples in strict mode).
        """

        if self._state is not RunState.IDLE:
            raise RuntimeError(f"dispatcher already used (state={self._state.value})")

        target = Path(directory) if directory is not None else self.config.require_testing_path()
        report = RunReport(run_id=self.run_id, directory=target)
        started = time.perf_counter()
        log = self._run_log()
        log.info("Reading audio files from folder %s", target)

        try:
            catalog = scan_directory(
                target,
                extension=self.config.audio_extension,
                initial_prefix=self.config.initial_prefix,
                strict_initial=self.config.strict_initial,
                log=log,
            )
            plan = self._plan(catalog)
        except HarnessError:
            self._transition(report, RunState.FAILED)
            report.elapsed_ms = (time.perf_counter() - started) * 1000.0
            raise

        report.strategy = plan.strategy
        report.sessions = {key: spec.session_id for key, spec in plan.assignments.items()}

        if catalog.initial is not None:
            self._transition(report, RunState.RUNNING_INITIAL)
            report.initial = catalog.initial.identifier
            log.info("Initializing context with audio file '%s'.", catalog.initial.identifier)
            await self._run_sample(catalog.initial, plan.session_for(catalog.initial), report)

        self._transition(report, RunState.RUNNING_BATCH)
        if self.config.concurrent:
            await asyncio.gather(
                *(
                    self._run_sample(sample, plan.session_for(sample), report)
                    for sample in catalog.samples
                )
            )
        else:
            for sample in catalog.samples:
                await self._run_sample(sample, plan.session_for(sample), report)

        report.elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._transition(report, RunState.COMPLETED)
        return report

    async def _run_sample(
        self, sample: AudioSample, session: SessionSpec, report: RunReport
    ) -> None:
        sample_id = sample.identifier
        report.dispatched.append(sample_id)
        self.cache.debug(
            sample_id, f"Reading audio from file '{sample_id}' (session {session.session_id})."
        )
        try:
            result = await self.client.detect(session, sample)
        except Exception as exc:  # SampleError or anything unexpected stays with this sample
            self._record_failure(sample, session, exc, report)
        else:
            for level, line in format_result(
                result, include_contexts=self.config.log_output_contexts
            ):
                self.cache.record(sample_id, level, line)
            report.results[sample_id] = result
            if self.corelog is not None:
                self.corelog.event(sample_id, "result", **result.model_dump())

    def _record_failure(
        self, sample: AudioSample, session: SessionSpec, exc: Exception, report: RunReport
    ) -> None:
        sample_id = sample.identifier
        message = format_failure(sample_id, exc)
        self.cache.error(sample_id, message)
        report.failures[sample_id] = message
        if self.corelog is not None:
            where = {"session_id": session.session_id, "file": sample.path.as_posix()}
            if isinstance(exc, HarnessError):
                context = dict(attach_context(exc, where).context)
            else:
                context = where
            self.corelog.event(
                sample_id,
                "error",
                error=f"{type(exc).__name__}: {exc}",
                context=context,
            )
