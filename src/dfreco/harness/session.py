"""Session policy: which remote session each sample talks to."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .catalog import AudioSample, SampleCatalog
from .config import ContextOverride, NoContextOverride

__all__ = ["SessionSpec", "SessionStrategy", "SessionPlan", "plan_sessions"]


def _new_session_id() -> str:
    return str(uuid.uuid4())


class SessionStrategy(str, Enum):
    """How samples of a batch are mapped onto remote sessions."""

    SHARED = "shared"
    INDEPENDENT = "independent"


@dataclass(slots=True, frozen=True)
class SessionSpec:
    """A remote conversational session; the id is fixed at creation."""

    session_id: str
    context_override: ContextOverride = field(default_factory=NoContextOverride)


@dataclass(slots=True, frozen=True)
class SessionPlan:
    """Assignment of every sample in a catalog to a :class:`SessionSpec`."""

    strategy: SessionStrategy
    assignments: dict[str, SessionSpec]

    def session_for(self, sample: AudioSample) -> SessionSpec:
        try:
            return self.assignments[sample.identifier]
        except KeyError:
            raise KeyError(f"Sample {sample.identifier!r} is not part of this plan") from None

    def session_ids(self) -> set[str]:
        return {spec.session_id for spec in self.assignments.values()}


def plan_sessions(
    catalog: SampleCatalog,
    context_override: ContextOverride | None = None,
    *,
    id_factory: Callable[[], str] = _new_session_id,
) -> SessionPlan:
    """Decide the session strategy for ``catalog``.

    An initial sample seeds conversational state the later turns depend on, so
    its presence puts the whole batch on one shared session created up front.
    Without one, every ordinary sample is an independent single-turn probe
    with a session of its own.
    """

    override = context_override if context_override is not None else NoContextOverride()

    if catalog.initial is not None:
        shared = SessionSpec(id_factory(), override)
        assignments = {sample.identifier: shared for sample in catalog.all_samples()}
        return SessionPlan(SessionStrategy.SHARED, assignments)

    assignments = {
        sample.identifier: SessionSpec(id_factory(), override) for sample in catalog.samples
    }
    return SessionPlan(SessionStrategy.INDEPENDENT, assignments)
