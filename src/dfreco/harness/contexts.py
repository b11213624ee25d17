"""Context pinning directives attached to detection requests."""

from __future__ import annotations

from dataclasses import dataclass

from .config import ContextOverride, PinnedContext

__all__ = ["ContextDirective", "PinnedContextRef", "context_path", "context_id", "pin_context"]


def context_path(project_id: str, session_id: str, context_name: str) -> str:
    """Return the fully qualified resource name of a session context.

    Context names are case-folded because the service stores them lower-case.
    """

    return (
        f"projects/{project_id}/agent/sessions/{session_id}"
        f"/contexts/{context_name.strip().casefold()}"
    )


def context_id(resource_name: str) -> str:
    """Return the short context id from a fully qualified context name."""

    return resource_name.rsplit("/contexts/", 1)[-1]


@dataclass(slots=True, frozen=True)
class PinnedContextRef:
    name: str
    lifespan_count: int


@dataclass(slots=True, frozen=True)
class ContextDirective:
    """Reset the session's contexts, then activate ``contexts``."""

    contexts: tuple[PinnedContextRef, ...]
    reset_contexts: bool = True


def pin_context(
    override: ContextOverride | None,
    project_id: str,
    session_id: str,
) -> ContextDirective | None:
    """Translate ``override`` into a request directive for ``session_id``."""

    if not isinstance(override, PinnedContext):
        return None
    ref = PinnedContextRef(
        name=context_path(project_id, session_id, override.name),
        lifespan_count=override.lifespan,
    )
    return ContextDirective(contexts=(ref,))
