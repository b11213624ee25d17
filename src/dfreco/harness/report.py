"""Human readable rendering of detection results for the run log."""

from __future__ import annotations

import json

from .errors import HarnessError
from .logging_utils import LogLevel
from .models import DetectionResult

__all__ = ["format_failure", "format_result"]


def _json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def format_result(
    result: DetectionResult, *, include_contexts: bool = False
) -> list[tuple[LogLevel, str]]:
    lines: list[tuple[LogLevel, str]] = [
        (
            LogLevel.INFO,
            f"--- Response for audio file {result.sample_identifier} -----------------------",
        ),
        (LogLevel.INFO, f"   🎤 Query: {result.query_text}"),
        (LogLevel.INFO, f"   🔈 Response: {result.fulfillment_text}"),
    ]
    if result.matched:
        marker = "🧨" if result.intent_is_fallback else "💡"
        confidence = (
            f"{result.intent_confidence:.3f}" if result.intent_confidence is not None else "n/a"
        )
        lines.append((LogLevel.INFO, f"   {marker} Intent: {result.intent_name} ({confidence})"))
    else:
        lines.append((LogLevel.INFO, "   🐞 No intent matched."))
    lines.append((LogLevel.INFO, f"   Parameters: {_json(result.parameters)}"))

    if include_contexts and result.output_contexts:
        lines.append((LogLevel.DEBUG, "   Output contexts:"))
        for ctx in result.output_contexts:
            params = _json(ctx.parameters) if ctx.parameters else "NONE"
            lines.append((LogLevel.DEBUG, f"     {ctx.context_id}"))
            lines.append((LogLevel.DEBUG, f"       lifespan: {ctx.lifespan_count}"))
            lines.append((LogLevel.DEBUG, f"       parameters: {params}"))
    return lines


def format_failure(sample_id: str, exc: BaseException) -> str:
    if isinstance(exc, HarnessError):
        detail = exc.message
        if exc.cause is not None:
            detail = f"{detail} ({type(exc.cause).__name__})"
        return f"❌ {sample_id}: {type(exc).__name__}: {detail}"
    return f"❌ {sample_id}: {type(exc).__name__}: {exc}"
