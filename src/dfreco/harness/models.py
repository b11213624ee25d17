"""Pydantic models for normalised detection results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OutputContextSummary(BaseModel):
    """An output context reported by the service after a turn."""

    model_config = ConfigDict(frozen=True)

    context_id: str = Field(..., description="Short context id (last path segment)")
    lifespan_count: int = Field(0, description="Remaining turns the context stays active")
    parameters: dict[str, Any] = Field(default_factory=dict)


class DetectionResult(BaseModel):
    """Outcome of one successful detection call."""

    model_config = ConfigDict(frozen=True)

    sample_identifier: str = Field(..., description="Filename of the sample")
    session_id: str = Field(..., description="Remote session the call ran in")
    query_text: str = Field("", description="Recognised utterance")
    fulfillment_text: str = Field("", description="Agent response text")
    intent_name: str | None = Field(None, description="Display name of the matched intent")
    intent_is_fallback: bool = False
    intent_confidence: float | None = Field(None, ge=0.0, le=1.0)
    parameters: dict[str, Any] = Field(default_factory=dict)
    output_contexts: list[OutputContextSummary] = Field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.intent_name is not None
