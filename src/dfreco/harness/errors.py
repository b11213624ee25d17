"""Unified error types for the dfreco test harness.

Only two families exist: run-fatal errors (the catalog could not be read or
the configuration is unusable) and per-sample errors (a detection call or the
decoding of its payload failed).  Per-sample errors carry the sample
identifier so the dispatcher can file them under the right log key; they never
abort the batch.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "HarnessError",
    "DirectoryReadError",
    "ConfigurationError",
    "DuplicateInitialSampleError",
    "SampleError",
    "DetectionCallError",
    "DecodeError",
    "attach_context",
    "coerce_detection_error",
]


@dataclass(slots=True)
class HarnessError(RuntimeError):
    """Base class for harness level failures.

    Attributes
    ----------
    message:
        Human readable description of the failure.
    sample:
        Sample identifier (``None`` for run level issues).
    context:
        JSON serialisable dictionary with diagnostics for the run log.
    cause:
        Underlying exception (kept for debugging, not included in ``__str__``).
    """

    message: str
    sample: str | None = None
    context: MutableMapping[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __post_init__(self) -> None:  # pragma: no cover - trivial
        if self.context is None:
            self.context = {}

    def __str__(self) -> str:
        if self.sample:
            return f"[{self.sample}] {self.message}"
        return self.message


class DirectoryReadError(HarnessError):
    """Raised when the testing directory is missing or cannot be listed."""


class ConfigurationError(HarnessError):
    """Raised when configuration validation fails."""


class DuplicateInitialSampleError(ConfigurationError):
    """Raised in strict mode when more than one initial sample is present."""


class SampleError(HarnessError):
    """Base class for errors confined to a single sample."""


class DetectionCallError(SampleError):
    """Raised when reading a sample or calling the detection service fails."""


class DecodeError(SampleError):
    """Raised when the structured parameter payload cannot be decoded."""


def attach_context(
    error: HarnessError,
    context: Mapping[str, Any] | None,
) -> HarnessError:
    """Merge ``context`` into ``error.context`` preserving existing keys."""

    if not context:
        return error
    for key, value in context.items():
        error.context.setdefault(key, value)
    return error


def coerce_detection_error(
    sample: str,
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> DetectionCallError:
    """Create :class:`DetectionCallError` with a rich context payload."""

    payload: MutableMapping[str, Any] = {}
    if context:
        payload.update(context)
    if cause:
        payload.setdefault("cause", repr(cause))
    return DetectionCallError(message=message, sample=sample, context=payload, cause=cause)
