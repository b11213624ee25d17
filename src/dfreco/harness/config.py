"""Configuration for a harness run.

The configuration is built once (usually from the environment and a ``.env``
file) and passed by reference into the dispatcher, the session policy and the
detection client.  Nothing downstream reads environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Final

from dotenv import dotenv_values

from .errors import ConfigurationError

__all__ = [
    "AUDIO_ENCODINGS",
    "DEFAULT_CONTEXT_LIFESPAN",
    "ENV_PREFIX",
    "HarnessConfig",
    "NoContextOverride",
    "PinnedContext",
    "ContextOverride",
]

ENV_PREFIX: Final[str] = "DF_RECO_"
DEFAULT_PROJECT_ID: Final[str] = "df-reco-testing"
DEFAULT_LANGUAGE_CODE: Final[str] = "de-DE"
DEFAULT_CONTEXT_LIFESPAN: Final[int] = 5
AUDIO_ENCODINGS: Final[frozenset[str]] = frozenset(
    {
        "AUDIO_ENCODING_LINEAR_16",
        "AUDIO_ENCODING_FLAC",
        "AUDIO_ENCODING_MULAW",
        "AUDIO_ENCODING_AMR",
        "AUDIO_ENCODING_AMR_WB",
        "AUDIO_ENCODING_OGG_OPUS",
        "AUDIO_ENCODING_SPEEX_WITH_HEADER_BYTE",
    }
)

# environment variable -> config field
_ENV_FIELDS: Final[dict[str, str]] = {
    "DF_RECO_TESTING_PATH": "testing_path",
    "DF_RECO_PROJECT_ID": "project_id",
    "DF_RECO_LANGUAGE_CODE": "language_code",
    "DF_RECO_FIXED_CONTEXT": "fixed_context",
    "DF_RECO_SAMPLE_RATE": "sample_rate_hertz",
    "DF_RECO_AUDIO_ENCODING": "audio_encoding",
    "DF_RECO_LOG_DIR": "log_dir",
    "GOOGLE_APPLICATION_CREDENTIALS": "credentials",
}


@dataclass(slots=True, frozen=True)
class NoContextOverride:
    """Requests keep whatever contexts the session accumulated."""

    def __bool__(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class PinnedContext:
    """Reset the session and activate ``name`` before every detection call."""

    name: str
    lifespan: int = DEFAULT_CONTEXT_LIFESPAN

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError("pinned context name must not be empty")
        if self.lifespan <= 0:
            raise ConfigurationError("pinned context lifespan must be an integer > 0")


ContextOverride = NoContextOverride | PinnedContext


def _ensure_numeric_range(
    name: str,
    value: float,
    *,
    ge: float | None = None,
    gt: float | None = None,
) -> None:
    if ge is not None and value < ge:
        raise ConfigurationError(f"{name} must be >= {ge}")
    if gt is not None and value <= gt:
        raise ConfigurationError(f"{name} must be > {gt}")


def _coerce_optional_path(value: Path | str | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(value).expanduser()


@dataclass(slots=True)
class HarnessConfig:
    """Validated configuration for one harness run."""

    testing_path: Path | None = None
    project_id: str = DEFAULT_PROJECT_ID
    language_code: str = DEFAULT_LANGUAGE_CODE
    fixed_context: str | None = None
    context_lifespan: int = DEFAULT_CONTEXT_LIFESPAN
    audio_extension: str = ".flac"
    initial_prefix: str = "_initial"
    audio_encoding: str = "AUDIO_ENCODING_FLAC"
    sample_rate_hertz: int = 44100
    concurrent: bool = True
    strict_initial: bool = False
    log_output_contexts: bool = False
    log_dir: Path = Path("logs")
    credentials: Path | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        self.testing_path = _coerce_optional_path(self.testing_path)
        self.credentials = _coerce_optional_path(self.credentials)
        self.log_dir = Path(self.log_dir)

        if not isinstance(self.project_id, str) or not self.project_id.strip():
            raise ConfigurationError("project_id must be a non-empty string")
        if not isinstance(self.language_code, str) or not self.language_code.strip():
            raise ConfigurationError("language_code must be a non-empty string")

        if self.fixed_context is not None:
            self.fixed_context = str(self.fixed_context).strip() or None

        try:
            self.sample_rate_hertz = int(self.sample_rate_hertz)
            self.context_lifespan = int(self.context_lifespan)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "sample_rate_hertz and context_lifespan must be integers", cause=exc
            ) from exc
        _ensure_numeric_range("sample_rate_hertz", self.sample_rate_hertz, gt=0)
        _ensure_numeric_range("context_lifespan", self.context_lifespan, gt=0)

        self.audio_encoding = str(self.audio_encoding).upper()
        if self.audio_encoding not in AUDIO_ENCODINGS:
            raise ConfigurationError(f"audio_encoding must be one of {sorted(AUDIO_ENCODINGS)}")

        if not self.audio_extension.startswith("."):
            self.audio_extension = f".{self.audio_extension}"
        if not self.initial_prefix:
            raise ConfigurationError("initial_prefix must not be empty")

        self.concurrent = bool(self.concurrent)
        self.strict_initial = bool(self.strict_initial)
        self.log_output_contexts = bool(self.log_output_contexts)
        self.verbose = bool(self.verbose)

    @property
    def context_override(self) -> ContextOverride:
        if self.fixed_context is None:
            return NoContextOverride()
        return PinnedContext(self.fixed_context, self.context_lifespan)

    def require_testing_path(self) -> Path:
        if self.testing_path is None:
            raise ConfigurationError(
                "No testing directory given; pass one or set DF_RECO_TESTING_PATH"
            )
        return self.testing_path

    def model_dump(self) -> dict[str, Any]:
        """Return the configuration as a JSON friendly dictionary."""

        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            payload[item.name] = value.as_posix() if isinstance(value, Path) else value
        return payload

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        dotenv_path: Path | str | None = None,
        **overrides: Any,
    ) -> HarnessConfig:
        """Build a configuration from ``.env``, the environment and ``overrides``.

        Precedence (lowest first): values in the dotenv file, ``env`` (defaults
        to ``os.environ``), then keyword overrides whose value is not ``None``.
        """

        merged: dict[str, str | None] = {}
        dotenv_file = Path(dotenv_path) if dotenv_path is not None else Path.cwd() / ".env"
        if dotenv_file.is_file():
            merged.update(dotenv_values(dotenv_file))
        merged.update(os.environ if env is None else env)

        kwargs: dict[str, Any] = {}
        for env_name, field_name in _ENV_FIELDS.items():
            value = merged.get(env_name)
            if value is not None and value != "":
                kwargs[field_name] = value
        kwargs.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**kwargs)
