"""Test-run orchestration for audio intent regression runs."""

from .catalog import AudioSample, SampleCatalog, scan_directory
from .config import HarnessConfig, NoContextOverride, PinnedContext
from .detection import DetectionClient, DetectionRequest, decode_parameters
from .dispatcher import RunDispatcher, RunReport, RunState
from .errors import (
    ConfigurationError,
    DecodeError,
    DetectionCallError,
    DirectoryReadError,
    HarnessError,
)
from .logging_utils import LogEntry, LogLevel, OrderedLogCache, RunLogger
from .models import DetectionResult
from .runner import run_harness, run_harness_sync
from .session import SessionPlan, SessionSpec, SessionStrategy, plan_sessions

__all__ = [
    "AudioSample",
    "ConfigurationError",
    "DecodeError",
    "DetectionCallError",
    "DetectionClient",
    "DetectionRequest",
    "DetectionResult",
    "DirectoryReadError",
    "HarnessConfig",
    "HarnessError",
    "LogEntry",
    "LogLevel",
    "NoContextOverride",
    "OrderedLogCache",
    "PinnedContext",
    "RunDispatcher",
    "RunLogger",
    "RunReport",
    "RunState",
    "SampleCatalog",
    "SessionPlan",
    "SessionSpec",
    "SessionStrategy",
    "decode_parameters",
    "plan_sessions",
    "run_harness",
    "run_harness_sync",
    "scan_directory",
]
