from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any


def _make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serialisable types."""
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(key): _make_json_safe(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_make_json_safe(value) for value in obj]
    return obj


class LogLevel(str, Enum):
    INFO = "info"
    DEBUG = "debug"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        return _LEVELS[self]


_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.ERROR: logging.ERROR,
}


@dataclass(slots=True, frozen=True)
class LogEntry:
    level: LogLevel
    message: str


class OrderedLogCache:
    """Per-sample log buffer flushed in a deterministic order.

    Concurrent detection calls finish in any order; each one records its lines
    under its own sample identifier.  :meth:`flush` then replays the groups
    sorted by identifier, keeping insertion order inside a group, so two runs
    over the same directory produce the same log regardless of timing.
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[LogEntry]] = {}
        self._lock = threading.Lock()
        self._flushed = False

    def record(self, sample_id: str, level: LogLevel | str, message: str) -> None:
        entry = LogEntry(LogLevel(level), str(message))
        with self._lock:
            if self._flushed:
                raise RuntimeError("log cache was already flushed")
            self._entries.setdefault(sample_id, []).append(entry)

    def info(self, sample_id: str, message: str) -> None:
        self.record(sample_id, LogLevel.INFO, message)

    def debug(self, sample_id: str, message: str) -> None:
        self.record(sample_id, LogLevel.DEBUG, message)

    def error(self, sample_id: str, message: str) -> None:
        self.record(sample_id, LogLevel.ERROR, message)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def entries(self, sample_id: str) -> tuple[LogEntry, ...]:
        with self._lock:
            return tuple(self._entries.get(sample_id, ()))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(items) for items in self._entries.values())

    def flush(self, sink: logging.Logger) -> list[tuple[str, LogEntry]]:
        """Emit every buffered entry to ``sink`` and close the cache.

        Returns the emitted ``(sample_id, entry)`` pairs in emission order.
        """

        with self._lock:
            if self._flushed:
                raise RuntimeError("log cache was already flushed")
            self._flushed = True
            snapshot = {key: list(items) for key, items in self._entries.items()}
            self._entries.clear()

        emitted: list[tuple[str, LogEntry]] = []
        for sample_id in sorted(snapshot):
            for entry in snapshot[sample_id]:
                sink.log(entry.level.logging_level, entry.message)
                emitted.append((sample_id, entry))
        return emitted


class JSONLWriter:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("", encoding="utf-8")

    def emit(self, record: dict[str, Any]) -> None:
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(_make_json_safe(record), ensure_ascii=False) + "\n")
        except OSError as exc:
            logging.getLogger(__name__).warning(
                "Could not write to log file %s: %s", self.path, exc
            )


class RunLogger:
    """Console + timestamped file logging for one harness run."""

    FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

    def __init__(
        self,
        run_id: str,
        log_dir: Path | None = None,
        console_level: int = logging.INFO,
        *,
        started: time.struct_time | None = None,
    ):
        self.run_id = run_id
        # not registered with logging.getLogger so the per-run logger dies with this object
        self.log = logging.Logger(f"dfreco.run.{run_id}")
        self.log.setLevel(logging.DEBUG)
        self.log.propagate = False
        self.log_path: Path | None = None
        self.jsonl: JSONLWriter | None = None

        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(logging.Formatter(self.FORMAT, datefmt="%H:%M:%S"))
        self.log.addHandler(console)

        if log_dir is not None:
            stamp = time.strftime("%Y%m%d-%H%M%S", started or time.localtime())
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            self.log_path = log_dir / f"run-{stamp}.log"
            file_handler = logging.FileHandler(self.log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(self.FORMAT))
            self.log.addHandler(file_handler)
            self.jsonl = JSONLWriter(log_dir / f"run-{stamp}.jsonl")

    def event(self, sample: str | None, event: str, **fields: Any) -> None:
        if self.jsonl is None:
            return
        record = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()),
            "run_id": self.run_id,
            "sample": sample,
            "event": event,
        }
        record.update(fields)
        self.jsonl.emit(record)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.log.info(message, *args, **kwargs)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.log.debug(message, *args, **kwargs)

    def warn(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.log.warning(message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self.log.error(message, *args, **kwargs)

    def close(self) -> None:
        for handler in list(self.log.handlers):
            handler.close()
            self.log.removeHandler(handler)


def _fmt_hms_ms(milliseconds: float) -> str:
    """Return a human readable string with millisecond precision."""

    safe_ms = max(0.0, float(milliseconds))
    seconds = safe_ms / 1000.0
    base_seconds = int(seconds)
    fractional_ms = int(round((seconds - base_seconds) * 1000))

    if fractional_ms == 1000:
        base_seconds += 1
        fractional_ms = 0

    hours, remainder = divmod(base_seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}.{fractional_ms:03d}"
    if minutes:
        return f"{minutes:02d}:{secs:02d}.{fractional_ms:03d}"
    return f"00:{secs:02d}.{fractional_ms:03d}"


__all__ = [
    "JSONLWriter",
    "LogEntry",
    "LogLevel",
    "OrderedLogCache",
    "RunLogger",
    "_fmt_hms_ms",
    "_make_json_safe",
]
