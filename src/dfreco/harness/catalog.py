"""Discovery of audio samples inside a testing directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import DirectoryReadError, DuplicateInitialSampleError

__all__ = ["AudioSample", "SampleCatalog", "scan_directory"]

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AudioSample:
    """One recorded utterance used as test input."""

    filename: str
    directory: Path
    is_initial: bool = False

    @property
    def path(self) -> Path:
        return self.directory / self.filename

    @property
    def identifier(self) -> str:
        return self.filename


@dataclass(slots=True, frozen=True)
class SampleCatalog:
    """Result of a directory scan: optional initial sample plus ordered samples."""

    directory: Path
    initial: AudioSample | None
    samples: tuple[AudioSample, ...]

    @property
    def has_initial(self) -> bool:
        return self.initial is not None

    def __len__(self) -> int:
        return len(self.samples) + (1 if self.initial is not None else 0)

    def all_samples(self) -> tuple[AudioSample, ...]:
        """Return every sample in dispatch order (initial first)."""

        if self.initial is None:
            return self.samples
        return (self.initial, *self.samples)


def scan_directory(
    directory: Path | str,
    *,
    extension: str = ".flac",
    initial_prefix: str = "_initial",
    strict_initial: bool = False,
    log: logging.Logger | None = None,
) -> SampleCatalog:
    """Scan ``directory`` and classify its audio files.

    Entries that are not regular files, or whose suffix is not ``extension``,
    are skipped and reported at debug level.  A file whose name starts with
    ``initial_prefix`` becomes the initial sample; if several do, the last one
    listed wins unless ``strict_initial`` is set, in which case
    :class:`DuplicateInitialSampleError` is raised.  Ordinary samples are
    sorted by code point order of their names so runs are reproducible across
    machines and locales.

    Raises:
        DirectoryReadError: ``directory`` does not exist, cannot be listed, or
            one of its entries cannot be inspected.
    """

    log = log or logger
    root = Path(directory)
    try:
        entries = list(root.iterdir())
    except OSError as exc:
        raise DirectoryReadError(
            f"Cannot read testing directory {root}: {exc.strerror or exc}",
            context={"directory": root.as_posix()},
            cause=exc,
        ) from exc

    initial_names: list[str] = []
    names: list[str] = []
    for entry in entries:
        try:
            is_file = entry.is_file()
        except OSError as exc:
            raise DirectoryReadError(
                f"Cannot inspect {entry.name} in testing directory {root}: {exc.strerror or exc}",
                context={"directory": root.as_posix(), "entry": entry.name},
                cause=exc,
            ) from exc
        if not is_file or entry.suffix != extension:
            log.debug("Ignored dir entry %s", entry.name)
            continue
        if entry.name.startswith(initial_prefix):
            initial_names.append(entry.name)
            continue
        names.append(entry.name)

    initial: AudioSample | None = None
    if initial_names:
        if len(initial_names) > 1:
            if strict_initial:
                raise DuplicateInitialSampleError(
                    f"Found {len(initial_names)} initial samples in {root}",
                    context={"candidates": sorted(initial_names)},
                )
            log.warning(
                "Found %d initial samples (%s); using the last one listed",
                len(initial_names),
                ", ".join(initial_names),
            )
        initial = AudioSample(initial_names[-1], root, is_initial=True)
        log.info("Using %s as initial utterance.", initial.filename)

    samples = tuple(AudioSample(name, root) for name in sorted(names))
    log.info("Added %d files to the test.", len(samples))
    return SampleCatalog(directory=root, initial=initial, samples=samples)
