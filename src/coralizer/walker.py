"""
Parallel template tree walker.

Worker threads enumerate the source tree (one task per directory) and push
every included file through a single HandOff channel to one consumer.
The manifest path is the only shared mutable state: a ManifestSlot that
the first observer claims.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "coral-agent.toml"

IncludeFn = Callable[[Path], bool]


class ManifestSlot:
    """Optional path with compare-and-set semantics: the first claim wins."""

    def __init__(self):
        self._lock = threading.Lock()
        self._path: Path | None = None

    def claim(self, path: Path) -> bool:
        with self._lock:
            if self._path is not None:
                return False
            self._path = path
            return True

    @property
    def path(self) -> Path | None:
        with self._lock:
            return self._path


class ChannelClosed(Exception):
    """The consumer stopped accepting paths."""


_DONE = object()


class HandOff:
    """
    Unbounded many-producer / single-consumer path channel.

    Producers send() until the walk is over, then finish() once.
    The consumer iterates; if it gives up it calls close(), after which
    send() raises ChannelClosed so workers can stop early.
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._closed = threading.Event()

    def send(self, path: Path) -> None:
        if self._closed.is_set():
            raise ChannelClosed()
        self._queue.put(path)

    def finish(self) -> None:
        self._queue.put(_DONE)

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __iter__(self) -> Iterator[Path]:
        while True:
            item = self._queue.get()
            if item is _DONE:
                return
            yield item


def default_include(path: Path) -> bool:
    """Skip version-control metadata."""
    return path.name != ".git"


def _walk_threads() -> int:
    configured = os.environ.get("CORALIZER_WALK_THREADS")
    if configured:
        return max(1, int(configured))
    return min(8, os.cpu_count() or 1)


class TreeWalker:
    """
    Enumerates a template tree in parallel.

    Usage:
        walker = TreeWalker(root, include=template.include_file)
        channel = HandOff()
        walker.walk(channel)   # blocks until enumeration is done
        walker.manifest.path   # first coral-agent.toml observed, or None
    """

    def __init__(
        self,
        root: str | Path,
        include: IncludeFn | None = None,
        threads: int | None = None,
        manifest_name: str = MANIFEST_FILENAME,
    ):
        self.root = Path(root).resolve()
        self.include = include or default_include
        self.threads = threads or _walk_threads()
        self.manifest_name = manifest_name
        self.manifest = ManifestSlot()
        self.duplicate_manifests: list[Path] = []
        self._duplicates_lock = threading.Lock()

    def walk(self, channel: HandOff) -> int:
        """Send every included file under root into `channel`. Returns the file count."""
        sent = 0
        with ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="walk") as pool:
            pending: set[Future] = {pool.submit(self._scan, self.root, channel)}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    subdirs, count = future.result()
                    sent += count
                    if channel.closed:
                        continue
                    pending |= {pool.submit(self._scan, d, channel) for d in subdirs}
        logger.debug(f"Walked {sent} files under {self.root}")
        return sent

    def _scan(self, directory: Path, channel: HandOff) -> tuple[list[Path], int]:
        """List one directory; returns (subdirectories to visit, files sent)."""
        subdirs: list[Path] = []
        sent = 0
        try:
            entries = list(os.scandir(directory))
        except OSError as e:
            logger.error(f"Error reading directory {directory}: {e}")
            return subdirs, sent

        for entry in sorted(entries, key=lambda e: e.name):
            path = Path(entry.path)
            try:
                if not self.include(path):
                    continue
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(path)
                    continue
                if entry.is_symlink() and entry.is_dir():
                    logger.warning(f"Skipping symlinked directory {path}")
                    continue
                if not entry.is_file():
                    continue
            except OSError as e:
                logger.error(f"Error reading file {path}: {e}")
                continue

            logger.debug(f"{path}")
            if entry.name == self.manifest_name and not self.manifest.claim(path):
                logger.warning(
                    f"Found multiple {self.manifest_name} files, ignoring {path} "
                    f"(keeping {self.manifest.path})"
                )
                with self._duplicates_lock:
                    self.duplicate_manifests.append(path)

            try:
                channel.send(path)
            except ChannelClosed:
                logger.debug(f"Channel closed, stopping scan of {directory}")
                return [], sent
            sent += 1

        return subdirs, sent
