"""Copy eligible files from a source tree into a destination tree."""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePath
from typing import Callable, Iterable

import structlog

from native_bindgen.exceptions import GatherError
from native_bindgen.models.headers import CollectResult, CopyFailure, relative_parts

log = structlog.get_logger("native_bindgen.gather")

PathPredicate = Callable[[PurePath], bool]


def has_extension(*extensions: str) -> PathPredicate:
    """Match files whose suffix is one of *extensions* (case-insensitive)."""
    wanted = frozenset(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)

    def predicate(path: PurePath) -> bool:
        return path.suffix.lower() in wanted

    return predicate


def under_segment(name: str) -> PathPredicate:
    """Match paths that have an ancestor directory named exactly *name*."""

    def predicate(path: PurePath) -> bool:
        return name in path.parent.parts

    return predicate


def all_of(*predicates: PathPredicate) -> PathPredicate:
    def predicate(path: PurePath) -> bool:
        return all(p(path) for p in predicates)

    return predicate


def walk_files(root: Path, on_error: Callable[[OSError], None] | None = None) -> Iterable[Path]:
    """Yield regular files under *root*, depth-first, in sorted order."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path


class HeaderCollector:
    """Mirror matching files from one tree into another.

    Per-file failures are recorded and logged; they never stop the walk.
    """

    def collect(
        self,
        source_root: str | Path,
        dest_root: str | Path,
        predicate: PathPredicate,
        strip_segments: Iterable[str] = (),
        flatten: bool = False,
    ) -> CollectResult:
        """
        Copy every file under *source_root* accepted by *predicate*.

        Args:
            source_root: Tree to read from.
            dest_root: Tree to write to (created as needed).
            predicate: Pure function of the file path.
            strip_segments: Directory names dropped from the relative path
                (e.g. ``Debug``).
            flatten: Keep only the file name (flat ``lib/`` layout).

        Returns:
            CollectResult with copied destinations and per-file failures.
        """
        source_root = Path(source_root)
        dest_root = Path(dest_root)
        strip = frozenset(strip_segments)
        result = CollectResult(source_root=str(source_root), dest_root=str(dest_root))

        if not source_root.is_dir():
            log.warning("collect.source_missing", source_root=str(source_root))
            result.source_missing = True
            return result

        def on_walk_error(err: OSError) -> None:
            log.warning("collect.unreadable_dir", path=err.filename, error=str(err))
            result.failures.append(
                CopyFailure(source=str(err.filename or ""), destination="", error=str(err))
            )

        written: set[Path] = set()
        for path in walk_files(source_root, on_error=on_walk_error):
            if not predicate(path):
                continue
            dest_path = self._destination(path, source_root, dest_root, strip, flatten)
            collision = dest_path in written
            if collision:
                # Last file in traversal order wins.
                log.warning(
                    "collect.flatten_collision" if flatten else "collect.path_collision",
                    source=str(path),
                    destination=str(dest_path),
                )
            try:
                self._copy(path, dest_path)
            except GatherError as e:
                log.warning("collect.copy_failed", source=str(path), error=str(e))
                result.failures.append(
                    CopyFailure(source=str(path), destination=str(dest_path), error=str(e))
                )
                continue
            written.add(dest_path)
            if not collision:
                result.copied.append(str(dest_path))
            log.debug("collect.copied", source=str(path), destination=str(dest_path))

        log.info(
            "collect.done",
            source_root=str(source_root),
            copied=len(result.copied),
            failed=len(result.failures),
        )
        return result

    @staticmethod
    def _destination(
        path: Path, source_root: Path, dest_root: Path, strip: frozenset[str], flatten: bool
    ) -> Path:
        if flatten:
            return dest_root / path.name
        return dest_root.joinpath(*relative_parts(path, source_root, strip))

    @staticmethod
    def _copy(src: Path, dest: Path) -> None:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
        except OSError as e:
            raise GatherError(f"Failed copying {src} to {dest}: {e}") from e
