"""Data models for header collection and binding generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath


def relative_parts(
    path: PurePath, root: PurePath, strip_segments: frozenset[str] | set[str] = frozenset()
) -> tuple[str, ...]:
    """Segments of *path* below *root*, without any segment in *strip_segments*."""
    return tuple(p for p in path.relative_to(root).parts if p not in strip_segments)


@dataclass(frozen=True)
class HeaderFile:
    """A discovered header and its include path."""

    source_path: PurePath
    relative_path: str  # always forward slashes, e.g. "absl/base/config.h"

    @classmethod
    def from_path(
        cls,
        path: PurePath,
        include_root: PurePath,
        strip_segments: frozenset[str] | set[str] = frozenset(),
    ) -> HeaderFile:
        parts = relative_parts(path, include_root, strip_segments)
        return cls(source_path=path, relative_path="/".join(parts))


@dataclass(frozen=True)
class FunctionSignature:
    """A function-like declaration found in header text."""

    template_prefix: str  # "" when not generic
    return_type: str
    name: str
    origin: HeaderFile | None = None
    parameters: str | None = None  # raw text between the parens; None if unbalanced

    @property
    def is_zero_arg(self) -> bool:
        return self.parameters is not None and self.parameters in ("", "void")


@dataclass
class CopyFailure:
    """A single file that could not be gathered."""

    source: str
    destination: str
    error: str


@dataclass
class CollectResult:
    """Outcome of one HeaderCollector run."""

    source_root: str
    dest_root: str
    copied: list[str] = field(default_factory=list)
    failures: list[CopyFailure] = field(default_factory=list)
    source_missing: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures and not self.source_missing


@dataclass
class EmissionReport:
    """Summary of one generated binding file."""

    path: str
    include_count: int = 0
    signature_count: int = 0
    wrapper_count: int = 0
    skipped_internal: int = 0
    skipped_by_policy: int = 0
