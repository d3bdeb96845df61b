"""Data models for toolchain detection and version policy."""

from __future__ import annotations

import platform
import re
from dataclasses import dataclass
from enum import Enum

_TRIPLE_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")
_DOTTED_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class ToolKind(Enum):
    """External tools the pipeline depends on."""

    GIT = "git"
    CMAKE = "cmake"


@dataclass(frozen=True, order=True)
class Version:
    """Semantic version triple. Compares lexicographically."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, text: str | None) -> Version:
        """Parse a version out of raw tool output.

        Tries the first ``X.Y.Z`` triple anywhere in the text, then the third
        whitespace token (``git version 2.42`` -> 2.42.0). Anything else is
        ``0.0.0``.
        """
        if not text:
            return cls()
        m = _TRIPLE_RE.search(text)
        if m:
            return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))

        tokens = text.split()
        if len(tokens) >= 3:
            m = _DOTTED_RE.match(tokens[2])
            if m:
                return cls(*(int(g) if g else 0 for g in m.groups()))
        return cls()


@dataclass(frozen=True)
class HostPlatform:
    """Operating system + compiler toolchain of the invoking host."""

    system: str  # "windows" | "linux" | "darwin" | ...
    toolchain: str  # "msvc" | "gnu"

    def __str__(self) -> str:
        return f"{self.system}/{self.toolchain}"

    @classmethod
    def detect(cls) -> HostPlatform:
        system = platform.system().lower() or "unknown"
        # The interpreter's own compiler is the best local hint for the C++ ABI.
        toolchain = "msvc" if platform.python_compiler().startswith("MSC") else "gnu"
        return cls(system=system, toolchain=toolchain)
