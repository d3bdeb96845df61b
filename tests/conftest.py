"""Shared pytest fixtures for native-bindgen tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from native_bindgen.build.runner import ToolResult
from native_bindgen.exceptions import ExternalToolError
from native_bindgen.models.toolchain import HostPlatform

GIT_VERSION_OUTPUT = "git version 2.42.0.windows.1\n"
CMAKE_VERSION_OUTPUT = "cmake version 3.31.2\n\nCMake suite maintained and supported by Kitware.\n"
CMAKE_CAPABILITIES_OUTPUT = (
    '{"generators":[{"name":"Visual Studio 17 2022","platformSupport":true},'
    '{"name":"Ninja","platformSupport":false}],"version":{"string":"3.31.2"}}'
)


class FakeRunner:
    """Stands in for ToolRunner; records calls, never spawns processes.

    Responses are keyed by (tool, first argument).
    """

    def __init__(
        self,
        outputs: dict[tuple[str, str], str] | None = None,
        failures: dict[tuple[str, str], int | None] | None = None,
        side_effects: dict[tuple[str, str], Callable[[Path, list[str]], None]] | None = None,
    ) -> None:
        self.outputs = {
            ("git", "--version"): GIT_VERSION_OUTPUT,
            ("cmake", "--version"): CMAKE_VERSION_OUTPUT,
            ("cmake", "-E"): CMAKE_CAPABILITIES_OUTPUT,
        }
        self.outputs.update(outputs or {})
        self.failures = failures or {}
        self.side_effects = side_effects or {}
        self.calls: list[tuple[str, list[str], Path]] = []

    def run(self, tool, args, cwd) -> ToolResult:
        args = list(args)
        self.calls.append((tool, args, Path(cwd)))
        key = (tool, args[0] if args else "")
        if key in self.failures:
            raise ExternalToolError(tool, args, self.failures[key], "simulated failure")
        if key in self.side_effects:
            self.side_effects[key](Path(cwd), args)
        return ToolResult(tool=tool, args=args, returncode=0, stdout=self.outputs.get(key, ""))

    def tools_called(self) -> list[tuple[str, str]]:
        return [(tool, args[0] if args else "") for tool, args, _ in self.calls]


@pytest.fixture
def windows_msvc() -> HostPlatform:
    return HostPlatform("windows", "msvc")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def write_tree(root: Path, files: dict[str, str]) -> None:
    """Create *files* (relative path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


@pytest.fixture
def tree() -> Callable[[Path, dict[str, str]], None]:
    return write_tree
