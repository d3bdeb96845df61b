"""Toolchain gate — host platform, tool versions, compiler generator."""

from __future__ import annotations

import re
from typing import Mapping, Sequence

import structlog

from native_bindgen.exceptions import (
    ToolVersionError,
    UnsupportedPlatformError,
    UnsupportedToolchainError,
)
from native_bindgen.models.toolchain import HostPlatform, ToolKind, Version

log = structlog.get_logger("native_bindgen.gate")

MINIMUM_VERSIONS: Mapping[ToolKind, Version] = {
    ToolKind.GIT: Version(2, 40, 0),
    ToolKind.CMAKE: Version(3, 31, 0),
}

ACCEPTED_GENERATORS: tuple[str, ...] = ("Visual Studio 16 2019", "Visual Studio 17 2022")

SUPPORTED_HOSTS: frozenset[HostPlatform] = frozenset({HostPlatform("windows", "msvc")})


class VersionGate:
    """Pass/fail checks that must all succeed before anything is cloned or built."""

    def __init__(
        self,
        policy: Mapping[ToolKind, Version] = MINIMUM_VERSIONS,
        generators: Sequence[str] = ACCEPTED_GENERATORS,
        supported_hosts: frozenset[HostPlatform] = SUPPORTED_HOSTS,
    ) -> None:
        self.policy = dict(policy)
        self.generators = tuple(generators)
        self.supported_hosts = supported_hosts
        self._generator_re = re.compile("|".join(re.escape(g) for g in self.generators))

    def validate(self, tool_output: str | None, tool: ToolKind) -> Version:
        """Check *tool_output* (e.g. ``git version 2.42.0``) against the policy."""
        required = self.policy[tool]
        found = Version.parse(tool_output)
        if found >= required and found != Version():
            log.info("gate.tool_ok", tool=tool.value, version=str(found))
            return found
        raise ToolVersionError(tool.value, str(found), str(required))

    def check_host(self, host: HostPlatform) -> None:
        if host not in self.supported_hosts:
            supported = ", ".join(sorted(str(h) for h in self.supported_hosts))
            raise UnsupportedPlatformError(
                f"Host platform {host} is not supported (supported: {supported})"
            )
        log.info("gate.host_ok", host=str(host))

    def check_generators(self, capabilities: str) -> str:
        """Return the first accepted generator named in ``cmake -E capabilities``."""
        m = self._generator_re.search(capabilities or "")
        if not m:
            raise UnsupportedToolchainError(
                "CMake reports no suitable MSVC generator. "
                f"Needs one of: {', '.join(self.generators)}"
            )
        log.info("gate.generator_ok", generator=m.group(0))
        return m.group(0)
