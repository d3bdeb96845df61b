"""External tool invocation — git and CMake as opaque subprocesses."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import structlog

from native_bindgen.exceptions import ExternalToolError

log = structlog.get_logger("native_bindgen.build")


@dataclass
class ToolResult:
    """Captured outcome of one tool invocation."""

    tool: str
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class ToolRunner:
    """Run a tool, block until it exits, return its captured output.

    There is no timeout: a hung tool hangs the pipeline.
    """

    def run(self, tool: str, args: Sequence[str], cwd: str | Path) -> ToolResult:
        argv = [tool, *args]
        log.info("tool.run", tool=tool, args=list(args), cwd=str(cwd))
        try:
            # MSBuild writes in the OEM codepage; undecodable bytes become U+FFFD.
            proc = subprocess.run(
                argv,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise ExternalToolError(tool, args, None, str(e)) from e

        result = ToolResult(
            tool=tool,
            args=list(args),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if proc.returncode != 0:
            log.error("tool.failed", tool=tool, returncode=proc.returncode)
            raise ExternalToolError(tool, args, proc.returncode, result.stderr.strip())
        return result
