"""Custom exceptions for native-bindgen."""

from __future__ import annotations


class BindgenError(Exception):
    """Base exception for all native-bindgen errors."""


class ConfigError(BindgenError):
    """Raised when a configuration file, key or value is invalid."""


class EnvironmentCheckError(BindgenError):
    """Raised when the host environment cannot run the pipeline."""


class ToolVersionError(EnvironmentCheckError):
    """Raised when a required tool is missing or older than the policy allows."""

    def __init__(self, tool: str, found: str, required: str):
        self.tool = tool
        self.found = found
        self.required = required
        super().__init__(
            f"{tool} {found} does not satisfy the minimum version {required}. "
            f"Please install, update, or repair {tool}."
        )


class UnsupportedPlatformError(EnvironmentCheckError):
    """Raised when the host OS/toolchain combination is not supported."""


class UnsupportedToolchainError(EnvironmentCheckError):
    """Raised when CMake reports no accepted compiler generator."""


class ExternalToolError(BindgenError):
    """Raised when an external tool cannot be launched or exits non-zero."""

    def __init__(
        self,
        tool: str,
        args: list[str] | tuple[str, ...],
        returncode: int | None,
        stderr: str = "",
    ):
        self.tool = tool
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            message = f"{tool} could not be launched: {stderr}"
        else:
            message = f"{tool} {' '.join(self.args_list)} failed (rc={returncode})"
            if stderr:
                message += f": {stderr[-1000:]}"
        super().__init__(message)


class GatherError(BindgenError):
    """Raised for a single file that could not be gathered.

    Never propagated out of a collection run; recorded as a CopyFailure.
    """


class EmissionError(BindgenError):
    """Raised when the binding file cannot be produced."""


class PipelineAborted(BindgenError):
    """Raised when a pipeline stage fails fatally."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"stage '{stage}' failed: {cause}")
