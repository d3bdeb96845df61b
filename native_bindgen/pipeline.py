"""Binding pipeline — gate, clone, configure, build, gather, emit.

Stages run once, in order. A fatal error in any stage aborts the run with
PipelineAborted naming the stage. Gathering failures are per file and never
abort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

import structlog

from native_bindgen.bindings.emitter import BindingEmitter
from native_bindgen.build.runner import ToolResult, ToolRunner
from native_bindgen.build.version_gate import VersionGate
from native_bindgen.config import BuildConfig, BuildFlags, build_flags
from native_bindgen.exceptions import (
    BindgenError,
    EnvironmentCheckError,
    ExternalToolError,
    PipelineAborted,
)
from native_bindgen.gather.collector import (
    HeaderCollector,
    all_of,
    has_extension,
    under_segment,
)
from native_bindgen.models.headers import CollectResult, EmissionReport
from native_bindgen.models.toolchain import HostPlatform, ToolKind, Version
from native_bindgen.progress import ProgressTracker, StageProgress

log = structlog.get_logger("native_bindgen.pipeline")

STAGES: tuple[str, ...] = (
    "environment",
    "clone",
    "configure",
    "build",
    "gather_libraries",
    "gather_headers",
    "bindings",
)


class Runner(Protocol):
    def run(self, tool: str, args: Sequence[str], cwd: str | Path) -> ToolResult: ...


@dataclass
class EnvironmentReport:
    """What the environment stage found."""

    host: HostPlatform
    tool_versions: dict[str, Version] = field(default_factory=dict)
    generator: str = ""


@dataclass
class PipelineResult:
    """Pipeline return value."""

    bindings_path: str
    environment: EnvironmentReport | None = None
    cloned: bool = False
    libraries: CollectResult | None = None
    headers: CollectResult | None = None
    bindings: EmissionReport | None = None
    summary: dict[str, Any] = field(default_factory=dict)


class BindingPipeline:
    """
    Run the full preparation of the native dependency.

    environment:      host check, git/cmake versions, MSVC generator
    clone:            git clone (skipped when a checkout is reused)
    configure:        cmake <configure flags> ..
    build:            cmake --build . -- /p:...
    gather_libraries: .lib/.pdb/.exp under <build_type>/ -> external/lib (flat)
    gather_headers:   .h -> external/include (layout kept, config dirs stripped)
    bindings:         external/bindings.cpp
    """

    def __init__(
        self,
        config: BuildConfig,
        runner: Runner | None = None,
        gate: VersionGate | None = None,
        host: HostPlatform | None = None,
        collector: HeaderCollector | None = None,
        emitter: BindingEmitter | None = None,
    ) -> None:
        self.config = config
        self.flags: BuildFlags = build_flags(config)
        self.runner = runner or ToolRunner()
        self.gate = gate or VersionGate()
        self.host = host or HostPlatform.detect()
        self.collector = collector or HeaderCollector()
        self.emitter = emitter or BindingEmitter(
            internal_prefix=config.internal_prefix,
            wrapper_policy=config.wrapper_policy,
            header_extensions=config.header_extensions,
        )
        self.progress = self._new_progress()

    # ── entry points ──

    def run(self) -> PipelineResult:
        self.progress = self._new_progress()
        cfg = self.config
        result = PipelineResult(bindings_path=str(cfg.bindings_path))

        result.environment = self._stage("environment", self._check_environment)
        result.cloned = self._stage("clone", self._clone)
        self._stage("configure", self._configure)
        self._stage("build", self._build)
        result.libraries = self._stage("gather_libraries", self._gather_libraries)
        result.headers = self._stage("gather_headers", self._gather_headers)
        result.bindings = self._stage("bindings", self._emit_bindings)

        result.summary = self.progress.get_summary()
        log.info("pipeline.done", bindings=str(cfg.bindings_path))
        return result

    def check_environment(self) -> EnvironmentReport:
        """Run only the environment stage."""
        self.progress = self._new_progress()
        return self._stage("environment", self._check_environment)

    # ── stage plumbing ──

    def _new_progress(self) -> ProgressTracker:
        """Fresh tracker per run, logging every stage transition."""
        return ProgressTracker(callbacks=[self._log_stage_callback])

    @staticmethod
    def _log_stage_callback(stage: StageProgress) -> None:
        if stage.status == "failed":
            log.error("pipeline.stage_failed", stage=stage.stage, error=stage.error)
            return
        log.info(
            "pipeline.stage",
            stage=stage.stage,
            status=stage.status,
            duration=stage.duration,
            detail=stage.detail or None,
        )

    def _stage(self, name: str, fn: Callable[[], Any]) -> Any:
        self.progress.start_stage(name)
        try:
            value = fn()
        except (BindgenError, OSError) as e:
            self.progress.fail_stage(name, str(e))
            raise PipelineAborted(name, e) from e
        stage = self.progress.get(name)
        if stage is not None and stage.status == "running":
            self.progress.complete_stage(name, detail=self._detail(name, value))
        return value

    @staticmethod
    def _detail(name: str, value: Any) -> str:
        if isinstance(value, EnvironmentReport):
            versions = ", ".join(f"{k} {v}" for k, v in value.tool_versions.items())
            return f"{value.host}; {versions}; {value.generator}"
        if isinstance(value, CollectResult):
            if value.source_missing:
                return f"source missing: {value.source_root}"
            return f"{len(value.copied)} copied, {len(value.failures)} failed"
        if isinstance(value, EmissionReport):
            return f"{value.include_count} includes, {value.wrapper_count} wrappers"
        return ""

    def _probe(self, tool: str, args: Sequence[str]) -> str:
        cwd = self.config.root if self.config.root.is_dir() else Path.cwd()
        try:
            return self.runner.run(tool, args, cwd).stdout
        except ExternalToolError as e:
            raise EnvironmentCheckError(
                f"Please install, update, or repair {tool}: {e}"
            ) from e

    # ── stages ──

    def _check_environment(self) -> EnvironmentReport:
        # No tool may run on an unsupported host.
        self.gate.check_host(self.host)
        report = EnvironmentReport(host=self.host)
        report.tool_versions["git"] = self.gate.validate(
            self._probe("git", ["--version"]), ToolKind.GIT
        )
        report.tool_versions["cmake"] = self.gate.validate(
            self._probe("cmake", ["--version"]), ToolKind.CMAKE
        )
        report.generator = self.gate.check_generators(
            self._probe("cmake", ["-E", "capabilities"])
        )
        return report

    def _clone(self) -> bool:
        cfg = self.config
        if cfg.reuse_checkout and (cfg.source_dir / ".git").exists():
            log.info("pipeline.clone_reused", path=str(cfg.source_dir))
            self.progress.skip_stage("clone", f"reusing checkout {cfg.source_dir}")
            return False

        cfg.staging_root.mkdir(parents=True, exist_ok=True)
        args = ["clone"]
        if cfg.ref:
            args += ["--branch", cfg.ref]
        args += ["--", cfg.repo_url, cfg.checkout_name]
        self.runner.run("git", args, cfg.staging_root)
        return True

    def _configure(self) -> None:
        build_dir = self.config.cmake_build_dir
        build_dir.mkdir(parents=True, exist_ok=True)
        self.runner.run("cmake", self.flags.configure, build_dir)

    def _build(self) -> None:
        self.runner.run("cmake", self.flags.build, self.config.cmake_build_dir)

    def _gather_libraries(self) -> CollectResult:
        cfg = self.config
        return self.collector.collect(
            cfg.cmake_build_dir,
            cfg.lib_dir,
            all_of(has_extension(*cfg.library_extensions), under_segment(cfg.build_type)),
            flatten=True,
        )

    def _gather_headers(self) -> CollectResult:
        cfg = self.config
        return self.collector.collect(
            cfg.header_source_dir,
            cfg.include_dir / cfg.header_subdir,
            has_extension(*cfg.header_extensions),
            strip_segments=cfg.strip_segments,
        )

    def _emit_bindings(self) -> EmissionReport:
        return self.emitter.emit(self.config.include_dir, self.config.bindings_path)
