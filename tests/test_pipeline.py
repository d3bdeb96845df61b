"""Tests for BindingPipeline — external tools replaced by a fake runner."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from native_bindgen.build.runner import ToolRunner
from native_bindgen.config import BuildConfig
from native_bindgen.exceptions import (
    EnvironmentCheckError,
    ExternalToolError,
    PipelineAborted,
    ToolVersionError,
    UnsupportedPlatformError,
    UnsupportedToolchainError,
)
from native_bindgen.models.toolchain import HostPlatform, Version
from native_bindgen.pipeline import STAGES, BindingPipeline

UPSTREAM_HEADERS = {
    "absl/base/call_once.h": "void LowLevelCallOnce();\n",
    "absl/base/internal/low_level_alloc.h": "void* LOW_LEVEL_ALLOC_Alloc(size_t n);\n",
    "absl/strings/str_cat.h": "std::string StrCat();\n",
    "absl/strings/str_cat.cc": "std::string StrCat() { return {}; }\n",
    "CMakeLists.txt": "project(absl)\n",
}

BUILD_OUTPUTS = {
    "absl/base/Debug/absl_base.lib": "lib",
    "absl/base/Debug/absl_base.pdb": "pdb",
    "absl/strings/Debug/absl_strings.lib": "lib",
    "absl/strings/Debug/absl_strings.exp": "exp",
    "absl/strings/absl_strings.vcxproj": "<Project/>",
    "absl/strings/Release/absl_strings_release.lib": "release lib",
    "absl/strings/absl_strings_loose.lib": "outside any configuration dir",
}


@pytest.fixture
def config(tmp_path: Path) -> BuildConfig:
    return BuildConfig(root=tmp_path)


@pytest.fixture
def upstream_runner(make_runner, tree):
    """A runner whose clone and build produce a small upstream tree."""

    def fake_clone(cwd: Path, args: list[str]) -> None:
        tree(cwd / args[-1], UPSTREAM_HEADERS)
        (cwd / args[-1] / ".git").mkdir()

    def fake_build(cwd: Path, args: list[str]) -> None:
        tree(cwd, BUILD_OUTPUTS)

    return make_runner(
        side_effects={("git", "clone"): fake_clone, ("cmake", "--build"): fake_build}
    )


def _pipeline(config, runner, host=None) -> BindingPipeline:
    return BindingPipeline(config, runner=runner, host=host or HostPlatform("windows", "msvc"))


class TestHappyPath:
    def test_full_run(self, config: BuildConfig, upstream_runner):
        result = _pipeline(config, upstream_runner).run()

        # Outputs
        lib_files = sorted(p.name for p in config.lib_dir.iterdir())
        assert lib_files == [
            "absl_base.lib",
            "absl_base.pdb",
            "absl_strings.exp",
            "absl_strings.lib",
        ]
        include_files = sorted(
            p.relative_to(config.include_dir).as_posix()
            for p in config.include_dir.rglob("*")
            if p.is_file()
        )
        assert include_files == [
            "absl/base/call_once.h",
            "absl/base/internal/low_level_alloc.h",
            "absl/strings/str_cat.h",
        ]
        text = config.bindings_path.read_text()
        assert '#include "absl/base/call_once.h"' in text
        assert '#include "absl/strings/str_cat.h"' in text
        assert "void LowLevelCallOnce_wrapper() { return LowLevelCallOnce(); }" in text
        assert "std::string StrCat_wrapper() { return StrCat(); }" in text
        assert "LOW_LEVEL_ALLOC_Alloc_wrapper" not in text

        assert result.cloned
        assert result.bindings is not None and result.bindings.wrapper_count == 2
        assert result.environment is not None
        assert result.environment.tool_versions == {
            "git": Version(2, 42, 0),
            "cmake": Version(3, 31, 2),
        }
        assert result.environment.generator == "Visual Studio 17 2022"
        assert [s["stage"] for s in result.summary["stages"]] == list(STAGES)
        assert all(s["status"] == "completed" for s in result.summary["stages"])

    def test_tool_calls_in_order(self, config: BuildConfig, upstream_runner):
        _pipeline(config, upstream_runner).run()

        assert upstream_runner.tools_called() == [
            ("git", "--version"),
            ("cmake", "--version"),
            ("cmake", "-E"),
            ("git", "clone"),
            ("cmake", "-DABSL_USE_GOOGLETEST_HEAD=ON"),
            ("cmake", "--build"),
        ]
        clone = upstream_runner.calls[3]
        assert clone[1] == ["clone", "--", config.repo_url, "abseil-cpp"]
        assert clone[2] == config.staging_root
        configure = upstream_runner.calls[4]
        assert configure[1][-1] == ".."
        assert configure[2] == config.cmake_build_dir
        build = upstream_runner.calls[5]
        assert build[1] == ["--build", ".", "--", "/p:Platform=x64", "/p:Configuration=Debug"]

    def test_release_build_gathers_release_libraries(self, tmp_path: Path, upstream_runner):
        config = BuildConfig(root=tmp_path, build_type="Release")

        _pipeline(config, upstream_runner).run()

        assert sorted(p.name for p in config.lib_dir.iterdir()) == ["absl_strings_release.lib"]
        assert upstream_runner.calls[5][1][-1] == "/p:Configuration=Release"

    def test_clone_with_ref(self, tmp_path: Path, upstream_runner):
        config = BuildConfig(root=tmp_path, ref="20250127.0")
        _pipeline(config, upstream_runner).run()

        clone_args = upstream_runner.calls[3][1]
        assert clone_args[:3] == ["clone", "--branch", "20250127.0"]

    def test_existing_checkout_is_reused(self, config: BuildConfig, upstream_runner, tree):
        tree(config.source_dir, UPSTREAM_HEADERS)
        (config.source_dir / ".git").mkdir()

        result = _pipeline(config, upstream_runner).run()

        assert not result.cloned
        assert ("git", "clone") not in upstream_runner.tools_called()
        clone_stage = [s for s in result.summary["stages"] if s["stage"] == "clone"][0]
        assert clone_stage["status"] == "skipped"
        assert config.bindings_path.exists()

    def test_rerun_regenerates(self, config: BuildConfig, upstream_runner):
        _pipeline(config, upstream_runner).run()
        first = config.bindings_path.read_text()
        _pipeline(config, upstream_runner).run()
        assert config.bindings_path.read_text() == first

    def test_zero_arg_policy_flows_from_config(self, tmp_path: Path, make_runner, tree):
        config = BuildConfig(root=tmp_path, wrapper_policy="zero-arg")
        tree(
            config.source_dir,
            {"absl/a.h": "int ready();\nint add(int a, int b);\n"},
        )
        (config.source_dir / ".git").mkdir()

        _pipeline(config, make_runner()).run()

        text = config.bindings_path.read_text()
        assert "ready_wrapper" in text
        assert "add_wrapper" not in text


class TestEnvironmentFailures:
    def test_unsupported_host_runs_no_tools(self, config: BuildConfig, fake_runner):
        pipeline = _pipeline(config, fake_runner, host=HostPlatform("linux", "gnu"))

        with pytest.raises(PipelineAborted) as exc:
            pipeline.run()

        assert exc.value.stage == "environment"
        assert isinstance(exc.value.cause, UnsupportedPlatformError)
        assert fake_runner.calls == []
        assert not config.staging_root.exists()

    def test_old_git_aborts_before_clone(self, config: BuildConfig, make_runner):
        runner = make_runner(outputs={("git", "--version"): "git version 2.39.2"})

        with pytest.raises(PipelineAborted) as exc:
            _pipeline(config, runner).run()

        assert exc.value.stage == "environment"
        assert isinstance(exc.value.cause, ToolVersionError)
        assert ("git", "clone") not in runner.tools_called()
        assert not config.staging_root.exists()

    def test_missing_cmake(self, config: BuildConfig, make_runner):
        runner = make_runner(failures={("cmake", "--version"): None})

        with pytest.raises(PipelineAborted) as exc:
            _pipeline(config, runner).run()

        assert exc.value.stage == "environment"
        assert isinstance(exc.value.cause, EnvironmentCheckError)

    def test_no_msvc_generator(self, config: BuildConfig, make_runner):
        runner = make_runner(outputs={("cmake", "-E"): '{"generators":[{"name":"Ninja"}]}'})

        with pytest.raises(PipelineAborted) as exc:
            _pipeline(config, runner).run()

        assert isinstance(exc.value.cause, UnsupportedToolchainError)

    def test_check_environment_only(self, config: BuildConfig, fake_runner):
        report = _pipeline(config, fake_runner).check_environment()

        assert report.generator == "Visual Studio 17 2022"
        assert ("git", "clone") not in fake_runner.tools_called()


class TestToolFailures:
    @pytest.mark.parametrize(
        "key, stage",
        [
            (("git", "clone"), "clone"),
            (("cmake", "-DABSL_USE_GOOGLETEST_HEAD=ON"), "configure"),
            (("cmake", "--build"), "build"),
        ],
    )
    def test_non_zero_exit_is_fatal(self, config: BuildConfig, make_runner, key, stage):
        runner = make_runner(failures={key: 1})
        pipeline = _pipeline(config, runner)

        with pytest.raises(PipelineAborted) as exc:
            pipeline.run()

        assert exc.value.stage == stage
        assert isinstance(exc.value.cause, ExternalToolError)
        assert f"stage '{stage}' failed" in str(exc.value)
        assert not config.bindings_path.exists()
        failed = pipeline.progress.get(stage)
        assert failed is not None and failed.status == "failed"


class TestGatherIsRecoverable:
    def test_missing_build_output_still_emits(self, config: BuildConfig, make_runner, tree):
        # Clone produces headers, build produces nothing.
        def fake_clone(cwd: Path, args: list[str]) -> None:
            tree(cwd / args[-1], UPSTREAM_HEADERS)

        runner = make_runner(side_effects={("git", "clone"): fake_clone})
        result = _pipeline(config, runner).run()

        assert result.libraries is not None
        assert result.libraries.copied == []
        assert config.bindings_path.exists()

    def test_missing_headers_emit_empty_surface(self, config: BuildConfig, fake_runner):
        result = _pipeline(config, fake_runner).run()

        assert result.headers is not None and result.headers.source_missing
        text = config.bindings_path.read_text()
        assert '#include "' not in text
        assert 'extern "C" {' in text


class TestRealToolOutput:
    def test_build_output_in_foreign_codepage_completes(
        self, config: BuildConfig, upstream_runner
    ):
        # The build step goes through the real ToolRunner to a child printing non-UTF-8 bytes.
        script = "import sys; sys.stdout.buffer.write(b'Build succeeded \\x81\\xff')"
        fake_run = upstream_runner.run

        def run(tool, args, cwd):
            if tool == "cmake" and list(args)[:1] == ["--build"]:
                fake_run(tool, args, cwd)
                return ToolRunner().run(sys.executable, ["-c", script], cwd)
            return fake_run(tool, args, cwd)

        upstream_runner.run = run
        result = _pipeline(config, upstream_runner).run()

        build = result.summary["stages"][STAGES.index("build")]
        assert build["status"] == "completed"
        assert config.bindings_path.exists()


class TestStageLogging:
    def test_every_transition_is_logged(self, config: BuildConfig, upstream_runner):
        with patch("native_bindgen.pipeline.log") as log:
            _pipeline(config, upstream_runner).run()

        transitions = [
            (c.kwargs["stage"], c.kwargs["status"])
            for c in log.info.call_args_list
            if c.args[0] == "pipeline.stage"
        ]
        assert transitions == [(s, st) for s in STAGES for st in ("running", "completed")]

    def test_failure_logged_as_error(self, config: BuildConfig, make_runner):
        runner = make_runner(failures={("cmake", "--build"): 1})

        with patch("native_bindgen.pipeline.log") as log:
            with pytest.raises(PipelineAborted):
                _pipeline(config, runner).run()

        log.error.assert_called_once()
        assert log.error.call_args.kwargs["stage"] == "build"

    def test_reused_checkout_logged_as_skipped(self, config: BuildConfig, upstream_runner):
        (config.source_dir / ".git").mkdir(parents=True)

        with patch("native_bindgen.pipeline.log") as log:
            _pipeline(config, upstream_runner).run()

        clone = [
            c.kwargs["status"]
            for c in log.info.call_args_list
            if c.args[0] == "pipeline.stage" and c.kwargs["stage"] == "clone"
        ]
        assert clone == ["running", "skipped"]
