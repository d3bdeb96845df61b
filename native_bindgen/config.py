"""Run configuration — defaults, JSON config file, environment overrides.

Precedence (lowest to highest): defaults, config file, environment, CLI.
The resulting BuildConfig is immutable and passed explicitly to every stage.
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from native_bindgen.exceptions import ConfigError

ABSEIL_SRC = "https://github.com/abseil/abseil-cpp.git"

BUILD_TYPES = ("Debug", "Release")
WRAPPER_POLICIES = ("all", "zero-arg")

# Environment variable -> BuildConfig field
_ENV_OVERRIDES: dict[str, str] = {
    "NATIVE_BINDGEN_ROOT": "root",
    "NATIVE_BINDGEN_REPO_URL": "repo_url",
    "NATIVE_BINDGEN_REF": "ref",
    "NATIVE_BINDGEN_BUILD_TYPE": "build_type",
    "NATIVE_BINDGEN_WRAPPER_POLICY": "wrapper_policy",
}

_TUPLE_FIELDS = {
    "extra_configure_flags",
    "library_extensions",
    "header_extensions",
    "strip_segments",
}


@dataclass(frozen=True)
class BuildConfig:
    """Everything one pipeline run needs to know."""

    root: Path = Path(".")
    repo_url: str = ABSEIL_SRC
    ref: str | None = None
    checkout_name: str = "abseil-cpp"
    header_subdir: str = "absl"
    build_type: str = "Debug"
    cxx_standard: int = 20
    platform_arch: str = "x64"
    extra_configure_flags: tuple[str, ...] = ()
    library_extensions: tuple[str, ...] = (".lib", ".pdb", ".exp")
    header_extensions: tuple[str, ...] = (".h",)
    strip_segments: tuple[str, ...] = ("Debug", "Release", "RelWithDebInfo", "MinSizeRel")
    internal_prefix: str = "LOW_LEVEL_ALLOC"
    wrapper_policy: str = "all"
    reuse_checkout: bool = True

    def __post_init__(self) -> None:
        if self.build_type not in BUILD_TYPES:
            raise ConfigError(
                f"build_type must be one of {', '.join(BUILD_TYPES)}, got '{self.build_type}'"
            )
        if self.wrapper_policy not in WRAPPER_POLICIES:
            raise ConfigError(
                f"wrapper_policy must be one of {', '.join(WRAPPER_POLICIES)}, "
                f"got '{self.wrapper_policy}'"
            )

    # ── layout ──

    @property
    def staging_root(self) -> Path:
        return self.root / "target"

    @property
    def source_dir(self) -> Path:
        return self.staging_root / self.checkout_name

    @property
    def cmake_build_dir(self) -> Path:
        return self.source_dir / "build"

    @property
    def header_source_dir(self) -> Path:
        return self.source_dir / self.header_subdir

    @property
    def output_root(self) -> Path:
        return self.root / "external"

    @property
    def include_dir(self) -> Path:
        return self.output_root / "include"

    @property
    def lib_dir(self) -> Path:
        return self.output_root / "lib"

    @property
    def bindings_path(self) -> Path:
        return self.output_root / "bindings.cpp"

    # ── construction ──

    def with_overrides(self, **overrides: Any) -> BuildConfig:
        """Return a copy with non-None *overrides* applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if not values:
            return self
        return dataclasses.replace(self, **_coerce(values))

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["root"] = str(self.root)
        for name in _TUPLE_FIELDS:
            data[name] = list(data[name])
        return data


def _coerce(values: Mapping[str, Any]) -> dict[str, Any]:
    known = {f.name for f in dataclasses.fields(BuildConfig)}
    out: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key '{key}'")
        if key == "root":
            value = Path(value)
        elif key in _TUPLE_FIELDS:
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                raise ConfigError(f"'{key}' must be a list of strings")
            value = tuple(str(v) for v in value)
        elif key == "cxx_standard":
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ConfigError(f"'cxx_standard' must be an integer, got {value!r}")
        elif key == "reuse_checkout" and not isinstance(value, bool):
            raise ConfigError("'reuse_checkout' must be true or false")
        out[key] = value
    return out


def load_config(
    config_file: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Build a BuildConfig from defaults, an optional JSON file and the environment."""
    values: dict[str, Any] = {}

    if config_file is not None:
        path = Path(config_file)
        try:
            data = json.loads(path.read_text())
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        values.update(data)

    env = os.environ if env is None else env
    for var, key in _ENV_OVERRIDES.items():
        if env.get(var):
            values[key] = env[var]

    return BuildConfig(**_coerce(values))


def config_template() -> dict[str, Any]:
    """Default configuration as a JSON-ready dict (for ``init-config``)."""
    return BuildConfig().to_dict()


@dataclass(frozen=True)
class BuildFlags:
    """Ordered CMake argument lists for one run."""

    configure: tuple[str, ...] = field(default_factory=tuple)
    build: tuple[str, ...] = field(default_factory=tuple)


def build_flags(config: BuildConfig) -> BuildFlags:
    """Assemble the CMake arguments. Order matters to the MSBuild passthrough."""
    configure: list[str] = [
        "-DABSL_USE_GOOGLETEST_HEAD=ON",
        "-DCMAKE_CXX_STANDARD_REQUIRED=ON",
        f"-DCMAKE_CXX_STANDARD={config.cxx_standard}",
        f"-DCMAKE_BUILD_TYPE={config.build_type}",
        "-DABSL_MSVC_STATIC_RUNTIME=ON",
    ]
    configure.extend(config.extra_configure_flags)
    configure.append("..")

    build: list[str] = [
        "--build",
        ".",
        "--",
        f"/p:Platform={config.platform_arch}",
        f"/p:Configuration={config.build_type}",
    ]
    return BuildFlags(configure=tuple(configure), build=tuple(build))
