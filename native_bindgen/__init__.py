"""native-bindgen: flat extern "C" bindings for a native C++ dependency."""

__version__ = "0.1.0"

from native_bindgen.bindings.emitter import BindingEmitter, discover_headers
from native_bindgen.bindings.extractor import SignatureExtractor, extract_signatures
from native_bindgen.build.version_gate import VersionGate
from native_bindgen.config import BuildConfig, BuildFlags, build_flags, load_config
from native_bindgen.gather.collector import HeaderCollector
from native_bindgen.models.headers import FunctionSignature, HeaderFile
from native_bindgen.models.toolchain import HostPlatform, ToolKind, Version
from native_bindgen.pipeline import BindingPipeline, PipelineResult

__all__ = [
    "BindingEmitter",
    "BindingPipeline",
    "BuildConfig",
    "BuildFlags",
    "FunctionSignature",
    "HeaderCollector",
    "HeaderFile",
    "HostPlatform",
    "PipelineResult",
    "SignatureExtractor",
    "ToolKind",
    "Version",
    "VersionGate",
    "build_flags",
    "discover_headers",
    "extract_signatures",
    "load_config",
]
