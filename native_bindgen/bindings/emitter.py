"""Binding file generation — one extern "C" surface over all gathered headers."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import structlog

from native_bindgen.bindings.extractor import SignatureExtractor
from native_bindgen.exceptions import EmissionError
from native_bindgen.gather.collector import has_extension, walk_files
from native_bindgen.models.headers import EmissionReport, FunctionSignature, HeaderFile

log = structlog.get_logger("native_bindgen.bindings")

_PREAMBLE = (
    "// language: C++\n"
    "// This file is auto-generated. It includes all header files from the external folder\n"
    "\n"
    "#ifdef __cplusplus\n"
    'extern "C" {\n'
    "#endif\n"
    "\n"
)

_CLOSING = "\n#ifdef __cplusplus\n}\n#endif\n"


def discover_headers(
    include_root: str | Path, extensions: Sequence[str] = (".h",)
) -> list[HeaderFile]:
    """All headers below *include_root*, in traversal order."""
    root = Path(include_root)
    predicate = has_extension(*extensions)
    return [HeaderFile.from_path(p, root) for p in walk_files(root) if predicate(p)]


class BindingEmitter:
    """Write includes plus zero-argument forwarding wrappers.

    Wrappers take no arguments because the extractor does not model
    parameter lists. Under ``wrapper_policy="all"`` a template declaration
    gets a ``template <...>`` wrapper inside the ``extern "C"`` block, which
    no C++ compiler accepts (templates cannot have C linkage).
    ``wrapper_policy="zero-arg"`` keeps only non-template declarations whose
    captured parameter list is empty or ``void``.
    """

    def __init__(
        self,
        extractor: SignatureExtractor | None = None,
        internal_prefix: str = "LOW_LEVEL_ALLOC",
        wrapper_policy: str = "all",
        header_extensions: Sequence[str] = (".h",),
    ) -> None:
        self.extractor = extractor or SignatureExtractor()
        self.internal_prefix = internal_prefix
        self.wrapper_policy = wrapper_policy
        self.header_extensions = tuple(header_extensions)

    def emit(self, include_root: str | Path, dest_file: str | Path) -> EmissionReport:
        """Discover headers, extract signatures, write *dest_file*."""
        include_root = Path(include_root)
        if include_root.is_dir():
            headers = discover_headers(include_root, self.header_extensions)
        else:
            log.warning("bindings.include_root_missing", include_root=str(include_root))
            headers = []

        signatures: list[FunctionSignature] = []
        for header in headers:
            try:
                text = Path(header.source_path).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise EmissionError(f"Cannot read header {header.source_path}: {e}") from e
            signatures.extend(self.extractor.extract(text, origin=header))

        return self.write(headers, signatures, dest_file)

    def write(
        self,
        headers: Sequence[HeaderFile],
        signatures: Sequence[FunctionSignature],
        dest_file: str | Path,
    ) -> EmissionReport:
        dest_file = Path(dest_file)
        report = EmissionReport(
            path=str(dest_file),
            include_count=len(headers),
            signature_count=len(signatures),
        )
        text = self.render(headers, signatures, report)
        try:
            dest_file.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_file, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(text)
        except OSError as e:
            raise EmissionError(f"Cannot write binding file {dest_file}: {e}") from e

        log.info(
            "bindings.generated",
            path=str(dest_file),
            includes=report.include_count,
            wrappers=report.wrapper_count,
            skipped_internal=report.skipped_internal,
            skipped_by_policy=report.skipped_by_policy,
        )
        return report

    def render(
        self,
        headers: Sequence[HeaderFile],
        signatures: Sequence[FunctionSignature],
        report: EmissionReport | None = None,
    ) -> str:
        report = report or EmissionReport(path="")
        parts = [_PREAMBLE]
        for header in headers:
            parts.append(f'#include "{header.relative_path}"\n')
        parts.append("\n")

        for sig in signatures:
            if self.internal_prefix and sig.name.startswith(self.internal_prefix):
                report.skipped_internal += 1
                continue
            if self.wrapper_policy == "zero-arg" and (sig.template_prefix or not sig.is_zero_arg):
                report.skipped_by_policy += 1
                continue
            parts.append(self._wrapper(sig))
            report.wrapper_count += 1

        parts.append(_CLOSING)
        return "".join(parts)

    @staticmethod
    def _wrapper(sig: FunctionSignature) -> str:
        origin = sig.origin.relative_path if sig.origin else "<unknown>"
        template = f"{sig.template_prefix} " if sig.template_prefix else ""
        return (
            f'  // Wrapper for function declared in "{origin}"\n'
            f"  {template}{sig.return_type} {sig.name}_wrapper() {{ return {sig.name}(); }}\n"
            "\n"
        )
