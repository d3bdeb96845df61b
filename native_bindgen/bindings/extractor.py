"""Function signature extraction from C++ header text.

This is a lexical scan, not a parser. It enumerates top-level function-like
declarations line by line and does not understand overloads, macros or
preprocessor conditionals. A line holding a macro invocation that looks like
``TYPE NAME(`` is captured like any other declaration, and so is a prose line
inside a block comment unless it starts with ``*``.
"""

from __future__ import annotations

import re

from native_bindgen.models.headers import FunctionSignature, HeaderFile

# template <...>        optional, may end a line of its own
# return type run       identifiers, ::, *, &, <, >, blanks (never crosses a line);
#                       starts with an identifier or ::, so " * Foo(x)" comment
#                       body lines are not declarations
# name (                bare identifier after a blank or a trailing * / &
_DECLARATION_RE = re.compile(
    r"^[ \t]*"
    r"(?P<template>template\s*<[^;:{]+>\s*)?"
    r"(?P<return_type>[\w:][\w:*&<> \t]*?)"
    r"(?:[ \t]+|(?<=[*&]))"
    r"(?P<name>\w+)"
    r"[ \t]*\(",
    re.MULTILINE,
)


def _balanced_parameters(text: str, start: int) -> str | None:
    """Return the text up to the paren closing the one opened before *start*."""
    depth = 1
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return " ".join(text[start:i].split())
        elif ch in ";{":
            # Statement or body started before the list closed.
            return None
        i += 1
    return None


class SignatureExtractor:
    """Turn header text into an ordered list of FunctionSignature records."""

    def extract(
        self, header_text: str, origin: HeaderFile | None = None
    ) -> list[FunctionSignature]:
        signatures = []
        for m in _DECLARATION_RE.finditer(header_text):
            template = m.group("template") or ""
            signatures.append(
                FunctionSignature(
                    template_prefix=" ".join(template.split()),
                    return_type=m.group("return_type").strip(),
                    name=m.group("name"),
                    origin=origin,
                    parameters=_balanced_parameters(header_text, m.end()),
                )
            )
        return signatures


def extract_signatures(
    header_text: str, origin: HeaderFile | None = None
) -> list[FunctionSignature]:
    """Module-level shortcut for ``SignatureExtractor().extract``."""
    return SignatureExtractor().extract(header_text, origin)
