"""
Preprocessing applied to code read from local files before it's uploaded.
"""
from __future__ import annotations

import re
from pathlib import Path

from .exceptions import InputError

__all__ = [
    "CodeTransformer",
    "PassthroughTransformer",
    "IncludeTransformer",
    "get_transformer",
]


class CodeTransformer:
    """
    Base transformer; returns code unchanged.
    """

    def transform(self, code: str, source_dir: Path) -> str:
        return code


class PassthroughTransformer(CodeTransformer):
    pass


class IncludeTransformer(CodeTransformer):
    """
    Expands local include directives:

    ```
    <%@ include file='shared/header.html' %>
    ```

    The path is relative to the folder of the including file. Included files
    are expanded recursively. Directives which reference server-side views
    (`<%@ include view='...' %>`) are left for the backend to resolve.
    """

    DIRECTIVE = re.compile(
        r"<%@\s*include\s+file\s*=\s*(['\"])(?P<path>.+?)\1\s*%>"
    )

    def transform(self, code: str, source_dir: Path) -> str:
        return self._expand(code, source_dir, [])

    def _expand(self, code: str, source_dir: Path, stack: list[Path]) -> str:
        def replace(match: re.Match[str]) -> str:
            path = (source_dir / match["path"]).resolve()

            if path in stack:
                chain = " -> ".join(str(p) for p in stack + [path])
                raise InputError(f"Include cycle detected: {chain}")

            if not path.is_file():
                raise InputError(
                    f"Included file not found: '{match['path']}' (from '{source_dir}')"
                )

            return self._expand(path.read_text(), path.parent, stack + [path])

        return self.DIRECTIVE.sub(replace, code)


_TRANSFORMERS: dict[str, type[CodeTransformer]] = {
    ".html": IncludeTransformer,
    ".js": IncludeTransformer,
}


def get_transformer(extension: str) -> CodeTransformer:
    """
    Get transformer for file extension, e.g. `.html`.
    """
    return _TRANSFORMERS.get(extension.lower(), PassthroughTransformer)()
