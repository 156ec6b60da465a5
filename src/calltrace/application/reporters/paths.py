"""Output layout: document paths and relative hrefs between documents."""

from __future__ import annotations

import os
from pathlib import Path, PurePath


def document_path(output_dir: Path, source_path: str, suffix: str) -> Path:
    """Document location for a source file: source path below output_dir, plus suffix.

    /src/app/x.py -> <output_dir>/src/app/x.py.html
    """
    parts = PurePath(source_path).parts
    relative = parts[1:] if PurePath(source_path).anchor else parts
    if not relative:
        raise ValueError(f"source path has no file component: {source_path!r}")
    *dirs, name = relative
    return output_dir.joinpath(*dirs, name + suffix)


def relative_href(from_document: Path, to_document: Path, lineno: int | None = None) -> str:
    """URL from one document to another, optionally to a line anchor.

    Always uses forward slashes.
    """
    href = PurePath(os.path.relpath(to_document, from_document.parent)).as_posix()
    if lineno is not None:
        href = f"{href}#{lineno}"
    return href
