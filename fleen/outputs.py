"""Render outputs for Fleen.

Rendering a source path yields exactly one of these values. The build
orchestrator turns them into files on disk; the preview server turns them into
HTTP responses.

- Rendered: HTML destined for a file.
- Hidden: HTML served by the preview but never written by a build.
- RawFile: copy the source bytes verbatim.
- NoOutput: nothing (404 in preview, absent from builds).
- Dir: create an empty directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class Rendered:
    """HTML content to be written to ``output_path`` (always ``.html``)."""

    output_path: Path
    content: str


@dataclass(frozen=True)
class Hidden:
    """HTML content visible to the preview server only."""

    output_path: Path
    content: str


@dataclass(frozen=True)
class RawFile:
    """A source file copied byte-for-byte."""

    path: Path


@dataclass(frozen=True)
class NoOutput:
    """Produce nothing."""


@dataclass(frozen=True)
class Dir:
    """A directory to recreate in the output."""

    path: Path


RenderOutput = Union[Rendered, Hidden, RawFile, NoOutput, Dir]

NO_OUTPUT = NoOutput()
