"""Site building functionality for Fleen.

This module contains the compiler, which walks a site root and decides the
output of every entry, and the build orchestrator, which applies those
decisions to a target directory.

Key functions:
- load_config: Loads site configuration from _config.yaml.
- compile_site: Walks the live filesystem into an ordered action list.
- validate_target: Rejects targets overlapping the site root.
- build_site: Cleans the target and writes the compiled site into it.

Callers must not run two builds against the same root or target at once.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .content import render
from .errors import FileIoError, TargetDirError
from .outputs import NO_OUTPUT, Dir, Hidden, RawFile, Rendered, RenderOutput
from .renderers import MarkdownRenderer
from .tree import list_directory
from .utils import clean_dir, is_same_or_nested

CONFIG_FILENAME = "_config.yaml"

DEFAULT_CONFIG = {
    "port": 3000,
    "default_document": "index.html",
    "deploy_script": "_scripts/deploy.sh",
    "image_dir": "images",
    "highlight": True,
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        actions: The ordered action list that was applied.
        output_dir: Directory where the site was built.
        pages: Output paths of the Markdown pages written.
    """

    actions: list[RenderOutput]
    output_dir: Path
    pages: list[Path] = field(default_factory=list)


def load_config(root: Path) -> dict[str, Any]:
    """Load site configuration from _config.yaml.

    Args:
        root: Site root directory.

    Returns:
        Dictionary containing configuration values, with defaults applied.
        ``ws_port`` defaults to one above the HTTP port.
    """
    config_path = root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    config.setdefault("ws_port", int(config["port"]) + 1)
    return config


def renderer_from_config(config: dict[str, Any]) -> MarkdownRenderer:
    """Create a Markdown renderer honouring the ``highlight`` setting."""
    return MarkdownRenderer(highlight=bool(config.get("highlight", True)))


def compile_site(
    root: Path, renderer: MarkdownRenderer | None = None
) -> list[RenderOutput]:
    """Compile a site root into an ordered list of build actions.

    The walk is depth-first: a directory's Dir action always comes before the
    actions for anything inside it, so applying the list in order never
    writes into a missing directory. Only directories that produce a Dir
    action are descended into, so underscore directories are never read.
    Dotfiles are compiled like any other entry. A directory that resolves to
    one of its own ancestors is emitted but not entered again.

    Args:
        root: Site root directory.
        renderer: Optional preconfigured Markdown renderer.

    Returns:
        One RenderOutput per entry visited.

    Raises:
        RenderError: If any source fails to render.
        FileIoError: If a directory cannot be listed.
    """
    renderer = renderer or MarkdownRenderer()
    actions: list[RenderOutput] = []
    _compile_dir(root, root, renderer, actions, frozenset({root.resolve()}))
    return actions


def _compile_dir(
    root: Path,
    directory: Path,
    renderer: MarkdownRenderer,
    actions: list[RenderOutput],
    ancestors: frozenset[Path],
) -> None:
    for path in list_directory(directory, include_hidden=True):
        rel = path.relative_to(root)
        output = render(rel, root, renderer=renderer)
        if isinstance(output, (Rendered, Hidden)) and (root / output.output_path).is_file():
            # A hand-written .html beside the .md wins, as it does in preview
            output = NO_OUTPUT
        actions.append(output)
        if isinstance(output, Dir):
            resolved = path.resolve()
            if resolved not in ancestors:
                _compile_dir(root, path, renderer, actions, ancestors | {resolved})


def validate_target(root: Path, target: Path) -> None:
    """Ensure a build target is safe to wipe for this root.

    Args:
        root: Site root directory.
        target: Directory the build will clean and write to.

    Raises:
        TargetDirError: If target equals, contains or is inside root, or
            exists and is not a directory.
    """
    resolved_root = root.resolve()
    resolved_target = target.resolve()
    if is_same_or_nested(resolved_root, resolved_target):
        raise TargetDirError(
            root,
            target,
            f"Build target {target} must not be the site root or overlap it ({root})",
        )
    if resolved_target.exists() and not resolved_target.is_dir():
        raise TargetDirError(root, target, f"Build target {target} is not a directory")


def build_site(
    root: Path, target: Path, renderer: MarkdownRenderer | None = None
) -> BuildResult:
    """Build the entire site into target.

    Args:
        root: Site root directory.
        target: Output directory; everything inside it is deleted first.
        renderer: Optional preconfigured Markdown renderer.

    Returns:
        BuildResult with the applied actions and the written pages.

    Raises:
        TargetDirError: If the target overlaps the root.
        FileIoError: If cleaning or writing the target fails.
        RenderError: If any source fails to render; nothing is written then.
    """
    validate_target(root, target)
    clean_dir(target)
    actions = compile_site(root, renderer)
    pages: list[Path] = []
    for action in actions:
        _apply_action(root, target, action)
        if isinstance(action, Rendered):
            pages.append(action.output_path)
    return BuildResult(actions=actions, output_dir=target, pages=pages)


def _apply_action(root: Path, target: Path, action: RenderOutput) -> None:
    """Apply one build action against the target directory.

    Hidden and NoOutput actions write nothing.
    """
    if isinstance(action, Rendered):
        dest = target / action.output_path
        try:
            dest.write_text(action.content, encoding="utf-8")
        except OSError as exc:
            raise FileIoError(dest, str(exc)) from exc
    elif isinstance(action, RawFile):
        dest = target / action.path
        try:
            shutil.copy2(root / action.path, dest)
        except OSError as exc:
            raise FileIoError(root / action.path, str(exc)) from exc
    elif isinstance(action, Dir):
        dest = target / action.path
        try:
            dest.mkdir(exist_ok=True)
        except OSError as exc:
            raise FileIoError(dest, str(exc)) from exc
