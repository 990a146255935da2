"""Directory tree snapshot for Fleen.

The tree is a flat, depth-first, pre-order listing of a site root used to
drive navigation (the CLI ``tree`` command, editor front ends). A directory's
DirOpen precedes its children and a matching DirClose follows them. Dotfiles
are left out; underscore paths are kept because layouts and scripts still
need to be reachable for editing.

The compiler never reads this cache; it always walks the live filesystem
and, unlike the tree, keeps dotfiles such as ``.nojekyll``. A directory that
resolves to one of its own ancestors (a symlink loop) is listed but not
entered.

Key items:
- File, DirOpen, DirClose: Tree entries.
- list_directory: Sorted directory listing, dotfile-free unless asked.
- walk_tree: Build the full entry list for a root.
- TreeCache: Lazily built, explicitly invalidated snapshot.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import FileIoError
from .utils import is_hidden_name


@dataclass(frozen=True)
class File:
    """A file, relative to the site root."""

    path: Path


@dataclass(frozen=True)
class DirOpen:
    """Start of a directory, relative to the site root (``.`` for the root)."""

    path: Path


@dataclass(frozen=True)
class DirClose:
    """End of the most recently opened directory."""


TreeEntry = Union[File, DirOpen, DirClose]

DIR_CLOSE = DirClose()


def list_directory(directory: Path, include_hidden: bool = False) -> list[Path]:
    """List a directory's entries, sorted by name.

    Args:
        directory: Absolute directory to read.
        include_hidden: Keep dotfiles and dot-directories.

    Returns:
        Absolute paths of the entries.

    Raises:
        FileIoError: If the directory cannot be read.
    """
    try:
        entries = [
            p
            for p in directory.iterdir()
            if include_hidden or not is_hidden_name(p.name)
        ]
    except OSError as exc:
        raise FileIoError(directory, str(exc)) from exc
    return sorted(entries, key=lambda p: p.name)


def _iter_entries(
    root: Path, directory: Path, ancestors: frozenset[Path]
) -> Iterator[TreeEntry]:
    for path in list_directory(directory):
        rel = path.relative_to(root)
        if path.is_dir():
            yield DirOpen(rel)
            resolved = path.resolve()
            if resolved not in ancestors:
                yield from _iter_entries(root, path, ancestors | {resolved})
            yield DIR_CLOSE
        else:
            yield File(rel)


def walk_tree(root: Path) -> list[TreeEntry]:
    """Walk a site root into a depth-first entry list.

    The root itself is the outermost DirOpen/DirClose pair.

    Args:
        root: Site root directory.

    Returns:
        Ordered list of tree entries.

    Raises:
        FileIoError: If any directory in the tree cannot be read.
    """
    entries: list[TreeEntry] = [DirOpen(Path("."))]
    entries.extend(_iter_entries(root, root, frozenset({root.resolve()})))
    entries.append(DIR_CLOSE)
    return entries


class TreeCache:
    """Lazily computed snapshot of a site's directory structure.

    Every operation that mutates the site (page creation, deletion, rename,
    image paste, or an external change seen by the preview watcher) must call
    invalidate(); the next snapshot() re-walks the filesystem.

    Attributes:
        root: Site root the cache describes.
    """

    def __init__(self, root: Path):
        self.root = root
        self._entries: list[TreeEntry] | None = None
        self._lock = threading.Lock()

    @property
    def stale(self) -> bool:
        """True when the next snapshot() will re-walk the filesystem."""
        return self._entries is None

    def snapshot(self) -> list[TreeEntry]:
        """Return the cached entries, walking the filesystem if stale."""
        with self._lock:
            if self._entries is None:
                self._entries = walk_tree(self.root)
            return list(self._entries)

    def invalidate(self) -> None:
        """Mark the cache stale."""
        with self._lock:
            self._entries = None
