"""Site handle for Fleen.

A Site owns one site root: its configuration, its tree cache, and the simple
page operations an editor front end needs. Every operation that changes the
tree calls ``self.tree_cache.invalidate()`` before returning, so the next
tree() call reflects the change.

Key classes:
- Site: Handle for an open site root.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .build import BuildResult, build_site, load_config, renderer_from_config
from .deploy import DeployJob
from .errors import FileIoError, SiteError
from .server import PreviewServer
from .tree import TreeCache, TreeEntry
from .utils import unique_image_name

if TYPE_CHECKING:
    from PIL.Image import Image


class Site:
    """An open site root.

    Callers must serialize builds and deploys per site; nothing here locks.

    Attributes:
        root: Absolute site root directory.
        config: Site configuration from _config.yaml.
        tree_cache: Navigation snapshot of the root.
    """

    def __init__(self, root: Path, config: dict[str, Any] | None = None):
        self.root = root.resolve()
        self.config = config if config is not None else load_config(self.root)
        self.tree_cache = TreeCache(self.root)
        self.renderer = renderer_from_config(self.config)

    @classmethod
    def open(cls, root: Path) -> Site:
        """Open an existing site root.

        Raises:
            SiteError: If root does not exist or is not a directory.
        """
        if not root.is_dir():
            raise SiteError(f"Can't reach root dir {root}")
        return cls(root)

    def tree(self) -> list[TreeEntry]:
        """Return the cached tree entries, rebuilding them if stale."""
        return self.tree_cache.snapshot()

    def resolve_path(self, path: Path | str) -> Path:
        """Resolve a path given relative to the root (or absolute inside it).

        Raises:
            SiteError: If the path points outside the root.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(self.root):
            raise SiteError(f"{path} is outside the site root {self.root}")
        return resolved

    def create_page(
        self, name: str, parent: Path | str | None = None, directory: bool = False
    ) -> Path:
        """Create an empty file (or directory) and invalidate the tree cache.

        Args:
            name: New file or directory name.
            parent: Directory to create it in; defaults to the root.
            directory: Create a directory instead of a file.

        Returns:
            Absolute path of the created entry.

        Raises:
            SiteError: If the target already exists or escapes the root.
            FileIoError: If the filesystem refuses.
        """
        base = self.resolve_path(parent) if parent is not None else self.root
        target = self.resolve_path(base / name)
        if target.exists():
            raise SiteError(f"Can't create {target} because it already exists")
        try:
            if directory:
                target.mkdir()
            else:
                target.write_bytes(b"")
        except OSError as exc:
            raise FileIoError(target, str(exc)) from exc
        self.tree_cache.invalidate()
        return target

    def delete_page(self, path: Path | str) -> None:
        """Delete a file or a whole directory and invalidate the tree cache.

        Raises:
            SiteError: If path is the root itself or outside it.
            FileIoError: If the filesystem refuses.
        """
        target = self.resolve_path(path)
        if target == self.root:
            raise SiteError("Refusing to delete the site root")
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as exc:
            raise FileIoError(target, str(exc)) from exc
        self.tree_cache.invalidate()

    def rename_page(self, path: Path | str, new_name: str) -> Path:
        """Rename a file or directory in place and invalidate the tree cache.

        Returns:
            Absolute path after the rename.

        Raises:
            SiteError: If the new name is taken, contains a separator, or the
                path is the root.
            FileIoError: If the filesystem refuses.
        """
        source = self.resolve_path(path)
        if source == self.root:
            raise SiteError("Refusing to rename the site root")
        if Path(new_name).name != new_name:
            raise SiteError(f"Invalid name {new_name!r}")
        target = source.with_name(new_name)
        if target.exists():
            raise SiteError(f"Can't rename to {target} because it already exists")
        try:
            source.rename(target)
        except OSError as exc:
            raise FileIoError(source, str(exc)) from exc
        self.tree_cache.invalidate()
        return target

    @property
    def image_dir(self) -> Path:
        return self.root / str(self.config.get("image_dir", "images"))

    def image_dir_exists(self) -> bool:
        return self.image_dir.is_dir()

    def paste_image(self, image: Image) -> Path:
        """Save a pasted image under a fresh name and invalidate the tree cache.

        Args:
            image: Pillow image, e.g. from ``PIL.ImageGrab.grabclipboard()``.

        Returns:
            Absolute path of the saved PNG.

        Raises:
            SiteError: If the image directory does not exist.
            FileIoError: If the image cannot be written.
        """
        if not self.image_dir_exists():
            raise SiteError(f"No image directory at {self.image_dir}")
        target = unique_image_name(self.image_dir)
        try:
            image.save(target, format="PNG")
        except OSError as exc:
            raise FileIoError(target, str(exc)) from exc
        self.tree_cache.invalidate()
        return target

    def build(self, target: Path) -> BuildResult:
        """Build the site into target (see build.build_site)."""
        return build_site(self.root, target, self.renderer)

    def deploy(self) -> DeployJob:
        """Start a background build-and-deploy and return its job handle."""
        job = DeployJob(self.root, str(self.config["deploy_script"]), self.renderer)
        return job.start()

    def preview_server(
        self,
        http_port: int | None = None,
        ws_port: int | None = None,
        live_reload: bool = True,
    ) -> PreviewServer:
        """Create (not start) a preview server for this site.

        Changes seen by the server's watcher invalidate this site's tree cache.
        """
        port = int(http_port if http_port is not None else self.config["port"])
        if ws_port is None:
            ws_port = port + 1 if http_port is not None else int(self.config["ws_port"])
        return PreviewServer(
            self.root,
            http_port=port,
            ws_port=ws_port,
            default_document=str(self.config["default_document"]),
            renderer=self.renderer,
            live_reload=live_reload,
            on_change=self.tree_cache.invalidate,
        )
