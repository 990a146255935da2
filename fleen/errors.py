"""Error types for Fleen.

Every failure the core can report is a FleenError. The subclasses follow the
four families a user can act on:

- filesystem: FileIoError, FileReadError
- parse: MarkdownParseError, FrontmatterParseError
- policy: TargetDirError, DeployScriptMissingError, SiteError
- deploy: DeployError

Each error keeps enough context (path, underlying cause) for the CLI to print
a useful message.
"""

from __future__ import annotations

from pathlib import Path


class FleenError(Exception):
    """Base class for all Fleen errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FileIoError(FleenError):
    """A filesystem operation failed.

    Attributes:
        path: Path the operation was working on.
        detail: Description of the underlying failure.
    """

    def __init__(self, path: Path | str, detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"Failed to access {path}: {detail}")


class RenderError(FleenError):
    """Base class for errors raised while rendering a single source file.

    Attributes:
        source_path: Path (relative to the site root) that failed to render.
        original_error: The exception that was caught, if any.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.original_error = original_error
        super().__init__(message)


class FileReadError(RenderError):
    """A source file or layout template could not be read."""

    def __init__(self, source_path: Path, original_error: Exception | None = None):
        super().__init__(
            source_path,
            f"Error reading {source_path}: {original_error}",
            original_error,
        )


class MarkdownParseError(RenderError):
    """A Markdown source could not be parsed."""

    def __init__(self, source_path: Path, original_error: Exception | None = None):
        super().__init__(
            source_path,
            f"Error parsing Markdown {source_path}: {original_error}",
            original_error,
        )


class FrontmatterParseError(RenderError):
    """The front-matter block of a Markdown source is malformed."""

    def __init__(self, source_path: Path, detail: str, original_error: Exception | None = None):
        super().__init__(
            source_path,
            f"Error parsing frontmatter in {source_path}: {detail}",
            original_error,
        )


class TargetDirError(FleenError):
    """The build target cannot be used for this site root."""

    def __init__(self, root: Path | None, target: Path | None, detail: str):
        self.root = root
        self.target = target
        super().__init__(detail)


class DeployScriptMissingError(FleenError):
    """The site has no deploy script at the expected path."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(
            f"No deploy script found at {path}; create it to enable deploys"
        )


class DeployError(FleenError):
    """The deploy script failed or could not be started.

    Attributes:
        output: Whatever the script printed before failing.
    """

    def __init__(self, detail: str, output: str = ""):
        self.output = output
        super().__init__(detail)


class SiteError(FleenError):
    """A site handle operation was given an invalid root or path."""
