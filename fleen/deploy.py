"""Build-and-deploy pipeline for Fleen.

A deploy builds the site into a fresh scratch directory, runs the site's
deploy script with that directory as its working directory, and removes the
scratch directory again whatever happened.

The pipeline runs on a background thread. Callers get a DeployJob and poll it
from their own loop; nothing here blocks the caller.

Key items:
- build_and_deploy: The synchronous pipeline.
- DeployJob: Background runner with a single-slot result.
- DeployResult: Outcome delivered to the poller.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from .build import DEFAULT_CONFIG, build_site
from .errors import (
    DeployError,
    DeployScriptMissingError,
    FileIoError,
    FleenError,
    TargetDirError,
)
from .renderers import MarkdownRenderer

DEFAULT_DEPLOY_SCRIPT = DEFAULT_CONFIG["deploy_script"]


@dataclass
class DeployResult:
    """Outcome of a deploy.

    Attributes:
        ok: True when the script exited with status 0.
        output: Captured standard output of the script.
        error: The error that ended the deploy, when ok is False.
    """

    ok: bool
    output: str = ""
    error: FleenError | None = None


def _make_scratch_dir() -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix="fleen-deploy-"))
    except OSError as exc:
        raise TargetDirError(None, None, f"Could not create a scratch directory: {exc}") from exc


def _remove_scratch_dir(path: Path, report_only: bool = False) -> None:
    """Delete the scratch directory.

    With report_only, a failure is printed instead of raised so it cannot
    replace the error already propagating.
    """
    try:
        shutil.rmtree(path)
    except OSError as exc:
        if not report_only:
            raise FileIoError(path, f"could not remove scratch directory: {exc}") from exc
        print(f"Could not remove scratch directory {path}: {exc}", file=sys.stderr)


def _script_command(script: Path) -> list[str]:
    if os.access(script, os.X_OK):
        return [str(script)]
    bash = shutil.which("bash")
    if bash is None:
        raise DeployError(f"Deploy script {script} is not executable and bash was not found")
    return [bash, str(script)]


def run_deploy_script(script: Path, cwd: Path) -> str:
    """Run a deploy script and return its standard output.

    No timeout is applied; the script runs until it exits.

    Args:
        script: Absolute path of the script.
        cwd: Working directory (the freshly built site).

    Returns:
        Captured standard output.

    Raises:
        DeployError: If the script cannot be started or exits non-zero.
    """
    command = _script_command(script)
    try:
        completed = subprocess.run(command, cwd=cwd, capture_output=True, text=True)
    except OSError as exc:
        raise DeployError(f"Could not run deploy script {script}: {exc}") from exc
    if completed.returncode != 0:
        output = (completed.stdout or "") + (completed.stderr or "")
        raise DeployError(
            f"Deploy script exited with status {completed.returncode}:\n{output}".rstrip(),
            output,
        )
    return completed.stdout or ""


def build_and_deploy(
    root: Path,
    deploy_script: str = DEFAULT_DEPLOY_SCRIPT,
    renderer: MarkdownRenderer | None = None,
) -> str:
    """Build the site into a scratch directory and run the deploy script there.

    The scratch directory is removed before this returns or raises, whether
    the build failed, the script was missing, could not be started, failed,
    or succeeded.

    Args:
        root: Site root directory.
        deploy_script: Script path relative to root.
        renderer: Optional preconfigured Markdown renderer.

    Returns:
        The script's standard output.

    Raises:
        TargetDirError: If no scratch directory could be created.
        RenderError: If the build fails.
        DeployScriptMissingError: If the script does not exist.
        DeployError: If the script fails or cannot be started.
    """
    root = root.resolve()
    scratch = _make_scratch_dir()
    try:
        build_site(root, scratch, renderer)
        script = root / deploy_script
        if not script.is_file():
            raise DeployScriptMissingError(script)
        output = run_deploy_script(script, scratch)
    except BaseException:
        _remove_scratch_dir(scratch, report_only=True)
        raise
    _remove_scratch_dir(scratch)
    return output


class DeployJob:
    """Runs build_and_deploy on a background thread.

    The result lands in a single slot. poll() hands it out exactly once and
    returns None before that, so a UI loop can check it on every tick without
    blocking. Only one job per site should be in flight at a time; guarding
    that is the caller's job.

    Attributes:
        root: Site root directory.
        deploy_script: Script path relative to root.
    """

    def __init__(
        self,
        root: Path,
        deploy_script: str = DEFAULT_DEPLOY_SCRIPT,
        renderer: MarkdownRenderer | None = None,
    ):
        self.root = root
        self.deploy_script = deploy_script
        self.renderer = renderer
        self._result: DeployResult | None = None
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> DeployJob:
        """Dispatch the pipeline and return immediately."""
        if self._thread is not None:
            raise RuntimeError("Deploy job already started")
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            output = build_and_deploy(self.root, self.deploy_script, self.renderer)
            result = DeployResult(ok=True, output=output)
        except FleenError as exc:
            result = DeployResult(ok=False, output=getattr(exc, "output", ""), error=exc)
        except Exception as exc:
            result = DeployResult(ok=False, error=DeployError(f"{type(exc).__name__}: {exc}"))
        with self._lock:
            self._result = result
        self._finished.set()

    @property
    def done(self) -> bool:
        """True once the pipeline has finished, whether or not polled."""
        return self._finished.is_set()

    def poll(self) -> DeployResult | None:
        """Take the result if it is ready, without blocking."""
        with self._lock:
            result, self._result = self._result, None
        return result

    def wait(self, timeout: float | None = None) -> DeployResult | None:
        """Block until done, then poll(). For scripts and tests, not UI loops."""
        self._finished.wait(timeout)
        return self.poll()
