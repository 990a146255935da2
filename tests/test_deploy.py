import subprocess
import threading
from pathlib import Path

import pytest

from fleen import deploy as deploy_module
from fleen.deploy import DeployJob, DeployResult, build_and_deploy, run_deploy_script
from fleen.errors import (
    DeployError,
    DeployScriptMissingError,
    FrontmatterParseError,
    TargetDirError,
)


def create_site(tmp_path: Path, script: str | None = None, executable: bool = True) -> Path:
    root = tmp_path / "site"
    (root / "_scripts").mkdir(parents=True)
    (root / "index.md").write_text("# Home\n", encoding="utf-8")
    (root / "raw.txt").write_text("raw", encoding="utf-8")
    if script is not None:
        path = root / "_scripts" / "deploy.sh"
        path.write_text(script, encoding="utf-8")
        if executable:
            path.chmod(0o755)
    return root


def track_scratch(monkeypatch) -> list[Path]:
    created: list[Path] = []
    real_mkdtemp = deploy_module.tempfile.mkdtemp

    def fake_mkdtemp(*args, **kwargs):
        path = real_mkdtemp(*args, **kwargs)
        created.append(Path(path))
        return path

    monkeypatch.setattr(deploy_module.tempfile, "mkdtemp", fake_mkdtemp)
    return created


def test_deploy_success_runs_in_built_site(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    root = create_site(
        tmp_path,
        "#!/bin/sh\ntest -f index.html && test -f raw.txt && echo \"Site deployed!\"\n",
    )
    output = build_and_deploy(root)
    assert output == "Site deployed!\n"
    assert len(scratch) == 1
    assert not scratch[0].exists()


def test_deploy_runs_non_executable_script_with_bash(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    root = create_site(tmp_path, "echo from bash\n", executable=False)
    assert build_and_deploy(root) == "from bash\n"
    assert not scratch[0].exists()


def test_deploy_failure_carries_output(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    root = create_site(tmp_path, "#!/bin/sh\necho partial\necho oops >&2\nexit 3\n")
    with pytest.raises(DeployError) as excinfo:
        build_and_deploy(root)
    assert "status 3" in excinfo.value.message
    assert "partial" in excinfo.value.output
    assert "oops" in excinfo.value.output
    assert not scratch[0].exists()


def test_deploy_missing_script(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    root = create_site(tmp_path)
    with pytest.raises(DeployScriptMissingError) as excinfo:
        build_and_deploy(root)
    assert excinfo.value.path == root.resolve() / "_scripts" / "deploy.sh"
    assert not scratch[0].exists()


def test_deploy_build_failure_skips_script(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    marker = tmp_path / "ran"
    root = create_site(tmp_path, f"#!/bin/sh\ntouch {marker}\n")
    (root / "broken.md").write_text("+++\ntitle = [\n+++\n", encoding="utf-8")
    with pytest.raises(FrontmatterParseError):
        build_and_deploy(root)
    assert not marker.exists()
    assert not scratch[0].exists()


def test_deploy_spawn_failure(tmp_path, monkeypatch):
    scratch = track_scratch(monkeypatch)
    root = create_site(tmp_path, "#!/bin/sh\necho hi\n")

    def fail_run(*args, **kwargs):
        raise OSError("exec format error")

    monkeypatch.setattr(subprocess, "run", fail_run)
    with pytest.raises(DeployError) as excinfo:
        build_and_deploy(root)
    assert "exec format error" in excinfo.value.message
    assert not scratch[0].exists()


def test_deploy_scratch_allocation_failure(tmp_path, monkeypatch):
    root = create_site(tmp_path, "#!/bin/sh\necho hi\n")

    def fail_mkdtemp(*args, **kwargs):
        raise OSError("no space")

    monkeypatch.setattr(deploy_module.tempfile, "mkdtemp", fail_mkdtemp)
    with pytest.raises(TargetDirError):
        build_and_deploy(root)


def test_cleanup_failure_does_not_mask_earlier_error(tmp_path, monkeypatch, capsys):
    root = create_site(tmp_path)

    def fail_rmtree(path):
        raise OSError("busy")

    monkeypatch.setattr(deploy_module.shutil, "rmtree", fail_rmtree)
    with pytest.raises(DeployScriptMissingError):
        build_and_deploy(root)
    assert "busy" in capsys.readouterr().err


def test_run_deploy_script_uses_working_directory(tmp_path):
    script = tmp_path / "pwd.sh"
    script.write_text("#!/bin/sh\npwd\n", encoding="utf-8")
    script.chmod(0o755)
    workdir = tmp_path / "work"
    workdir.mkdir()
    assert Path(run_deploy_script(script, workdir).strip()).resolve() == workdir.resolve()


def test_deploy_job_polls_without_blocking(tmp_path, monkeypatch):
    release = threading.Event()

    def slow_deploy(root, deploy_script, renderer):
        release.wait(5)
        return "done\n"

    monkeypatch.setattr(deploy_module, "build_and_deploy", slow_deploy)
    job = DeployJob(tmp_path).start()
    assert job.poll() is None
    assert not job.done

    release.set()
    result = job.wait(timeout=5)
    assert result == DeployResult(ok=True, output="done\n")
    assert job.done
    # The slot is handed out exactly once
    assert job.poll() is None


def test_deploy_job_reports_failure(tmp_path):
    root = create_site(tmp_path, "#!/bin/sh\necho nope\nexit 1\n")
    result = DeployJob(root).start().wait(timeout=30)
    assert result is not None
    assert result.ok is False
    assert isinstance(result.error, DeployError)
    assert "nope" in result.output


def test_deploy_job_wraps_unexpected_errors(tmp_path, monkeypatch):
    def boom(root, deploy_script, renderer):
        raise ValueError("unexpected")

    monkeypatch.setattr(deploy_module, "build_and_deploy", boom)
    result = DeployJob(tmp_path).start().wait(timeout=5)
    assert result.ok is False
    assert isinstance(result.error, DeployError)
    assert "unexpected" in result.error.message


def test_deploy_job_cannot_start_twice(tmp_path, monkeypatch):
    monkeypatch.setattr(deploy_module, "build_and_deploy", lambda *args: "")
    job = DeployJob(tmp_path).start()
    with pytest.raises(RuntimeError):
        job.start()
    job.wait(timeout=5)
