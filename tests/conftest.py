"""Pytest configuration and shared fixtures."""

import subprocess
import pytest
from pathlib import Path
from tempfile import TemporaryDirectory


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def no_color(monkeypatch):
    """Keep console output free of ANSI codes."""
    monkeypatch.setenv("NO_COLOR", "1")


@pytest.fixture
def ansible_project(tmp_path):
    """A complete Ansible project layout."""
    project = tmp_path / "ansible"
    (project / "inventory").mkdir(parents=True)
    (project / "playbooks").mkdir()
    (project / "vars").mkdir()
    (project / "ansible.cfg").write_text("[defaults]\ninventory = inventory/hosts\n")
    (project / "inventory" / "hosts").write_text("[local]\nlocalhost ansible_connection=local\n")
    (project / "vars" / "user_environment.yml").write_text("---\ngit_user_name: Dev\n")
    (project / "playbooks" / "main.yml").write_text(
        "---\n- name: Configure WSL2\n  hosts: local\n  roles:\n    - common\n"
    )
    for role in ["common", "ssh-keys", "gpg-keys", "development", "kubernetes-tools", "docker"]:
        (project / "roles" / role / "tasks").mkdir(parents=True)
        (project / "roles" / role / "tasks" / "main.yml").write_text("---\n[]\n")
    return project


@pytest.fixture
def sample_profile_output():
    """Tail of an ansible-playbook run with profile_tasks and timer enabled."""
    return '''
PLAY RECAP *********************************************************************
localhost                  : ok=42   changed=3    unreachable=0    failed=0    skipped=5

Playbook run took 0 days, 0 hours, 2 minutes, 7 seconds
Tuesday 14 October 2026  10:12:44 +0000 (0:00:00.512)       0:02:07.310 ******
===============================================================================
development : Install language toolchains ----------------------------- 61.20s
docker : Install Docker packages -------------------------------------- 30.04s
common : Update apt cache ---------------------------------------------- 12.50s
Gathering Facts --------------------------------------------------------- 2.11s
'''


@pytest.fixture
def sample_results_text():
    """A finished benchmark report."""
    return '''==================================================
Ansible Playbook Performance Benchmark
==================================================
Timestamp: 2026-10-14T10:10:37+00:00
Hostname: devbox

==================================================
Benchmark Results
==================================================
Total Duration: 127s (00:02:07)
Start Time: Tue Oct 14 10:10:37 2026
End Time: Tue Oct 14 10:12:44 2026
==================================================
'''


def completed(cmd=None, returncode=0, stdout="", stderr=""):
    """Build a CompletedProcess the way subprocess.run returns it."""
    return subprocess.CompletedProcess(cmd or [], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def make_completed():
    return completed
