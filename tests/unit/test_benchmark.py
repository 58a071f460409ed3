"""Tests for the playbook benchmark."""

import io
import pytest
from unittest.mock import MagicMock, patch

from wsl_devenv.data.models import SystemInfo
from wsl_devenv.data.persistence import BenchmarkStore
from wsl_devenv.tasks.base import TaskError
from wsl_devenv.tasks.benchmark import (
    PROFILING_ENV,
    PlaybookBenchmark,
    render_header,
)


def fake_system():
    return SystemInfo(
        hostname="devbox",
        os_description="Ubuntu 24.04.1 LTS",
        kernel="5.15.153.1-microsoft-standard-WSL2",
        cpu_model="AMD Ryzen 7 5800X",
        cpu_cores=8,
        memory_total="15G",
        disk_free="200G",
        ansible_version="ansible [core 2.16.3]",
    )


def fake_clock(*values):
    ticks = iter(values)
    return lambda: next(ticks)


def fake_process(output="", returncode=0):
    proc = MagicMock()
    proc.stdout = io.StringIO(output)
    proc.wait.return_value = returncode
    return proc


@pytest.fixture
def store(temp_data_dir):
    return BenchmarkStore(temp_data_dir)


def make_benchmark(store, **kwargs):
    kwargs.setdefault("system_info_fn", fake_system)
    kwargs.setdefault("clock", fake_clock(1000, 1127))
    return PlaybookBenchmark(store, **kwargs)


class TestBuildCommand:
    def test_check_mode_default(self, store):
        bench = make_benchmark(store)
        assert bench.build_command() == ["ansible-playbook", "--check", "playbooks/main.yml"]

    def test_real_run_with_inventory(self, store):
        bench = make_benchmark(store, check_mode=False, inventory="inventory/hosts", playbook="site.yml")
        assert bench.build_command() == ["ansible-playbook", "-i", "inventory/hosts", "site.yml"]


def test_render_header_includes_system_details():
    from datetime import datetime

    header = render_header(fake_system(), datetime(2026, 10, 14, 10, 10, 37))
    assert "Ansible Playbook Performance Benchmark" in header
    assert "Hostname: devbox" in header
    assert "CPU Cores: 8" in header
    assert "ansible [core 2.16.3]" in header


class TestPlaybookBenchmark:
    def test_name_property(self, store):
        assert make_benchmark(store).name == "benchmark"

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_first_run(self, mock_popen, store, sample_profile_output):
        mock_popen.return_value = fake_process(sample_profile_output)

        run = make_benchmark(store).run()

        assert run.exit_code == 0
        assert run.duration_seconds == 127
        assert run.comparison is None
        assert [t.seconds for t in run.slow_tasks][:2] == [61.20, 30.04]

        report = run.results_file.read_text()
        assert "Hostname: devbox" in report
        assert "Install Docker packages" in report
        assert "Total Duration: 127s (00:02:07)" in report
        assert "Performance Analysis" in report

        metrics = store.load_metrics(run.timestamp)
        assert metrics["duration_seconds"] == 127
        assert metrics["exit_code"] == 0

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_profiling_environment(self, mock_popen, store):
        mock_popen.return_value = fake_process("ok\n")

        make_benchmark(store).run()

        env = mock_popen.call_args.kwargs["env"]
        for key, value in PROFILING_ENV.items():
            assert env[key] == value

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_missing_profile_data(self, mock_popen, store, capsys):
        mock_popen.return_value = fake_process("PLAY RECAP\n")

        run = make_benchmark(store).run()

        assert run.slow_tasks == []
        assert "Profile data not found" in capsys.readouterr().out
        assert "Performance Analysis" not in run.results_file.read_text()

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_compares_with_previous(self, mock_popen, store, sample_results_text):
        previous = sample_results_text.replace("Total Duration: 127s", "Total Duration: 120s")
        store.write_results("20000101-000000", previous)
        mock_popen.return_value = fake_process("ok\n")

        run = make_benchmark(store).run()

        assert run.comparison is not None
        assert run.comparison.previous_seconds == 120
        assert run.comparison.current_seconds == 127
        assert run.comparison.trend == "degraded"
        report = run.results_file.read_text()
        assert "Comparison with Previous Run" in report
        assert "Difference: 7s (5.83%)" in report

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_previous_without_duration(self, mock_popen, store):
        store.write_results("20000101-000000", "interrupted run\n")
        mock_popen.return_value = fake_process("ok\n")

        run = make_benchmark(store).run()

        assert run.comparison is None

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_prunes_old_reports(self, mock_popen, store):
        for day in range(1, 13):
            store.write_results(f"200001{day:02d}-000000", "old\n")
        mock_popen.return_value = fake_process("ok\n")

        run = make_benchmark(store, keep_count=10).run()

        assert run.pruned == 3
        reports = store.list_results()
        assert len(reports) == 10
        assert reports[-1] == run.results_file

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_real_run_cancelled(self, mock_popen, store):
        run = make_benchmark(store, check_mode=False, assume_yes=False).run()

        assert run.cancelled is True
        assert not run.results_file.exists()
        assert store.list_results() == []
        mock_popen.assert_not_called()

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_real_run_confirmed(self, mock_popen, store):
        mock_popen.return_value = fake_process("ok\n")

        run = make_benchmark(store, check_mode=False, assume_yes=True).run()

        assert run.cancelled is False
        assert "--check" not in mock_popen.call_args.args[0]

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_playbook_failure(self, mock_popen, store):
        mock_popen.return_value = fake_process("fatal: [localhost]: FAILED!\n", returncode=2)

        with pytest.raises(TaskError) as exc_info:
            make_benchmark(store).run()

        assert "exited with code 2" in str(exc_info.value)
        reports = store.list_results()
        assert len(reports) == 1
        text = reports[0].read_text()
        assert "FAILED!" in text
        assert "Exit Code: 2" in text
        assert "Total Duration" not in text
        timestamp = reports[0].stem[len("results-"):]
        assert store.load_metrics(timestamp)["exit_code"] == 2


    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_skips_failed_previous_run(self, mock_popen, store, sample_results_text):
        store.write_results("20000101-000000", sample_results_text.replace("127s", "120s"))
        store.write_results("20000102-000000", sample_results_text.replace("127s", "5s"))
        store.save_metrics("20000102-000000", {"exit_code": 2})
        mock_popen.return_value = fake_process("ok\n")

        run = make_benchmark(store).run()

        assert run.comparison.previous_seconds == 120

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_output_decoding_is_lenient(self, mock_popen, store):
        mock_popen.return_value = fake_process("ok\n")

        make_benchmark(store).run()

        kwargs = mock_popen.call_args.kwargs
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_process_reaped_when_streaming_fails(self, mock_popen, store):
        proc = fake_process(returncode=0)
        proc.stdout = MagicMock()
        proc.stdout.__iter__.side_effect = OSError("pipe broke")
        mock_popen.return_value = proc

        with pytest.raises(TaskError):
            make_benchmark(store).run()

        proc.stdout.close.assert_called_once()
        proc.wait.assert_called_once()

    @patch("wsl_devenv.tasks.benchmark.subprocess.Popen")
    def test_cannot_start_playbook(self, mock_popen, store):
        mock_popen.side_effect = FileNotFoundError("ansible-playbook")

        with pytest.raises(TaskError):
            make_benchmark(store).run()
