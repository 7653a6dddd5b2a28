"""Tests for the benchmark executor."""

import sys
import threading
import time

import pytest

from weightbench.campaign.build import Artifact
from weightbench.campaign.executor import BenchmarkExecutor, render_command
from weightbench.campaign.registry import ModuleDescriptor
from weightbench.campaign.result import FailureReason, RunStatus


@pytest.fixture
def artifact(artifact_file):
    return Artifact(path=artifact_file, features=frozenset({"runtime-benchmarks"}))


@pytest.fixture
def descriptor(bench_script):
    def _make(module_id, timeout_s=30.0, **kwargs):
        return ModuleDescriptor(
            id=module_id,
            entry_point=(sys.executable, str(bench_script), "{module}"),
            timeout_s=timeout_s,
            **kwargs,
        )

    return _make


class TestRenderCommand:
    def test_placeholders(self, artifact, tmp_path):
        args = render_command(
            ("{artifact}", "--pallet={module}", "--output={module_dir}/w.rs", "{output_dir}"),
            artifact,
            "balances",
            tmp_path / "out" / "balances",
            tmp_path / "out",
        )
        assert args == [
            str(artifact.path),
            "--pallet=balances",
            f"--output={tmp_path / 'out' / 'balances'}/w.rs",
            str(tmp_path / "out"),
        ]

    def test_unknown_braces_untouched(self, artifact):
        args = render_command(("--extrinsic=*", "{json}"), artifact, "m")
        assert args == ["--extrinsic=*", "{json}"]


class TestBenchmarkExecutor:
    def test_success(self, artifact, descriptor):
        record = BenchmarkExecutor().run(artifact, descriptor("balances"))
        assert record.status == RunStatus.SUCCESS
        assert record.module == "balances"
        assert b"weights for balances" in record.raw_output
        assert record.reason is None
        assert record.duration_s > 0

    def test_non_zero_exit(self, artifact, descriptor):
        record = BenchmarkExecutor().run(artifact, descriptor("fail_me"))
        assert record.status == RunStatus.FAILED
        assert record.reason == FailureReason.NON_ZERO_EXIT
        assert "code 3" in record.detail
        assert b"partial output for fail_me" in record.raw_output

    def test_crash(self, artifact, descriptor):
        record = BenchmarkExecutor().run(artifact, descriptor("crash_me"))
        assert record.status == RunStatus.FAILED
        assert record.reason == FailureReason.CRASH
        assert "SIGKILL" in record.detail

    def test_missing_entry_point(self, artifact):
        desc = ModuleDescriptor(id="x", entry_point=("/nonexistent/bench",))
        record = BenchmarkExecutor().run(artifact, desc)
        assert record.status == RunStatus.FAILED
        assert record.reason == FailureReason.CRASH
        assert "Failed to start" in record.detail

    def test_timeout(self, artifact, descriptor):
        start = time.monotonic()
        record = BenchmarkExecutor().run(artifact, descriptor("hang_me", timeout_s=1.0))
        elapsed = time.monotonic() - start

        assert record.status == RunStatus.FAILED
        assert record.reason == FailureReason.TIMEOUT
        assert b"started hang_me" in record.raw_output
        assert elapsed < 30

    def test_skip_policy(self, artifact, descriptor):
        desc = descriptor("mandate", skip_with_features=frozenset({"runtime-benchmarks"}))
        record = BenchmarkExecutor().run(artifact, desc)
        assert record.status == RunStatus.SKIPPED
        assert "runtime-benchmarks" in record.detail
        assert record.raw_output == b""

    def test_module_dir_passed_to_entry_point(self, artifact, tmp_path):
        module_dir = tmp_path / "out" / "m"
        module_dir.mkdir(parents=True)
        desc = ModuleDescriptor(
            id="m",
            entry_point=(
                sys.executable,
                "-c",
                "import sys; open(sys.argv[1] + '/weights.rs', 'w').write('w')",
                "{module_dir}",
            ),
        )
        record = BenchmarkExecutor().run(artifact, desc, module_dir)
        assert record.status == RunStatus.SUCCESS
        assert (module_dir / "weights.rs").read_text() == "w"

    def test_run_after_cancel_is_skipped(self, artifact, descriptor):
        executor = BenchmarkExecutor()
        executor.cancel(grace_s=0)
        record = executor.run(artifact, descriptor("balances"))
        assert record.status == RunStatus.SKIPPED
        assert record.reason == FailureReason.CANCELLED

    def test_cancel_terminates_in_flight(self, artifact, descriptor):
        executor = BenchmarkExecutor()
        records = []
        worker = threading.Thread(
            target=lambda: records.append(executor.run(artifact, descriptor("hang_me")))
        )
        worker.start()
        # Give the entry point time to start.
        time.sleep(1.0)
        executor.cancel(grace_s=0.2)
        worker.join(timeout=20)

        assert not worker.is_alive()
        assert records[0].reason == FailureReason.CANCELLED
