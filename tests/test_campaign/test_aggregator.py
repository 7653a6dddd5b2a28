"""Tests for result aggregation."""

import json
from unittest.mock import patch

import pytest

from weightbench.campaign.aggregator import (
    AggregationError,
    ResultAggregator,
)
from weightbench.campaign.result import (
    CampaignResult,
    ExecutionRecord,
    FailureReason,
    RunStatus,
)


@pytest.fixture
def aggregator(tmp_path):
    agg = ResultAggregator(tmp_path / "output")
    agg.prepare()
    return agg


def _success(module="a", output=b"weights"):
    return ExecutionRecord(module=module, status=RunStatus.SUCCESS, raw_output=output, duration_s=1.5)


def _failure(module="b"):
    return ExecutionRecord(
        module=module,
        status=RunStatus.FAILED,
        raw_output=b"half done",
        reason=FailureReason.NON_ZERO_EXIT,
        detail="Exited with code 1",
    )


class TestResultAggregator:
    def test_prepare_creates_root(self, tmp_path):
        agg = ResultAggregator(tmp_path / "nested" / "output")
        agg.prepare()
        assert (tmp_path / "nested" / "output").is_dir()

    def test_prepare_unwritable(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(AggregationError, match="not writable"):
            ResultAggregator(blocker / "output").prepare()

    def test_collect_success(self, aggregator):
        path = aggregator.collect(_success())
        assert path == aggregator.output_dir / "a" / "result"
        assert path.read_bytes() == b"weights"
        assert not (aggregator.output_dir / "a" / "error").exists()

    def test_collect_failure(self, aggregator):
        path = aggregator.collect(_failure())
        assert path == aggregator.output_dir / "b" / "error"
        content = path.read_text()
        assert "reason: NonZeroExit" in content
        assert "Exited with code 1" in content
        assert content.endswith("half done")

    def test_collect_skipped_writes_nothing(self, aggregator):
        stale = aggregator.output_dir / "c"
        stale.mkdir()
        (stale / "result").write_text("old")

        record = ExecutionRecord(module="c", status=RunStatus.SKIPPED, detail="policy")
        assert aggregator.collect(record) is None
        assert not stale.exists()

    def test_reset_module_clears_previous_results(self, aggregator):
        aggregator.collect(_failure("a"))
        path = aggregator.reset_module("a")
        aggregator.collect(_success("a"))

        assert sorted(p.name for p in path.iterdir()) == ["result"]

    def test_collect_write_error(self, aggregator):
        with patch("pathlib.Path.write_bytes", side_effect=OSError("disk full")):
            with pytest.raises(AggregationError, match="disk full"):
                aggregator.collect(_success())

    def test_write_summary(self, aggregator):
        result = CampaignResult(
            campaign_name="weights",
            records=[
                _success("a"),
                _failure("b"),
                ExecutionRecord(module="c", status=RunStatus.SKIPPED, detail="policy"),
            ],
        )
        path = aggregator.write_summary(result)
        data = json.loads(path.read_text())

        assert data["overall_status"] == "PartialFailure"
        assert (data["total"], data["succeeded"], data["failed"], data["skipped"]) == (3, 1, 1, 1)
        assert [m["module"] for m in data["modules"]] == ["a", "b", "c"]
        assert data["modules"][0]["path"] == "a/result"
        assert data["modules"][1]["path"] == "b/error"
        assert data["modules"][1]["reason"] == "NonZeroExit"
        assert data["modules"][2]["path"] is None
        assert not list(aggregator.output_dir.glob("*.tmp"))

    def test_prepare_removes_previous_campaign(self, aggregator):
        aggregator.collect(_success("a"))
        aggregator.collect(_failure("b"))
        aggregator.write_summary(CampaignResult(campaign_name="w", records=[_success("a"), _failure("b")]))
        (aggregator.output_dir / "notes.txt").write_text("keep me")

        aggregator.prepare()

        remaining = sorted(p.name for p in aggregator.output_dir.iterdir())
        assert remaining == ["notes.txt"]

    def test_prepare_ignores_unsafe_summary_entries(self, tmp_path, aggregator):
        outside = tmp_path / "outside"
        outside.mkdir()
        summary = {"modules": [{"module": "../outside"}, {"module": ".."}]}
        (aggregator.output_dir / "summary.json").write_text(json.dumps(summary))

        aggregator.prepare()

        assert outside.is_dir()
        assert not (aggregator.output_dir / "summary.json").exists()

    def test_prepare_tolerates_corrupt_summary(self, aggregator):
        (aggregator.output_dir / "summary.json").write_text("{not json")
        aggregator.prepare()
        assert not (aggregator.output_dir / "summary.json").exists()
