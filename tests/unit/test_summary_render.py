from __future__ import annotations

import re
from datetime import datetime, timezone

from case_import.models.commit_outcome import BatchCommitResult, CommitSummary
from case_import.models.processing_result import CommitStats
from case_import.services.summary import render_summary_line

"""Unit tests for the SUMMARY line printed after a batch commit."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+file=(\S+)\s+job=(\S+)\s+total=([0-9]+)\s+success=([0-9]+)\s+failed=([0-9]+)\s+"
    r"chunks=([0-9]+)\s+elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)"
    r"(\s+cancelled=1)?$"
)


def _stats(seconds: float, rows: int, chunks: int) -> CommitStats:
    start = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    end = datetime.fromtimestamp(start.timestamp() + seconds, tz=timezone.utc)
    return CommitStats(
        start_time=start,
        end_time=end,
        elapsed_seconds=seconds,
        throughput_rows_per_sec=rows / seconds,
        total_chunks=chunks,
    )


def test_render_summary_line_all_success():
    """Test SUMMARY rendering when every row was committed."""
    result = BatchCommitResult(
        import_job_id="job-1",
        file_name="cases.csv",
        outcomes=[],
        summary=CommitSummary(total=1000, success=1000, failed=0),
        stats=_stats(2.0, 1000, 10),
    )

    summary_line = render_summary_line(result)

    match = SUMMARY_PATTERN.match(summary_line)
    assert match, f"SUMMARY line should match regex: {summary_line}"
    assert match.group(1) == "cases.csv"
    assert match.group(2) == "job-1"
    assert match.group(3) == "1000"
    assert match.group(4) == "1000"
    assert match.group(5) == "0"
    assert match.group(6) == "10"
    assert match.group(7) == "2"  # 整数は小数点なし
    assert match.group(8) == "500"
    assert match.group(9) is None


def test_render_summary_line_partial_failure():
    result = BatchCommitResult(
        import_job_id="job-2",
        file_name="cases.csv",
        outcomes=[],
        summary=CommitSummary(total=3, success=1, failed=2),
        stats=_stats(1.5, 3, 1),
    )
    line = render_summary_line(result)
    assert SUMMARY_PATTERN.match(line)
    assert "success=1 failed=2" in line
    assert "elapsed_sec=1.5 " in line
    assert line.endswith("throughput_rps=2")


def test_render_summary_line_cancelled():
    result = BatchCommitResult(
        import_job_id="job-3",
        file_name="cases.csv",
        outcomes=[],
        summary=CommitSummary(total=5, success=2, failed=3),
        stats=_stats(0.25, 5, 1),
        cancelled=True,
    )
    line = render_summary_line(result)
    match = SUMMARY_PATTERN.match(line)
    assert match and match.group(9) == " cancelled=1"


def test_render_summary_line_small_values():
    """Very small numbers are printed without scientific notation."""
    result = BatchCommitResult(
        import_job_id="job-4",
        file_name="cases.csv",
        outcomes=[],
        summary=CommitSummary(total=1, success=1, failed=0),
        stats=CommitStats(
            start_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            end_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            elapsed_seconds=0.000123,
            throughput_rows_per_sec=8130.081,
            total_chunks=1,
        ),
    )
    line = render_summary_line(result)
    assert "elapsed_sec=0.000123 " in line
    assert "e-" not in line
    assert line.endswith("throughput_rps=8130.081")


def test_render_summary_line_without_stats():
    result = BatchCommitResult(
        import_job_id="job-5",
        file_name="x.csv",
        outcomes=[],
        summary=CommitSummary(total=0, success=0, failed=0),
    )
    assert render_summary_line(result) == (
        "SUMMARY file=x.csv job=job-5 total=0 success=0 failed=0 chunks=0 elapsed_sec=0 throughput_rps=0"
    )
