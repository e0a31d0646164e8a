from __future__ import annotations

from ..models.commit_outcome import BatchCommitResult

"""Summary line rendering for batch commits.

Format:
SUMMARY file={name} job={id} total={n} success={s} failed={f} chunks={c}
elapsed_sec={t} throughput_rps={r}
"""

__all__ = [
    "render_summary_line",
]


def _format_number(value: float) -> str:
    # Handle very small numbers and integer values appropriately
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(result: BatchCommitResult) -> str:
    """Render the SUMMARY line for one batch commit.

    Examples:
        >>> from case_import.models import BatchCommitResult, CommitSummary
        >>> result = BatchCommitResult(
        ...     import_job_id="job-1", file_name="cases.csv", outcomes=[],
        ...     summary=CommitSummary(total=3, success=2, failed=1),
        ... )
        >>> render_summary_line(result)
        'SUMMARY file=cases.csv job=job-1 total=3 success=2 failed=1 chunks=0 elapsed_sec=0 throughput_rps=0'
    """
    stats = result.stats
    chunks = stats.total_chunks if stats else 0
    elapsed = stats.elapsed_seconds if stats else 0.0
    throughput = stats.throughput_rows_per_sec if stats else 0.0
    line = (
        f"SUMMARY file={result.file_name} "
        f"job={result.import_job_id} "
        f"total={result.summary.total} "
        f"success={result.summary.success} "
        f"failed={result.summary.failed} "
        f"chunks={chunks} "
        f"elapsed_sec={_format_number(elapsed)} "
        f"throughput_rps={_format_number(throughput)}"
    )
    if result.cancelled:
        line += " cancelled=1"
    return line
