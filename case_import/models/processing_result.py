from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Commit timing statistics.

CommitStats is attached to each BatchCommitResult and feeds the SUMMARY line.
Chunk timings are accumulated by ChunkStatsAccumulator while the committer
walks the chunks.
"""


@dataclass(frozen=True)
class CommitStats:
    """Timing for one batch commit."""
    start_time: datetime  # 全体開始
    end_time: datetime  # 全体終了
    elapsed_seconds: float
    throughput_rows_per_sec: float  # attempted rows / elapsed
    total_chunks: int = 0
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0


class ChunkStatsAccumulator:
    """Collects per-chunk elapsed times and summarizes them."""

    def __init__(self) -> None:
        self.chunk_times: list[float] = []

    def add_chunk_time(self, elapsed_seconds: float) -> None:
        self.chunk_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate chunk statistics.

        Returns:
            tuple: (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
        """
        if not self.chunk_times:
            return (0, 0.0, 0.0)

        total_chunks = len(self.chunk_times)
        avg_chunk_seconds = statistics.mean(self.chunk_times)

        if total_chunks == 1:
            p95_chunk_seconds = self.chunk_times[0]
        else:
            p95_chunk_seconds = statistics.quantiles(
                self.chunk_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_chunks, avg_chunk_seconds, p95_chunk_seconds)

    def build(self, start_time: datetime, end_time: datetime, attempted_rows: int) -> CommitStats:
        elapsed = (end_time - start_time).total_seconds()
        throughput = attempted_rows / elapsed if elapsed > 0 else 0.0
        total, avg, p95 = self.get_stats()
        return CommitStats(
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=elapsed,
            throughput_rows_per_sec=throughput,
            total_chunks=total,
            avg_chunk_seconds=avg,
            p95_chunk_seconds=p95,
        )
