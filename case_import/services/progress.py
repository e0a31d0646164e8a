from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

One bar per batch commit, advanced once per finished chunk. In non-TTY
environments (CI, piped output) no bar is created, to avoid ANSI control
sequence spam in logs.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress tracker using tqdm for row commits."""

    def __init__(
        self, total_rows: int, *, description: str = "Committing rows", enabled: bool | None = None
    ) -> None:
        """Initialize progress tracker.

        Args:
            total_rows: Total number of rows submitted
            description: Description for the progress bar
            enabled: Force the bar on/off; None = follow TTY detection
        """
        self.total_rows = total_rows
        self.description = description
        self.done_rows = 0

        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, rows: int) -> None:
        """Mark rows as resolved (committed or rejected)."""
        self.done_rows += rows
        if self.enabled and self.pbar is not None:
            self.pbar.update(rows)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
