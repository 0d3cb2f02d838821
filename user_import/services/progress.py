from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""tqdm progress bar for the duplicate pre-check.

One existence lookup per user runs before the batch can start. The bar is
drawn only when stdout is a terminal; piped output and CI logs stay free of
control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress bar over the users of a batch."""

    def __init__(self, total_users: int, *, description: str = "Checking users") -> None:
        self.total_users = total_users
        self.description = description
        self.current_user = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_users,
                desc=description,
                unit="user",
                disable=False,
                leave=False,
                position=0,
                ncols=80,
                ascii=True,
            )

    def start_user(self, username: str) -> None:
        self.current_user += 1
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({username})")

    def finish_user(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
