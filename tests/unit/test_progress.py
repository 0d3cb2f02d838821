from __future__ import annotations

from unittest.mock import Mock, patch

from user_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_with_tty():
    mock_pbar = Mock()
    with patch("user_import.services.progress.is_tty_enabled", return_value=True), \
         patch("user_import.services.progress.tqdm", return_value=mock_pbar) as mock_tqdm:
        with ProgressTracker(3) as tracker:
            tracker.start_user("alice")
            tracker.finish_user()
        mock_tqdm.assert_called_once_with(
            total=3,
            desc="Checking users",
            unit="user",
            disable=False,
            leave=False,
            position=0,
            ncols=80,
            ascii=True,
        )
    mock_pbar.set_description.assert_any_call("Checking users (alice)")
    mock_pbar.update.assert_called_once_with(1)
    mock_pbar.close.assert_called_once()
    assert tracker.current_user == 1
    assert tracker.pbar is None


def test_tracker_without_tty():
    with patch("user_import.services.progress.is_tty_enabled", return_value=False), \
         patch("user_import.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(2)
        tracker.start_user("a")
        tracker.finish_user()
        tracker.close()
    mock_tqdm.assert_not_called()
    assert tracker.pbar is None
    assert tracker.current_user == 1
