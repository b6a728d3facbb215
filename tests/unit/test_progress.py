from __future__ import annotations

from unittest.mock import Mock, patch

from inventory_alarm.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_with_tty_creates_bar():
    with patch("inventory_alarm.services.progress.is_tty_enabled", return_value=True), \
         patch("inventory_alarm.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker(5)
        assert tracker.enabled is True
        mock_tqdm.assert_called_once_with(
            total=5,
            desc="Confirming rows",
            unit="row",
            disable=False,
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )


def test_tracker_without_tty_has_no_bar():
    with patch("inventory_alarm.services.progress.is_tty_enabled", return_value=False):
        tracker = ProgressTracker(5)
    assert tracker.pbar is None
    tracker.advance()
    tracker.set_postfix(ok=1)
    tracker.close()
    assert tracker.processed == 1


def test_explicit_enabled_overrides_tty():
    with patch("inventory_alarm.services.progress.is_tty_enabled", return_value=True):
        assert ProgressTracker(1, enabled=False).pbar is None


def test_advance_and_close_update_bar():
    mock_pbar = Mock()
    with patch("inventory_alarm.services.progress.tqdm", return_value=mock_pbar):
        with ProgressTracker(2, enabled=True) as tracker:
            tracker.advance(True)
            tracker.advance(False)
            tracker.set_postfix(ok=1, ng=1)
    assert mock_pbar.update.call_count == 2
    mock_pbar.set_postfix.assert_called_once_with(ok=1, ng=1)
    mock_pbar.close.assert_called_once()
    assert tracker.pbar is None
