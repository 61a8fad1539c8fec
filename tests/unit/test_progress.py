from __future__ import annotations

from unittest.mock import patch

from sheetsync.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch("sheetsync.services.progress.is_tty_enabled", return_value=True), \
             patch("sheetsync.services.progress.tqdm") as mock_tqdm:
            tracker = ProgressTracker(5, description="Updating shipments")

            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Updating shipments",
                unit="row",
                leave=False,
                ncols=80,
                ascii=True,
            )

    def test_disabled_without_tty(self):
        with patch("sheetsync.services.progress.is_tty_enabled", return_value=False), \
             patch("sheetsync.services.progress.tqdm") as mock_tqdm:
            tracker = ProgressTracker(5)
            tracker.advance()
            tracker.close()

            assert tracker.enabled is False
            assert tracker.done == 1
            mock_tqdm.assert_not_called()

    def test_disabled_for_zero_rows(self):
        with patch("sheetsync.services.progress.is_tty_enabled", return_value=True), \
             patch("sheetsync.services.progress.tqdm") as mock_tqdm:
            assert ProgressTracker(0).enabled is False
            mock_tqdm.assert_not_called()

    def test_advance_and_context_manager_close(self):
        with patch("sheetsync.services.progress.is_tty_enabled", return_value=True), \
             patch("sheetsync.services.progress.tqdm") as mock_tqdm:
            bar = mock_tqdm.return_value
            with ProgressTracker(3) as tracker:
                tracker.advance()
                tracker.advance(2)

            assert tracker.done == 3
            assert bar.update.call_count == 2
            bar.close.assert_called_once()
            assert tracker.pbar is None
