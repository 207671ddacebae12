"""Tests for progress throttling and ordering."""

import logging

from httpfacade.client.progress import ProgressReporter


def _reporter(dispatcher, callback, buffer_size=10, client_param="param"):
    return ProgressReporter(7, callback, client_param, dispatcher, buffer_size)


class TestUploadProgress:
    def test_every_chunk_is_reported(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback)
        reporter.report_upload(4)
        reporter.report_upload(8)
        reporter.report_upload(8)

        assert recording_callback.progress == [(4, 0, 0), (8, 0, 0), (8, 0, 0)]

    def test_arguments_forwarded(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, client_param={"k": 1})
        reporter.report_upload(3)
        name, args = inline_dispatcher.calls[0]
        assert name == "on_connection_progress"
        assert args == (7, 3, 0, 0, {"k": 1})


class TestDownloadProgress:
    def test_reports_once_per_buffer_boundary(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=10)
        for read in (3, 6, 9, 12, 15, 18, 21):
            reporter.report_download(0, read, 21)

        assert recording_callback.progress == [(0, 12, 21), (0, 21, 21)]

    def test_exact_multiples(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=10)
        for read in range(10, 101, 10):
            reporter.report_download(0, read, 100)

        assert len(recording_callback.progress) == 10
        assert recording_callback.progress[-1] == (0, 100, 100)

    def test_large_read_crossing_several_boundaries_reports_once(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=10)
        assert reporter.report_download(0, 35, 0) is True
        assert reporter.report_download(0, 39, 0) is False
        assert recording_callback.progress == [(0, 35, 0)]

    def test_below_one_buffer_reports_nothing(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=1024)
        reporter.report_download(0, 100, 100)
        assert recording_callback.progress == []

    def test_count_bounded_by_bytes_over_buffer(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=8)
        read = 0
        for chunk in (1, 7, 3, 13, 2, 5, 8, 1, 30):
            read += chunk
            reporter.report_download(0, read, 0)
        assert len(recording_callback.progress) <= read // 8


class TestMonotonicity:
    def test_upload_then_download_is_monotonic(self, inline_dispatcher, recording_callback):
        reporter = _reporter(inline_dispatcher, recording_callback, buffer_size=10)
        reporter.report_upload(10)
        reporter.report_upload(20)
        reporter.report_download(20, 10, 30)
        reporter.report_download(20, 30, 30)

        progress = recording_callback.progress
        for earlier, later in zip(progress, progress[1:]):
            assert all(b >= a for a, b in zip(earlier, later))

    def test_backwards_report_is_dropped(self, inline_dispatcher, recording_callback, caplog):
        reporter = _reporter(inline_dispatcher, recording_callback)
        reporter.report_upload(10)
        with caplog.at_level(logging.DEBUG, logger="httpfacade.client.progress"):
            assert reporter.report_upload(5) is False

        assert recording_callback.progress == [(10, 0, 0)]
        assert "non-monotonic" in caplog.records[-1].getMessage()


class TestWithoutCallback:
    def test_nothing_dispatched(self, inline_dispatcher):
        reporter = _reporter(inline_dispatcher, None)
        assert reporter.report_upload(10) is False
        assert reporter.report_download(10, 20, 20) is False
        assert inline_dispatcher.calls == []
