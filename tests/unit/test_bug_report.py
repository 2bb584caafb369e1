"""
Unit tests for bug report URLs.
"""

import logging
from urllib.parse import parse_qs, urlparse

from apex import __version__
from apex.core.log_buffer import LogBuffer
from apex.services.bug_report import NO_LOGS, create_bug_report_payload, environment_info


def parse(url):
    parsed = urlparse(url)
    return parsed, {key: values[0] for key, values in parse_qs(parsed.query).items()}


class TestBugReport:
    def test_url_shape(self):
        parsed, query = parse(create_bug_report_payload(None, repo="rider/apex"))
        assert parsed.netloc == "github.com"
        assert parsed.path == "/rider/apex/issues/new"
        assert query["template"] == "bug_report.md"
        assert query["title"] == "[BUG] "

    def test_no_logs(self):
        _, query = parse(create_bug_report_payload(LogBuffer()))
        assert f"```\n{NO_LOGS}\n```" in query["body"]

    def test_recent_logs_attached(self):
        buffer = LogBuffer()
        for i in range(10):
            buffer.emit(logging.makeLogRecord({"msg": f"event {i}", "levelname": "INFO", "name": "apex"}))

        _, query = parse(create_bug_report_payload(buffer, log_lines=3, platform_type="android"))
        body = query["body"]
        assert "## 🧾 Logs (Last 3 lines)" in body
        assert "event 9" in body
        assert "event 6" not in body
        assert "- **Platform**: android" in body
        assert f"- **App Version**: {__version__}" in body


def test_environment_info():
    info = environment_info("desktop", "9.9.9")
    assert info["platform"] == "desktop"
    assert info["app_version"] == "9.9.9"
    assert info["python"]
