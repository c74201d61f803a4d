"""
Tests for document sources.
"""

import pytest
import requests

from bdc_pipeline.store.source import (
    DocumentFetchError,
    FileDocumentSource,
    SECDocumentSource,
)


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_source(session, **kwargs):
    sleeps = []
    source = SECDocumentSource(
        user_agent="Test Suite test@example.com",
        session=session,
        sleep=sleeps.append,
        **kwargs,
    )
    return source, sleeps


class TestSECDocumentSource:
    """Tests for SECDocumentSource.fetch_document."""

    def test_success(self):
        """Test a 200 response returns the body with SEC headers sent."""
        session = FakeSession(FakeResponse(200, "<html>filing</html>"))
        source, sleeps = make_source(session)
        assert source.fetch_document("https://www.sec.gov/x.htm") == "<html>filing</html>"
        assert session.calls[0]["headers"]["User-Agent"] == "Test Suite test@example.com"
        assert session.calls[0]["timeout"] == 30.0
        assert sleeps == [0.15]

    def test_retries_server_errors(self):
        """Test 503 responses are retried."""
        session = FakeSession(FakeResponse(503), FakeResponse(200, "ok"))
        source, _ = make_source(session)
        assert source.fetch_document("https://www.sec.gov/x.htm") == "ok"
        assert len(session.calls) == 2

    def test_retries_connection_errors(self):
        """Test connection errors are retried."""
        session = FakeSession(requests.ConnectionError("reset"), FakeResponse(200, "ok"))
        source, _ = make_source(session)
        assert source.fetch_document("https://www.sec.gov/x.htm") == "ok"

    def test_client_error_not_retried(self):
        """Test a 404 fails immediately."""
        session = FakeSession(FakeResponse(404))
        source, _ = make_source(session)
        with pytest.raises(DocumentFetchError, match="404"):
            source.fetch_document("https://www.sec.gov/x.htm")
        assert len(session.calls) == 1

    def test_gives_up_after_retries(self):
        """Test retries are bounded by max_retries."""
        session = FakeSession(FakeResponse(500), FakeResponse(500), FakeResponse(500))
        source, sleeps = make_source(session, max_retries=2, request_delay=0)
        with pytest.raises(DocumentFetchError, match="after 3 attempts"):
            source.fetch_document("https://www.sec.gov/x.htm")
        assert len(session.calls) == 3
        # backoff sleeps only, with jitter around 1s then 2s
        assert len(sleeps) == 2
        assert 0.5 <= sleeps[0] <= 1.5
        assert 1.0 <= sleeps[1] <= 3.0


class TestFileDocumentSource:
    """Tests for FileDocumentSource.fetch_document."""

    def test_plain_path(self, tmp_path):
        """Test reading a path."""
        path = tmp_path / "filing.htm"
        path.write_text("<html>a</html>", encoding="utf-8")
        assert FileDocumentSource().fetch_document(str(path)) == "<html>a</html>"

    def test_file_url(self, tmp_path):
        """Test file:// URLs."""
        path = tmp_path / "filing.htm"
        path.write_text("<html>b</html>", encoding="utf-8")
        assert FileDocumentSource().fetch_document(path.as_uri()) == "<html>b</html>"

    def test_base_dir(self, tmp_path):
        """Test relative paths resolve against base_dir."""
        (tmp_path / "filing.htm").write_text("<html>c</html>", encoding="utf-8")
        assert FileDocumentSource(base_dir=tmp_path).fetch_document("filing.htm") == "<html>c</html>"

    def test_missing(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            FileDocumentSource().fetch_document(str(tmp_path / "missing.htm"))
