import pytest
from requests.structures import CaseInsensitiveDict

from hls_relay.config import RelayConfig
from main import create_app


class FakeUpstream:
    """Stands in for a streamed requests.Response."""

    def __init__(self, status_code=200, body=b"", headers=None, chunks=None, error=None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self._body = body
        self._chunks = chunks
        self._error = error
        self.closed = False

    @property
    def content(self):
        return self._body

    def iter_content(self, chunk_size=1):
        chunks = self._chunks
        if chunks is None:
            chunks = [self._body[i:i + chunk_size] for i in range(0, len(self._body), chunk_size)]
        for chunk in chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    def close(self):
        self.closed = True


class FakeSession:
    """Returns (or raises) queued results in order and records every call."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def get(self, url, headers=None, **kwargs):
        self.calls.append({"url": url, "headers": dict(headers or {}), **kwargs})
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def config():
    return RelayConfig(allowed_host="allowed.example", user_agent="TestAgent/1.0")


@pytest.fixture
def make_client(config):
    def _make(*results):
        session = FakeSession(*results)
        app = create_app(config, session=session)
        app.testing = True
        return app.test_client(), session

    return _make
