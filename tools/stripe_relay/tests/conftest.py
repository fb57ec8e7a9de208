import io
import json
from types import SimpleNamespace

import pytest
import requests


def build_response(status=200, body=b'', content_type=None, url='https://upstream.test/'):
    """A real requests.Response backed by an in-memory body."""
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode('utf-8')
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.raw = io.BytesIO(body)
    resp.encoding = 'utf-8'
    if content_type is not None:
        resp.headers['Content-Type'] = content_type
    return resp


class FakeSession:
    """Records every dispatched call and replays queued responses in order."""

    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_session():
    return FakeSession
