import json

import pytest
import requests

from exemeta.services.api_client import ApiClient, ApiClientError


def _response(status, payload=None, text=""):
    response = requests.Response()
    response.status_code = status
    body = json.dumps(payload) if payload is not None else text
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def _handle(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)

    def close(self):
        self.closed = True


def test_display_name_uses_bearer_token(config):
    session = FakeSession(_response(200, {"displayName": "Alice"}))
    client = ApiClient(config, session=session)

    assert client.get_user_display_name("abc") == "Alice"

    method, url, kwargs = session.requests[0]
    assert method == "GET"
    assert url == "https://example.test/api/auth/get-user-display-name"
    assert kwargs["headers"]["Authorization"] == "Bearer abc"
    assert kwargs["timeout"] == config.http_timeout


@pytest.mark.parametrize(
    "response",
    [
        _response(401, text="Unauthorized"),
        _response(200, text="<html>not json</html>"),
        _response(200, {"displayName": "  "}),
        _response(200, ["Alice"]),
    ],
)
def test_display_name_is_none_when_rejected_or_unusable(config, response):
    client = ApiClient(config, session=FakeSession(response))

    assert client.get_user_display_name("abc") is None


def test_display_name_transport_error(config):
    session = FakeSession(error=requests.ConnectionError("refused"))

    with pytest.raises(ApiClientError):
        ApiClient(config, session=session).get_user_display_name("abc")


def test_upload_batch_posts_json_body(config):
    session = FakeSession(_response(202, text="queued"))
    client = ApiClient(config, session=session)

    result = client.upload_metadata_batch("abc", '[{"Metadata":{"ProductName":"Outil é"}}]')

    method, url, kwargs = session.requests[0]
    assert method == "POST"
    assert url == "https://example.test/api/exe-lookup/upload-metadata-batch"
    assert kwargs["headers"]["Authorization"] == "Bearer abc"
    assert kwargs["headers"]["Content-Type"].startswith("application/json")
    assert json.loads(kwargs["data"].decode("utf-8"))[0]["Metadata"]["ProductName"] == "Outil é"
    assert result.ok
    assert result.status_code == 202
    assert result.body == "queued"


def test_upload_batch_rejection_keeps_status_and_body(config):
    session = FakeSession(_response(400, text="bad"))

    result = ApiClient(config, session=session).upload_metadata_batch("abc", "[]")

    assert result.status_code == 400
    assert not result.ok
    assert result.body == "bad"


def test_upload_transport_error(config):
    session = FakeSession(error=requests.Timeout("slow"))

    with pytest.raises(ApiClientError):
        ApiClient(config, session=session).upload_metadata_batch("abc", "[]")


def test_close_closes_session(config):
    session = FakeSession()
    ApiClient(config, session=session).close()

    assert session.closed
