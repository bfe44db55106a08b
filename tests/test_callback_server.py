import socket
import threading
import time

import pytest

from exemeta.services.callback_server import (
    CONFIRMATION_HTML,
    CallbackListener,
    await_callback,
    extract_token,
)
from exemeta.services.ports import allocate_port, is_port_free


@pytest.mark.parametrize(
    ("request_text", "expected"),
    [
        ("GET /?token=abc123 HTTP/1.1\r\nHost: localhost\r\n\r\n", "abc123"),
        ("GET / HTTP/1.1\r\nHost: localhost\r\n\r\n", ""),
        ("GET /?foo=bar HTTP/1.1\r\n\r\n", ""),
        ("GET /?foo=bar&token=eyJ.a-b_c HTTP/1.1\r\n\r\n", "eyJ.a-b_c"),
        ("GET /?token=a%2Bb%3D%3D HTTP/1.1\r\n\r\n", "a+b=="),
        ("POST /?token=abc123 HTTP/1.1\r\n\r\n", ""),
        ("garbage", ""),
        ("", ""),
        ("GET /?token=abc123", ""),
    ],
)
def test_extract_token(request_text, expected):
    assert extract_token(request_text) == expected


def test_extract_token_only_reads_the_request_line():
    request = "GET /callback HTTP/1.1\r\nReferer: http://site/?token=leaked\r\n\r\n"

    assert extract_token(request) == ""


def _send_request(port: int, raw: bytes, timeout: float = 5) -> bytes:
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as client:
        client.sendall(raw)
        chunks = []
        while True:
            chunk = client.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def _split_response(raw: bytes) -> tuple[str, bytes]:
    head, _, body = raw.partition(b"\r\n\r\n")
    return head.decode("ascii"), body


@pytest.fixture
def port():
    return allocate_port(23000)


def test_listener_returns_token_and_serves_confirmation_page(port):
    listener = CallbackListener(port)
    listener.start()

    raw = _send_request(port, b"GET /?token=abc123 HTTP/1.1\r\nHost: localhost\r\n\r\n")
    token = listener.wait(5)

    head, body = _split_response(raw)
    assert token == "abc123"
    assert head.startswith("HTTP/1.1 200 OK")
    assert "Content-Type: text/html; charset=utf-8" in head
    assert f"Content-Length: {len(body)}" in head
    assert body.decode("utf-8") == CONFIRMATION_HTML
    assert listener.closed


def test_malformed_request_yields_empty_token_and_same_page(port):
    listener = CallbackListener(port)
    listener.start()

    raw = _send_request(port, b"POST / HTTP/1.1\r\n\r\n")
    token = listener.wait(5)

    assert token == ""
    assert _split_response(raw)[1].decode("utf-8") == CONFIRMATION_HTML


def test_wait_times_out_with_empty_token_and_releases_port(port):
    listener = CallbackListener(port)
    listener.start()

    started = time.monotonic()
    token = listener.wait(0.3)

    assert token == ""
    assert time.monotonic() - started < 3
    assert listener.closed
    assert is_port_free(port)


def test_close_from_another_thread_resolves_pending_wait(port):
    listener = CallbackListener(port)
    listener.start()
    threading.Timer(0.1, listener.close).start()

    started = time.monotonic()
    token = listener.wait(10)

    assert token == ""
    assert time.monotonic() - started < 5


def test_first_connection_wins(port):
    listener = CallbackListener(port)
    listener.start()

    _send_request(port, b"GET /?token=first HTTP/1.1\r\n\r\n")
    try:
        _send_request(port, b"GET /?token=second HTTP/1.1\r\n\r\n", timeout=0.5)
    except OSError:
        pass

    assert listener.wait(5) == "first"


def test_request_line_split_across_writes(port):
    listener = CallbackListener(port)
    listener.start()

    with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
        client.sendall(b"GET /?token=abc")
        time.sleep(0.2)
        client.sendall(b"123 HTTP/1.1\r\nHost: localhost\r\n\r\n")
        response = client.recv(4096)

    assert listener.wait(5) == "abc123"
    assert response.startswith(b"HTTP/1.1 200 OK")


def test_silent_connections_do_not_consume_the_callback(port):
    listener = CallbackListener(port, client_timeout=0.3)
    listener.start()

    socket.create_connection(("127.0.0.1", port), timeout=5).close()
    with socket.create_connection(("127.0.0.1", port), timeout=5):
        raw = _send_request(port, b"GET /?token=abc123 HTTP/1.1\r\n\r\n")

    assert listener.wait(5) == "abc123"
    assert _split_response(raw)[1].decode("utf-8") == CONFIRMATION_HTML


def test_closed_listener_cannot_restart(port):
    listener = CallbackListener(port)
    listener.close()

    with pytest.raises(RuntimeError):
        listener.start()


def test_await_callback(port):
    result = {}

    def wait():
        result["token"] = await_callback(port, 5)

    waiter = threading.Thread(target=wait)
    waiter.start()

    deadline = time.monotonic() + 5
    while True:
        try:
            _send_request(port, b"GET /?token=xyz HTTP/1.1\r\n\r\n")
            break
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)

    waiter.join(5)
    assert result["token"] == "xyz"
