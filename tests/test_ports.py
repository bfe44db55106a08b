import pytest

from exemeta.services import ports
from exemeta.services.ports import NoAvailablePortError, allocate_port, bind_socket, is_port_free


def test_allocated_port_can_be_bound_right_away():
    port = allocate_port(20000)

    probe = bind_socket(port)
    probe.close()

    assert 20000 <= port <= ports.MAX_PORT


def test_allocate_port_skips_a_listening_port():
    busy_port = allocate_port(21000)
    busy = bind_socket(busy_port)
    busy.listen(1)
    try:
        assert not is_port_free(busy_port)
        assert allocate_port(busy_port) > busy_port
    finally:
        busy.close()


def test_allocate_port_raises_when_range_is_exhausted(monkeypatch):
    monkeypatch.setattr(ports, "is_port_free", lambda port, host=ports.LOOPBACK_HOST: False)

    with pytest.raises(NoAvailablePortError):
        allocate_port(65530)


def test_allocate_port_scans_in_ascending_order(monkeypatch):
    probed = []

    def fake_probe(port, host=ports.LOOPBACK_HOST):
        probed.append(port)
        return port == 8083

    monkeypatch.setattr(ports, "is_port_free", fake_probe)

    assert allocate_port(8080) == 8083
    assert probed == [8080, 8081, 8082, 8083]


def test_allocate_port_rejects_invalid_start():
    with pytest.raises(ValueError):
        allocate_port(0)
