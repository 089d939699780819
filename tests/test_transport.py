"""
UDP Transport Tests
===================
Loopback delivery, drop-while-down semantics and autonomous reconnection.
"""

import logging
import socket
import threading
import time

import pytest

from heartsync.output import HandleState, UdpTransport, encode_player_message


class FlakySocket:
    """Socket stand-in whose send() can be made to fail"""

    def __init__(self, *args):
        self.fail_send = False
        self.refuse_every = 0
        self.calls = 0
        self.closed = False
        self.sent = []

    def setblocking(self, flag):
        pass

    def connect(self, address):
        self.address = address

    def send(self, data):
        self.calls += 1
        if self.fail_send:
            raise OSError("Network is unreachable")
        if self.refuse_every and self.calls % self.refuse_every == 0:
            raise ConnectionRefusedError("Connection refused")
        self.sent.append(data)
        return len(data)

    def close(self):
        self.closed = True


class SocketFactory:
    """Fails the first `failures` handle creations, then hands out FlakySockets"""

    def __init__(self, failures=0):
        self.failures = failures
        self.created = []

    def __call__(self, *args):
        if self.failures > 0:
            self.failures -= 1
            raise OSError("No buffer space available")
        sock = FlakySocket(*args)
        self.created.append(sock)
        return sock


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(('127.0.0.1', 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def test_delivers_over_loopback(receiver):
    host, port = receiver.getsockname()
    with UdpTransport(host, port) as transport:
        assert transport.is_ready
        assert transport.send(encode_player_message(1, 72)) is True
        data, _ = receiver.recvfrom(1024)

    assert data == encode_player_message(1, 72)
    assert transport.state is HandleState.CLOSED


def test_reconfigure_moves_destination():
    factory = SocketFactory()
    transport = UdpTransport('127.0.0.1', 9, socket_factory=factory)

    transport.reconfigure('127.0.0.1', 9001)

    assert transport.is_ready
    assert factory.created[0].closed is True
    assert factory.created[1].address == ('127.0.0.1', 9001)
    assert transport.get_status()['destination'] == '127.0.0.1:9001'
    transport.close()


def test_send_failure_drops_and_recovers(caplog):
    factory = SocketFactory()
    transport = UdpTransport(reconnect_interval=0.05, socket_factory=factory)
    factory.created[0].fail_send = True

    with caplog.at_level(logging.WARNING):
        assert transport.send(b'/a\x00\x00,i\x00\x00\x00\x00\x00\x01') is False

    assert transport.dropped_count == 1
    assert "Dropped" in caplog.text
    assert wait_until(lambda: transport.is_ready)
    assert len(factory.created) == 2

    assert transport.send(b'/a\x00\x00,i\x00\x00\x00\x00\x00\x02') is True
    assert transport.sent_count == 1
    transport.close()


def test_unavailable_at_startup_retries_forever():
    factory = SocketFactory(failures=3)
    transport = UdpTransport(reconnect_interval=0.02, socket_factory=factory)

    assert transport.state is HandleState.FAILED
    assert transport.send(b'data') is False

    assert wait_until(lambda: transport.is_ready)
    assert transport.send(b'data') is True
    transport.close()


def test_closed_transport_drops_without_reconnecting():
    factory = SocketFactory()
    transport = UdpTransport(reconnect_interval=0.02, socket_factory=factory)
    transport.close()

    assert transport.send(b'data') is False
    time.sleep(0.1)

    assert transport.state is HandleState.CLOSED
    assert len(factory.created) == 1
    assert transport.get_status()['dropped'] == 1


def test_refused_datagram_keeps_handle(caplog):
    factory = SocketFactory()
    transport = UdpTransport(socket_factory=factory)
    factory.created[0].refuse_every = 1

    with caplog.at_level(logging.WARNING):
        assert transport.send(b'data') is False

    assert transport.is_ready
    assert transport.dropped_count == 1
    assert "failed" not in caplog.text

    factory.created[0].refuse_every = 0
    assert transport.send(b'data') is True
    assert len(factory.created) == 1
    transport.close()


def test_concurrent_senders_account_for_every_call():
    factory = SocketFactory()
    transport = UdpTransport(socket_factory=factory)
    factory.created[0].refuse_every = 3
    threads_count, per_thread = 8, 250
    barrier = threading.Barrier(threads_count)

    def sender():
        barrier.wait()
        for _ in range(per_thread):
            transport.send(b'/a\x00\x00,i\x00\x00\x00\x00\x00\x48')

    threads = [threading.Thread(target=sender) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    total = threads_count * per_thread
    assert transport.sent_count + transport.dropped_count == total
    assert transport.sent_count == len(factory.created[0].sent)
    assert transport.dropped_count == total // 3
    transport.close()


def test_concurrent_drops_are_all_counted():
    transport = UdpTransport(socket_factory=SocketFactory())
    transport.close()
    threads = [
        threading.Thread(target=lambda: [transport.send(b'data') for _ in range(200)])
        for _ in range(6)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert transport.dropped_count == 1200
    assert transport.sent_count == 0
