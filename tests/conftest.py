# tests/conftest.py
import logging
import socket
import threading
import time
from collections import deque

import pytest

from latency_scanner.config import ProbeFailure, ProbeSuccess
from latency_scanner.errors import ErrorKind
from latency_scanner.prober import ICMP_HEADER


def icmp_bytes(msg_type, identifier=1, sequence=1, payload=b""):
    return ICMP_HEADER.pack(msg_type, 0, 0, identifier, sequence) + payload


def with_ipv4_header(icmp):
    # минимальный заголовок IPv4: версия 4, IHL 5 (20 байт)
    return bytes([0x45]) + bytes(19) + icmp


class FakeSocket:
    """Сокет с заранее заданными ответами; пустая очередь = таймаут"""

    def __init__(self, family, sock_type, proto, replies=(), send_error=None):
        self.family = family
        self.type = sock_type
        self.proto = proto
        self.replies = deque(replies)
        self.send_error = send_error
        self.sent = []
        self.timeouts = []
        self.bound = None
        self.closed = False

    def bind(self, address):
        self.bound = address

    def sendto(self, data, address):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, address))
        return len(data)

    def settimeout(self, value):
        self.timeouts.append(value)

    def recvfrom(self, size):
        if not self.replies:
            raise socket.timeout("timed out")
        item = self.replies.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeSocketFactory:
    def __init__(self, replies=(), deny=(), send_error=None):
        self.replies = list(replies)
        self.deny = set(deny)
        self.send_error = send_error
        self.sockets = []
        self.requested = []

    def __call__(self, family, sock_type, proto):
        self.requested.append(sock_type)
        if sock_type in self.deny:
            raise PermissionError(1, "Operation not permitted")
        sock = FakeSocket(family, sock_type, proto, self.replies, self.send_error)
        self.sockets.append(sock)
        return sock


class CountingProber:
    """Считает одновременные вызовы probe()"""

    def __init__(self, delay=0.005, failing=(), latencies=None):
        self.delay = delay
        self.failing = set(failing)
        self.latencies = latencies or {}
        self.lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = []

    def probe(self, address):
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.calls.append(address)
        try:
            time.sleep(self.delay)
            if address in self.failing:
                return ProbeFailure(address, ErrorKind.TIMEOUT, "timed out")
            return ProbeSuccess(address, self.latencies.get(address, 0.010))
        finally:
            with self.lock:
                self.in_flight -= 1


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
