"""
Модуль ICMP-проверки одного адреса
"""

import contextlib
import ipaddress
import logging
import os
import socket
import struct
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .config import ProbeFailure, ProbeOutcome, ProbeSuccess
from .errors import ErrorKind, ProbeError

logger = logging.getLogger(__name__)

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

ICMP_HEADER = struct.Struct("!BBHHH")
RECV_BUFFER_SIZE = 1500
DEFAULT_TIMEOUT = 1.0
DEFAULT_SEQUENCE = 1
PAYLOAD_PATTERN = b"abcdefghijklmnopqrstuvw"

SocketFactory = Callable[[int, int, int], socket.socket]


@dataclass(frozen=True)
class IcmpMessage:
    """Разобранное ICMP-сообщение"""
    type: int
    code: int
    identifier: int
    sequence: int
    data: bytes = b""


def checksum(data: bytes) -> int:
    """Контрольная сумма Internet (RFC 1071) для заголовка ICMP и данных"""
    if len(data) % 2:
        data += b"\x00"

    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]

    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def make_payload(size: int) -> bytes:
    """Данные запроса заданного размера; содержимое значения не имеет"""
    repeats = size // len(PAYLOAD_PATTERN) + 1
    return (PAYLOAD_PATTERN * repeats)[:size]


def build_echo_request(identifier: int, sequence: int, payload: bytes,
                       ipv6: bool = False) -> bytes:
    """
    Сборка ICMP Echo Request

    Для ICMPv6 контрольную сумму считает ядро (она включает псевдозаголовок
    IPv6), поэтому поле остается нулевым.

    Raises:
        ProbeError: PROTOCOL_ERROR при некорректных полях
    """
    msg_type = ICMPV6_ECHO_REQUEST if ipv6 else ICMP_ECHO_REQUEST
    try:
        header = ICMP_HEADER.pack(msg_type, 0, 0, identifier, sequence)
        if ipv6:
            return header + payload
        csum = checksum(header + payload)
        return ICMP_HEADER.pack(msg_type, 0, csum, identifier, sequence) + payload
    except struct.error as e:
        raise ProbeError(ErrorKind.PROTOCOL_ERROR, f"ошибка сборки ICMP-запроса: {e}")


def parse_icmp(data: bytes, has_ip_header: bool = False) -> IcmpMessage:
    """
    Разбор ICMP-сообщения

    Args:
        data: Полученная датаграмма
        has_ip_header: Датаграмма начинается с заголовка IPv4

    Raises:
        ProbeError: PROTOCOL_ERROR если данных недостаточно
    """
    if has_ip_header:
        if not data:
            raise ProbeError(ErrorKind.PROTOCOL_ERROR, "пустая датаграмма")
        header_len = (data[0] & 0x0F) * 4
        if header_len < 20 or len(data) < header_len:
            raise ProbeError(ErrorKind.PROTOCOL_ERROR, "некорректный заголовок IPv4")
        data = data[header_len:]

    if len(data) < ICMP_HEADER.size:
        raise ProbeError(ErrorKind.PROTOCOL_ERROR,
                         f"ICMP-сообщение слишком короткое: {len(data)} байт")

    msg_type, code, _, identifier, sequence = ICMP_HEADER.unpack_from(data)
    return IcmpMessage(msg_type, code, identifier, sequence, data[ICMP_HEADER.size:])


def _starts_with_ipv4_header(data: bytes) -> bool:
    """
    Датаграмма начинается с заголовка IPv4

    Непривилегированный ICMP-сокет в macOS и BSD отдает ответ вместе с
    заголовком IP, в Linux - без него. Версия 4 в старшем полубайте не
    совпадает ни с одним типом ICMP, используемым при Echo.
    """
    return bool(data) and data[0] >> 4 == 4


def _same_host(peer: str, destination: str) -> bool:
    """Сравнение адресов без учета формы записи и идентификатора зоны"""
    try:
        return (ipaddress.ip_address(peer.split('%', 1)[0]) ==
                ipaddress.ip_address(destination.split('%', 1)[0]))
    except ValueError:
        return peer == destination


class EchoProber:
    """Один ICMP Echo обмен на адрес, с измерением времени отклика"""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, payload_size: int = 32,
                 identifier: Optional[int] = None,
                 socket_factory: SocketFactory = socket.socket):
        self.timeout = timeout
        self.payload = make_payload(payload_size)
        self.identifier = os.getpid() & 0xFFFF if identifier is None else identifier
        self.socket_factory = socket_factory

    def probe(self, address: str) -> ProbeOutcome:
        """
        Проверка одного адреса

        Ошибки не выходят за пределы метода: любая из них превращается в
        ProbeFailure с соответствующим ErrorKind.

        Args:
            address: IPv4 или IPv6 адрес

        Returns:
            ProbeSuccess с временем отклика или ProbeFailure
        """
        try:
            duration = self._exchange(address)
        except ProbeError as e:
            logger.debug(f"Ping {address}: {e.kind.value}: {e.message}")
            return ProbeFailure(address, e.kind, e.message)

        logger.debug(f"Ping {address}: {duration * 1000:.2f} мс")
        return ProbeSuccess(address, duration)

    def _exchange(self, address: str) -> float:
        ipv6 = ':' in address
        family = socket.AF_INET6 if ipv6 else socket.AF_INET

        packet = build_echo_request(self.identifier, DEFAULT_SEQUENCE, self.payload, ipv6)

        sock, is_raw = self._open_socket(family)
        with contextlib.closing(sock):
            start = time.perf_counter()
            destination = self._resolve(address, family)

            try:
                sock.sendto(packet, destination)
            except OSError as e:
                raise ProbeError(ErrorKind.TRANSPORT_UNAVAILABLE, f"ошибка отправки ICMP-запроса: {e}")

            deadline = time.perf_counter() + self.timeout
            while True:
                data, peer = self._receive(sock, deadline)

                # Ответы от других узлов пропускаем, срок ожидания не сбрасывается
                if not _same_host(peer[0], destination[0]):
                    continue

                duration = time.perf_counter() - start
                has_ip_header = not ipv6 and (is_raw or _starts_with_ipv4_header(data))
                message = parse_icmp(data, has_ip_header=has_ip_header)

                if message.type == (ICMPV6_ECHO_REPLY if ipv6 else ICMP_ECHO_REPLY):
                    return duration

                # Копия собственного запроса (loopback) - ответом не является
                if (message.type == (ICMPV6_ECHO_REQUEST if ipv6 else ICMP_ECHO_REQUEST)
                        and message.data == self.payload):
                    continue

                raise ProbeError(ErrorKind.UNEXPECTED_MESSAGE_TYPE,
                                 f"получен неожиданный тип ICMP-сообщения: {message.type}")

    def _open_socket(self, family: int) -> Tuple[socket.socket, bool]:
        """
        Открытие ICMP-сокета: сначала raw, затем непривилегированный datagram

        Raises:
            ProbeError: TRANSPORT_UNAVAILABLE если не удалось ни то, ни другое
        """
        if family == socket.AF_INET6:
            proto, wildcard = socket.IPPROTO_ICMPV6, "::"
        else:
            proto, wildcard = socket.IPPROTO_ICMP, "0.0.0.0"

        last_error: Optional[OSError] = None
        for sock_type in (socket.SOCK_RAW, socket.SOCK_DGRAM):
            try:
                sock = self.socket_factory(family, sock_type, proto)
            except OSError as e:
                last_error = e
                continue

            try:
                sock.bind((wildcard, 0))
            except OSError as e:
                sock.close()
                last_error = e
                continue

            return sock, sock_type == socket.SOCK_RAW

        raise ProbeError(ErrorKind.TRANSPORT_UNAVAILABLE, f"не удалось создать ICMP-сокет: {last_error}")

    @staticmethod
    def _resolve(address: str, family: int) -> tuple:
        try:
            infos = socket.getaddrinfo(address, None, family)
        except (OSError, UnicodeError) as e:
            raise ProbeError(ErrorKind.PROTOCOL_ERROR, f"не удалось разрешить адрес: {e}")
        if not infos:
            raise ProbeError(ErrorKind.PROTOCOL_ERROR, "не удалось разрешить адрес")
        return infos[0][4]

    @staticmethod
    def _receive(sock: socket.socket, deadline: float) -> Tuple[bytes, tuple]:
        remaining = deadline - time.perf_counter()
        if remaining <= 0:
            raise ProbeError(ErrorKind.TIMEOUT, "нет ответа в течение заданного времени")

        sock.settimeout(remaining)
        try:
            return sock.recvfrom(RECV_BUFFER_SIZE)
        except socket.timeout:
            raise ProbeError(ErrorKind.TIMEOUT, "нет ответа в течение заданного времени")
        except OSError as e:
            raise ProbeError(ErrorKind.TRANSPORT_UNAVAILABLE, f"ошибка приема ICMP-ответа: {e}")
