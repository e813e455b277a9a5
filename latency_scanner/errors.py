"""
Классификация ошибок сканера
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Вид ошибки"""
    TARGET_PARSE_ERROR = "target_parse_error"
    TRANSPORT_UNAVAILABLE = "transport_unavailable"
    TIMEOUT = "timeout"
    UNEXPECTED_MESSAGE_TYPE = "unexpected_message_type"
    PROTOCOL_ERROR = "protocol_error"
    SOURCE_UNREADABLE = "source_unreadable"


class ScannerError(Exception):
    """Базовое исключение сканера"""

    kind: ErrorKind = ErrorKind.PROTOCOL_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class TargetParseError(ScannerError):
    """Строка входного файла не разбирается ни как адрес, ни как CIDR"""

    kind = ErrorKind.TARGET_PARSE_ERROR

    def __init__(self, line: str, reason: str, line_num: Optional[int] = None):
        prefix = f"Строка {line_num}: " if line_num is not None else ""
        super().__init__(f"{prefix}не удалось разобрать '{line}': {reason}")
        self.line = line
        self.reason = reason
        self.line_num = line_num


class SourceUnreadableError(ScannerError):
    """Список целей невозможно прочитать - сканирование прерывается"""

    kind = ErrorKind.SOURCE_UNREADABLE

    def __init__(self, source: str, reason: str):
        super().__init__(f"Не удалось прочитать {source}: {reason}")
        self.source = source
        self.reason = reason


class ProbeError(ScannerError):
    """Ошибка одной ICMP-проверки. Перехватывается внутри EchoProber"""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message, kind)
