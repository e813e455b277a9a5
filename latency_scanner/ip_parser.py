"""
Модуль для разбора списка целей: отдельные адреса и CIDR-блоки
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Any

from .errors import TargetParseError, SourceUnreadableError

logger = logging.getLogger(__name__)


@dataclass
class ExpansionResult:
    """Результат разбора: плоский список адресов и пропущенные строки"""
    addresses: List[str] = field(default_factory=list)
    errors: List[TargetParseError] = field(default_factory=list)
    total_lines: int = 0
    successful_lines: int = 0


class IPParser:
    """Парсер IP-адресов и CIDR-блоков"""

    CIDR_SEPARATOR = "/"

    @staticmethod
    def increment_ip(packed: bytearray) -> None:
        """
        Увеличение адреса на единицу (big-endian, с переносом)

        Младший байт увеличивается первым; при переполнении в ноль
        перенос уходит в следующий, более старший байт.
        """
        for i in range(len(packed) - 1, -1, -1):
            packed[i] = (packed[i] + 1) & 0xFF
            if packed[i] > 0:
                break

    @classmethod
    def expand_cidr(cls, cidr: str, max_addresses: Optional[int] = None) -> List[str]:
        """
        Развернуть CIDR-блок в список адресов

        Адрес сети и широковещательный адрес отбрасываются, если в блоке
        больше двух адресов. Блоки /31, /32 (/127, /128) возвращаются целиком.

        Args:
            cidr: Блок вида 192.168.1.0/24
            max_addresses: Максимальный размер блока (None - без ограничения)

        Returns:
            Адреса блока в порядке возрастания

        Raises:
            TargetParseError: строка не является корректным префиксом
        """
        prefix = cidr.partition(cls.CIDR_SEPARATOR)[2]
        if not (prefix.isascii() and prefix.isdigit()):
            raise TargetParseError(cidr, "длина префикса должна быть целым числом")

        try:
            network = ipaddress.ip_network(cidr, strict=False)
        except ValueError as e:
            raise TargetParseError(cidr, str(e))

        if max_addresses is not None and network.num_addresses > max_addresses:
            raise TargetParseError(
                cidr,
                f"блок содержит {network.num_addresses} адресов, допустимо не более {max_addresses}"
            )

        addresses = []
        current = bytearray(network.network_address.packed)
        while True:
            address = ipaddress.ip_address(bytes(current))
            if address not in network:
                break
            addresses.append(str(address))
            cls.increment_ip(current)
            # 0.0.0.0/0 и ::/0 - после полного круга адрес снова нулевой
            if not any(current):
                break

        if len(addresses) > 2:
            return addresses[1:-1]
        return addresses

    @classmethod
    def expand_lines(cls, lines: Iterable[str],
                     max_block_size: Optional[int] = None) -> ExpansionResult:
        """
        Развернуть строки в плоский список адресов

        Строка с '/' разбирается как CIDR-блок; ошибка разбора не прерывает
        обработку следующих строк. Строка без '/' считается адресом и
        передается дальше без проверки. Дубликаты сохраняются.

        Args:
            lines: Строки (уже без пробелов по краям)
            max_block_size: Ограничение размера одного блока

        Returns:
            ExpansionResult с адресами и ошибками разбора
        """
        result = ExpansionResult()
        for line_num, line in enumerate(lines, 1):
            result.total_lines += 1
            try:
                result.addresses.extend(cls._expand_line(line, max_block_size))
                result.successful_lines += 1
            except TargetParseError as e:
                error = TargetParseError(e.line, e.reason, line_num)
                logger.warning(error.message)
                result.errors.append(error)
        return result

    @classmethod
    def _expand_line(cls, line: str, max_block_size: Optional[int] = None) -> List[str]:
        if cls.CIDR_SEPARATOR in line:
            return cls.expand_cidr(line, max_block_size)
        return [line]

    @classmethod
    def parse_line(cls, line: str, line_num: int = 1, validate: bool = True,
                   max_block_size: Optional[int] = None) -> List[str]:
        """
        Разбор одной строки входного файла

        Args:
            line: Строка для разбора
            line_num: Номер строки (для сообщений)
            validate: Проверять одиночные адреса
            max_block_size: Ограничение размера CIDR-блока

        Returns:
            Список адресов (пустой для комментариев и пустых строк)

        Raises:
            TargetParseError: строка не разбирается
        """
        line = line.strip()

        # Пропускаем пустые строки и комментарии
        if not line or line.startswith('#'):
            return []

        try:
            if validate and cls.CIDR_SEPARATOR not in line and not cls.validate_ip(line):
                raise TargetParseError(line, "некорректный IP-адрес")
            return cls._expand_line(line, max_block_size)
        except TargetParseError as e:
            raise TargetParseError(e.line, e.reason, line_num)

    @classmethod
    def parse_lines(cls, lines: Iterable[str], validate: bool = True,
                    max_block_size: Optional[int] = None) -> ExpansionResult:
        """
        Разбор строк входного файла

        Пустые строки и комментарии пропускаются, но учитываются в нумерации.
        Ошибка в строке записывается в результат и не прерывает разбор.
        """
        result = ExpansionResult()
        for line_num, line in enumerate(lines, 1):
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue
            result.total_lines += 1
            try:
                result.addresses.extend(
                    cls.parse_line(stripped, line_num, validate, max_block_size)
                )
                result.successful_lines += 1
            except TargetParseError as e:
                logger.warning(e.message)
                result.errors.append(e)
        return result

    @classmethod
    def parse_file(cls, filepath: str, validate: bool = True,
                   max_block_size: Optional[int] = None) -> ExpansionResult:
        """
        Разбор файла с целями

        Args:
            filepath: Путь к файлу
            validate: Проверять одиночные адреса
            max_block_size: Ограничение размера CIDR-блока

        Returns:
            ExpansionResult со всеми адресами файла

        Raises:
            SourceUnreadableError: файл не удалось открыть или прочитать
        """
        try:
            with open(filepath, 'r', encoding='utf-8-sig') as f:
                lines = f.readlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Ошибка чтения файла {filepath}: {e}")
            raise SourceUnreadableError(filepath, str(e))

        result = cls.parse_lines(lines, validate, max_block_size)

        logger.info(f"Обработано строк: {result.successful_lines}/{result.total_lines}")
        logger.info(f"Из файла {filepath} получено {len(result.addresses)} адресов")

        if not result.addresses:
            logger.warning("Не найдено корректных IP-адресов. Проверьте формат файла.")

        return result

    @classmethod
    def validate_ip(cls, ip_str: str) -> bool:
        """Проверка, что строка является IP-адресом"""
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    @classmethod
    def validate_file(cls, filepath: str, max_block_size: Optional[int] = None) -> Dict[str, Any]:
        """
        Предварительная проверка файла с целями

        Args:
            filepath: Путь к файлу
            max_block_size: Ограничение размера CIDR-блока

        Returns:
            Словарь с результатами проверки
        """
        results = {
            'valid': True,
            'total_lines': 0,
            'successful_lines': 0,
            'error_lines': [],
            'ip_count': 0,
            'errors': []
        }

        try:
            parsed = cls.parse_file(filepath, True, max_block_size)
        except SourceUnreadableError as e:
            results['valid'] = False
            results['errors'].append(e.message)
            return results

        results['total_lines'] = parsed.total_lines
        results['successful_lines'] = parsed.successful_lines
        results['ip_count'] = len(parsed.addresses)
        for error in parsed.errors:
            results['error_lines'].append(error.line_num)
            results['errors'].append(error.message)

        if results['ip_count'] == 0:
            results['valid'] = False
            results['errors'].append("Не найдено корректных IP-адресов")

        return results
