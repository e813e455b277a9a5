"""
Вспомогательные утилиты
"""

import logging
import sys

from .aggregator import ScanReport
from .config import ScannerConfig, ScanStatus


def setup_logging(config: ScannerConfig):
    """
    Настройка логирования

    Args:
        config: Конфигурация сканера
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    # Очищаем существующие обработчики
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format, date_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)

    logging.getLogger('asyncio').setLevel(logging.WARNING)


def print_banner():
    """Печать баннера при запуске"""
    banner = """
    ╔══════════════════════════════════════════════════════╗
    ║          СКАНЕР ЗАДЕРЖКИ ICMP                        ║
    ║          Поиск доступных хостов и ранжирование       ║
    ╚══════════════════════════════════════════════════════╝
    """
    print(banner)


def print_results(report: ScanReport, output_file: str):
    """Печать итогов сканирования"""
    if report.status == ScanStatus.SOURCE_UNREADABLE:
        print(f"Не удалось прочитать IP-адреса из файла: {report.error}")
        return
    if report.status == ScanStatus.NO_TARGETS:
        print("Нет корректных адресов для сканирования")
        return
    if report.status == ScanStatus.NO_REACHABLE_HOSTS:
        print(f"Не найдено доступных IP: все {report.total_targets} проверок завершились ошибкой")
        return

    print("\n" + "=" * 60)
    print("ИТОГИ СКАНИРОВАНИЯ:")
    print(f"  Проверено адресов: {report.total_targets}")
    print(f"  Доступно: {report.alive_hosts} ({report.alive_percent:.1f}%)")
    print(f"  Результаты записаны в файл {output_file}, "
          f"время: {report.scan_duration:.0f} сек")
    print("=" * 60)
