"""
Главный модуль сканера задержки ICMP
"""

import argparse
import asyncio
import logging
import sys
import time
from typing import Iterable, List, Optional

from .aggregator import ScanReport
from .config import ConfigLoader, ScannerConfig, ScanStatus
from .errors import SourceUnreadableError
from .ip_parser import IPParser, ExpansionResult
from .prober import EchoProber
from .reporter import ReportGenerator
from .scanner import CompletionHook, ProbeScheduler, Prober, ProgressTracker
from .utils import setup_logging, print_banner, print_results

logger = logging.getLogger(__name__)

EXIT_CODES = {
    ScanStatus.COMPLETED: 0,
    ScanStatus.SOURCE_UNREADABLE: 1,
    ScanStatus.NO_REACHABLE_HOSTS: 2,
    ScanStatus.NO_TARGETS: 3,
}


def load_targets(config: ScannerConfig, lines: Optional[Iterable[str]] = None) -> ExpansionResult:
    """
    Получение списка целей

    Если строки переданы явно, они разбираются так же, как строки файла.

    Raises:
        SourceUnreadableError: файл с целями не читается
    """
    if lines is not None:
        return IPParser.parse_lines(lines, config.validate_ips, config.max_block_size)
    return IPParser.parse_file(config.input_file, config.validate_ips, config.max_block_size)


async def run_scan(config: ScannerConfig, lines: Optional[Iterable[str]] = None,
                   prober: Optional[Prober] = None,
                   on_complete: Optional[CompletionHook] = None) -> ScanReport:
    """
    Полный цикл: цели -> параллельные проверки -> упорядоченный результат

    Args:
        config: Конфигурация сканера
        lines: Строки с целями вместо config.input_file (опционально)
        prober: Реализация проверки (по умолчанию EchoProber)
        on_complete: Обработчик завершения каждой проверки

    Returns:
        ScanReport со статусом завершения
    """
    start_time = time.time()

    try:
        targets = load_targets(config, lines)
    except SourceUnreadableError as e:
        return ScanReport(status=ScanStatus.SOURCE_UNREADABLE, error=e.message)

    addresses: List[str] = targets.addresses
    if not addresses:
        logger.warning("Нет корректных адресов для сканирования")
        return ScanReport(status=ScanStatus.NO_TARGETS, parse_errors=targets.errors)

    if prober is None:
        prober = EchoProber(timeout=config.timeout, payload_size=config.payload_size)

    progress = None
    if on_complete is None and config.show_progress:
        progress = ProgressTracker(total=len(addresses))
        on_complete = progress

    scheduler = ProbeScheduler(prober, config.concurrent_limit, on_complete)
    aggregator = await scheduler.run(addresses)

    if progress is not None:
        progress.finish()

    result_set = aggregator.finalize()
    status = ScanStatus.NO_REACHABLE_HOSTS if result_set.is_empty else ScanStatus.COMPLETED

    report = ScanReport(
        status=status,
        result_set=result_set,
        total_targets=len(addresses),
        failures=aggregator.failure_counts(),
        parse_errors=targets.errors,
        scan_duration=time.time() - start_time,
    )

    logger.info(f"Сканирование завершено за {report.scan_duration:.1f} секунд")
    logger.info(f"Результаты: {report.alive_hosts} доступно, {report.dead_hosts} недоступно")

    return report


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(
        description='Параллельная проверка задержки ICMP и ранжирование доступных хостов',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры использования:
  latency-scanner -f ip.txt -o ip.csv
  latency-scanner -f ip.txt -m 200 -t 0.5
  latency-scanner -f ip.txt --format text
  latency-scanner -f ip.txt --check
        """
    )

    parser.add_argument('--file', '-f', dest='input_file',
                        help='Файл с IP-адресами и CIDR-блоками (по умолчанию: ip.txt)')
    parser.add_argument('--outfile', '-o', dest='output_file',
                        help='Выходной файл (по умолчанию: ip.csv)')
    parser.add_argument('--max', '-m', dest='concurrent_limit', type=int,
                        help='Максимум одновременных проверок (по умолчанию: 100)')
    parser.add_argument('--timeout', '-t', type=float,
                        help='Время ожидания ответа в секундах (по умолчанию: 1)')
    parser.add_argument('--format', dest='report_format', choices=['csv', 'text', 'json'],
                        help='Формат отчета (по умолчанию: csv)')
    parser.add_argument('--config', '-c',
                        help='Файл конфигурации (YAML/JSON)')
    parser.add_argument('--log-file', dest='log_file',
                        help='Файл журнала')
    parser.add_argument('--no-progress', dest='show_progress', action='store_false', default=None,
                        help='Не показывать прогресс')
    parser.add_argument('--check', action='store_true',
                        help='Только проверить входной файл и выйти')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Подробный вывод (DEBUG уровень)')

    return parser.parse_args(argv)


def check_input(config: ScannerConfig) -> int:
    """Проверка входного файла без сканирования"""
    validation = IPParser.validate_file(config.input_file, config.max_block_size)

    print(f"Файл проверен: {validation['successful_lines']}/{validation['total_lines']} строк корректны")
    print(f"Найдено IP-адресов: {validation['ip_count']}")
    for error in validation['errors']:
        print(f"  {error}")

    return 0 if validation['valid'] else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Точка входа командной строки"""
    args = parse_arguments(argv)

    overrides = {
        'input_file': args.input_file,
        'output_file': args.output_file,
        'concurrent_limit': args.concurrent_limit,
        'timeout': args.timeout,
        'report_format': args.report_format,
        'log_file': args.log_file,
        'show_progress': args.show_progress,
        'log_level': 'DEBUG' if args.verbose else None,
    }

    try:
        config = ConfigLoader.load(args.config, overrides)
    except ValueError as e:
        print(f"Ошибка конфигурации: {e}")
        return 1

    setup_logging(config)

    if args.check:
        return check_input(config)

    print_banner()

    try:
        report = asyncio.run(run_scan(config))
    except KeyboardInterrupt:
        print("\n\nСканирование прервано пользователем")
        return 130

    if report.status == ScanStatus.COMPLETED:
        reporter = ReportGenerator(config)
        if not reporter.save_report(reporter.generate(report)):
            return 1

    print_results(report, config.output_file)
    return EXIT_CODES[report.status]


if __name__ == "__main__":
    sys.exit(main())
