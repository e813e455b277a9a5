"""
Модуль для генерации отчетов
"""

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import __version__
from .aggregator import ScanReport
from .config import ScannerConfig, ReportFormat

logger = logging.getLogger(__name__)

CSV_HEADER = ["IP Address", "Latency"]


class ReportGenerator:
    """Генератор отчетов"""

    def __init__(self, config: ScannerConfig):
        self.config = config

    def generate(self, report: ScanReport) -> str:
        """
        Генерация отчета

        Args:
            report: Итог сканирования

        Returns:
            Строка с отчетом
        """
        format_methods = {
            ReportFormat.CSV: self._generate_csv,
            ReportFormat.TEXT: self._generate_text,
            ReportFormat.JSON: self._generate_json,
        }

        method = format_methods.get(self.config.report_format, self._generate_csv)
        return method(report)

    def _generate_csv(self, report: ScanReport) -> str:
        """Генерация CSV отчета: адрес и задержка, по возрастанию задержки"""
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")

        writer.writerow(CSV_HEADER)
        for address, latency in report.result_set.rows():
            writer.writerow([address, latency])

        return output.getvalue()

    def _generate_text(self, report: ScanReport) -> str:
        """Генерация текстового отчета"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        report_lines = [
            "=" * 70,
            "ОТЧЕТ О СКАНИРОВАНИИ СЕТИ",
            f"Дата и время: {timestamp}",
            "=" * 70,
            "",
            "ОБЩАЯ СТАТИСТИКА:",
            f"  Всего адресов: {report.total_targets}",
            f"  Доступно: {report.alive_hosts} ({report.alive_percent:.1f}%)",
            f"  Недоступно: {report.dead_hosts}",
            f"  Время сканирования: {report.scan_duration:.1f} сек",
            "",
        ]

        if report.failures:
            report_lines.append("ОШИБКИ ПО ВИДАМ:")
            for kind, count in sorted(report.failures.items(), key=lambda x: x[0].value):
                report_lines.append(f"  {kind.value}: {count}")
            report_lines.append("")

        if report.result_set.is_empty:
            report_lines.append("Нет доступных хостов")
        else:
            report_lines.extend([
                "ДОСТУПНЫЕ ХОСТЫ (по времени отклика):",
                "-" * 50,
            ])
            for address, latency in report.result_set.rows():
                report_lines.append(f"  {address:<40} {latency:>10}")

        report_lines.extend([
            "",
            "=" * 70,
        ])

        return "\n".join(report_lines)

    def _generate_json(self, report: ScanReport) -> str:
        """Генерация JSON отчета"""
        full_report = {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "config": self.config.to_dict(),
                "scanner_version": __version__
            },
            "summary": {
                "status": report.status.value,
                "total": report.total_targets,
                "alive": report.alive_hosts,
                "dead": report.dead_hosts,
                "alive_percent": round(report.alive_percent, 2),
                "scan_duration_seconds": round(report.scan_duration, 2),
                "failures": {kind.value: count for kind, count in report.failures.items()},
                "parse_errors": [error.message for error in report.parse_errors],
            },
            "results": [
                {"ip": result.address, "latency_ms": result.latency_ms}
                for result in report.result_set
            ]
        }

        return json.dumps(full_report, indent=2, ensure_ascii=False)

    def save_report(self, content: str, filepath: Optional[str] = None) -> bool:
        """
        Сохранение отчета в файл

        Args:
            content: Текст отчета
            filepath: Путь к файлу (опционально)

        Returns:
            True если успешно
        """
        if filepath is None:
            filepath = self.config.output_file

        try:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)

            logger.info(f"Отчет сохранен в файл: {filepath}")
            return True

        except OSError as e:
            logger.error(f"Ошибка сохранения отчета: {e}")
            return False
