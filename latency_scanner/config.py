"""
Модуль конфигурации и моделей данных
"""

import json
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml

from .errors import ErrorKind


class ReportFormat(Enum):
    """Формат отчета"""
    CSV = "csv"
    TEXT = "text"
    JSON = "json"


class ScanStatus(Enum):
    """Итог сканирования"""
    COMPLETED = "completed"
    NO_REACHABLE_HOSTS = "no_reachable_hosts"
    NO_TARGETS = "no_targets"
    SOURCE_UNREADABLE = "source_unreadable"


@dataclass
class ScannerConfig:
    """Конфигурация сканера с валидацией"""

    # Основные пути
    input_file: str = "ip.txt"
    output_file: str = "ip.csv"
    log_file: Optional[str] = None

    # Параметры ICMP
    timeout: float = 1.0
    payload_size: int = 32

    # Параметры производительности
    concurrent_limit: int = 100

    # Настройки разбора входного файла
    validate_ips: bool = True
    max_block_size: int = 1 << 24

    # Настройки вывода
    report_format: ReportFormat = ReportFormat.CSV
    log_level: str = "INFO"
    show_progress: bool = True

    def __post_init__(self):
        """Валидация значений после инициализации"""
        self._validate_values()

    def _validate_values(self):
        """Проверка корректности значений"""
        if self.timeout <= 0:
            raise ValueError("timeout должен быть положительным числом")
        if self.concurrent_limit <= 0:
            raise ValueError("concurrent_limit должен быть положительным числом")
        if self.payload_size < 0:
            raise ValueError("payload_size не может быть отрицательным")
        if self.max_block_size <= 0:
            raise ValueError("max_block_size должен быть положительным числом")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(f"log_level должен быть одним из: {valid_log_levels}")

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь"""
        data = asdict(self)
        data["report_format"] = self.report_format.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannerConfig":
        """Создание из словаря"""
        data = dict(data)
        if "report_format" in data and isinstance(data["report_format"], str):
            try:
                data["report_format"] = ReportFormat(data["report_format"].lower())
            except ValueError:
                logging.warning(f"Неизвестный формат отчета '{data['report_format']}', используется csv")
                data["report_format"] = ReportFormat.CSV

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        for key in sorted(unknown):
            logging.warning(f"Неизвестный параметр конфигурации: {key}")

        return cls(**{k: v for k, v in data.items() if k in known})


class ConfigLoader:
    """Загрузчик конфигурации"""

    CONFIG_FILES = [
        "scanner_config.yaml",
        "scanner_config.json",
        "config/scanner.yaml",
    ]

    DEFAULT_CONFIG = {
        "input_file": "ip.txt",
        "output_file": "ip.csv",
        "log_file": None,
        "timeout": 1.0,
        "payload_size": 32,
        "concurrent_limit": 100,
        "validate_ips": True,
        "max_block_size": 1 << 24,
        "report_format": "csv",
        "log_level": "INFO",
        "show_progress": True,
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None,
             overrides: Optional[Dict[str, Any]] = None) -> ScannerConfig:
        """
        Загрузка конфигурации

        Порядок: значения по умолчанию, файл конфигурации, переопределения
        из командной строки (значения None пропускаются).

        Args:
            config_path: Путь к файлу конфигурации (опционально)
            overrides: Значения из командной строки

        Returns:
            Объект конфигурации
        """
        config_dict = cls.DEFAULT_CONFIG.copy()

        found_config = cls._find_config_file(config_path)
        if found_config:
            try:
                user_config = cls._load_config_file(found_config)
                config_dict.update(user_config)
                logging.info(f"Загружена конфигурация из {found_config}")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logging.warning(f"Ошибка загрузки конфигурации: {e}")
                logging.info("Используются значения по умолчанию")
        elif config_path:
            logging.warning(f"Файл конфигурации не найден: {config_path}")

        if overrides:
            config_dict.update({k: v for k, v in overrides.items() if v is not None})

        return ScannerConfig.from_dict(config_dict)

    @classmethod
    def _find_config_file(cls, config_path: Optional[str] = None) -> Optional[Path]:
        """Поиск файла конфигурации"""
        if config_path:
            path = Path(config_path)
            if path.exists():
                return path
            return None

        for config_file in cls.CONFIG_FILES:
            path = Path(config_file)
            if path.exists():
                return path

        return None

    @staticmethod
    def _load_config_file(filepath: Path) -> Dict[str, Any]:
        """Загрузка конфигурации из файла (YAML или JSON)"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()

        if filepath.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{filepath}: ожидается словарь параметров")
        return data


@dataclass(frozen=True)
class ProbeSuccess:
    """Успешная проверка: адрес ответил на ICMP echo"""
    address: str
    duration: float  # секунды

    @property
    def latency_ms(self) -> int:
        return int(self.duration * 1000)

    @property
    def latency_text(self) -> str:
        return f"{self.latency_ms} ms"


@dataclass(frozen=True)
class ProbeFailure:
    """Неудачная проверка"""
    address: str
    kind: ErrorKind
    message: str = ""


ProbeOutcome = Union[ProbeSuccess, ProbeFailure]
