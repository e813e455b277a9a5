"""
Модуль сбора и упорядочивания результатов
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import ProbeOutcome, ProbeSuccess, ScanStatus
from .errors import ErrorKind, TargetParseError

logger = logging.getLogger(__name__)


def result_sort_key(success: ProbeSuccess) -> Tuple[float, str]:
    """Полный порядок: время отклика, затем адрес"""
    return success.duration, success.address


@dataclass(frozen=True)
class ResultSet:
    """Доступные хосты в порядке возрастания времени отклика"""
    results: Tuple[ProbeSuccess, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.results

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def rows(self) -> List[Tuple[str, str]]:
        """Строки отчета: (адрес, "<мс> ms")"""
        return [(result.address, result.latency_text) for result in self.results]


class ResultAggregator:
    """
    Приемник результатов проверок

    submit() вызывается из параллельных задач; finalize() - один раз,
    после того как все задачи завершены.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._successes: List[ProbeSuccess] = []
        self._failures: Counter = Counter()
        self._finalized = False

    def submit(self, outcome: ProbeOutcome):
        """Принять результат одной проверки"""
        with self._lock:
            if self._finalized:
                raise RuntimeError("результаты уже собраны")
            if isinstance(outcome, ProbeSuccess):
                self._successes.append(outcome)
            else:
                self._failures[outcome.kind] += 1

    def failure_counts(self) -> Dict[ErrorKind, int]:
        """Количество неудачных проверок по видам ошибок"""
        with self._lock:
            return dict(self._failures)

    def finalize(self) -> ResultSet:
        """Упорядочить успешные проверки и закрыть прием"""
        with self._lock:
            self._finalized = True
            ordered = sorted(self._successes, key=result_sort_key)

        if not ordered:
            logger.warning("Нет доступных хостов")
        return ResultSet(tuple(ordered))


@dataclass
class ScanReport:
    """Итог одного запуска сканирования"""
    status: ScanStatus
    result_set: ResultSet = field(default_factory=ResultSet)
    total_targets: int = 0
    failures: Dict[ErrorKind, int] = field(default_factory=dict)
    parse_errors: List[TargetParseError] = field(default_factory=list)
    scan_duration: float = 0.0
    error: Optional[str] = None

    @property
    def alive_hosts(self) -> int:
        return len(self.result_set)

    @property
    def dead_hosts(self) -> int:
        return sum(self.failures.values())

    @property
    def alive_percent(self) -> float:
        """Процент доступных хостов"""
        if self.total_targets == 0:
            return 0.0
        return (self.alive_hosts / self.total_targets) * 100
