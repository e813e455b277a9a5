"""
Модуль параллельного сканера с ограничением числа одновременных проверок
"""

import asyncio
import logging
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, TextIO

from .aggregator import ResultAggregator
from .config import ProbeFailure, ProbeOutcome, ProbeSuccess
from .errors import ErrorKind

logger = logging.getLogger(__name__)

CompletionHook = Callable[[int, int, ProbeOutcome], None]


class Prober(Protocol):
    """Интерфейс проверки одного адреса"""

    def probe(self, address: str) -> ProbeOutcome:
        ...


class ProgressTracker:
    """Трекер прогресса сканирования"""

    def __init__(self, total: int, show_progress: bool = True,
                 update_interval: float = 1.0, stream: Optional[TextIO] = None):
        self.total = total
        self.completed = 0
        self.show_progress = show_progress
        self.start_time = time.time()
        self.last_update = 0.0
        self.update_interval = update_interval
        self.stream = stream or sys.stdout

    def __call__(self, completed: int, total: int, outcome: ProbeOutcome):
        self.total = total
        self.update(completed)

    def update(self, completed: int):
        """Обновить прогресс"""
        self.completed = completed
        current_time = time.time()

        if not self.show_progress:
            return
        if self.completed >= self.total or current_time - self.last_update >= self.update_interval:
            self._display()
            self.last_update = current_time

    def _display(self):
        """Отобразить прогресс"""
        percent = (self.completed / self.total * 100) if self.total > 0 else 0
        print(f"\rВыполнено: {self.completed}/{self.total} ({percent:.2f}%)",
              end="", file=self.stream, flush=True)

    def finish(self):
        """Завершить отображение прогресса"""
        if self.show_progress:
            elapsed = time.time() - self.start_time
            print(f"\nСканирование завершено за {elapsed:.1f} секунд", file=self.stream)


class ProbeScheduler:
    """
    Запуск одной проверки на адрес, не более concurrent_limit одновременно

    Новая задача допускается только после освобождения слота семафора;
    слоты занимаются в порядке адресов, завершаться задачи могут в любом
    порядке. run() возвращается только после завершения всех задач.
    """

    def __init__(self, prober: Prober, concurrent_limit: int = 100,
                 on_complete: Optional[CompletionHook] = None):
        if concurrent_limit <= 0:
            raise ValueError("concurrent_limit должен быть положительным числом")
        self.prober = prober
        self.concurrent_limit = concurrent_limit
        self.on_complete = on_complete
        self._lock = threading.Lock()
        self._completed = 0

    async def run(self, addresses: List[str],
                  aggregator: Optional[ResultAggregator] = None) -> ResultAggregator:
        """
        Проверка всех адресов

        Args:
            addresses: Адреса в порядке запуска
            aggregator: Приемник результатов (создается, если не передан)

        Returns:
            Приемник со всеми результатами
        """
        if aggregator is None:
            aggregator = ResultAggregator()

        total = len(addresses)
        with self._lock:
            self._completed = 0

        logger.info(f"Начинаем сканирование {total} адресов, "
                    f"одновременных проверок: {self.concurrent_limit}")

        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.concurrent_limit)
        tasks = []

        with ThreadPoolExecutor(max_workers=self.concurrent_limit,
                                thread_name_prefix="probe") as executor:
            for address in addresses:
                await semaphore.acquire()
                tasks.append(asyncio.ensure_future(
                    self._run_task(address, total, loop, executor, semaphore, aggregator)
                ))

            await asyncio.gather(*tasks)

        return aggregator

    async def _run_task(self, address: str, total: int, loop: asyncio.AbstractEventLoop,
                        executor: ThreadPoolExecutor, semaphore: asyncio.Semaphore,
                        aggregator: ResultAggregator):
        try:
            try:
                outcome = await loop.run_in_executor(executor, self.prober.probe, address)
            except Exception as e:
                logger.error(f"Ошибка при проверке {address}: {e}")
                outcome = ProbeFailure(address, ErrorKind.PROTOCOL_ERROR, str(e))

            self._report(outcome)
            try:
                aggregator.submit(outcome)
            except Exception as e:
                logger.error(f"Не удалось сохранить результат {address}: {e}")

            with self._lock:
                self._completed += 1
                completed = self._completed

            if self.on_complete is not None:
                try:
                    self.on_complete(completed, total, outcome)
                except Exception as e:
                    logger.error(f"Ошибка обработчика завершения для {address}: {e}")
        finally:
            semaphore.release()

    @staticmethod
    def _report(outcome: ProbeOutcome):
        if isinstance(outcome, ProbeSuccess):
            logger.info(f"Ping {outcome.address} успешно, задержка ICMP: {outcome.latency_text}")
        else:
            logger.warning(f"Ping {outcome.address} не удался ({outcome.kind.value}): {outcome.message}")
