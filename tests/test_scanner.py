# tests/test_scanner.py
import asyncio
import io
from collections import Counter

import pytest

from latency_scanner.aggregator import ResultAggregator
from latency_scanner.config import ProbeFailure, ProbeSuccess
from latency_scanner.errors import ErrorKind
from latency_scanner.scanner import ProbeScheduler, ProgressTracker

from conftest import CountingProber


def addresses(count):
    return [f"10.0.{i // 250}.{i % 250 + 1}" for i in range(count)]


@pytest.mark.parametrize("limit", [1, 3, 10])
def test_never_more_than_limit_in_flight(limit):
    prober = CountingProber(delay=0.01)
    targets = addresses(40)

    asyncio.run(ProbeScheduler(prober, concurrent_limit=limit).run(targets))

    assert 1 <= prober.max_in_flight <= limit


def test_each_address_probed_exactly_once():
    prober = CountingProber()
    targets = addresses(50)

    aggregator = asyncio.run(ProbeScheduler(prober, concurrent_limit=7).run(targets))

    assert Counter(prober.calls) == Counter(targets)
    assert len(aggregator.finalize()) == 50


def test_admission_follows_submission_order():
    prober = CountingProber(delay=0.001)
    targets = addresses(15)

    asyncio.run(ProbeScheduler(prober, concurrent_limit=1).run(targets))

    assert prober.calls == targets


def test_failures_are_kept_out_of_results():
    targets = addresses(6)
    prober = CountingProber(failing=targets[::2])

    aggregator = asyncio.run(ProbeScheduler(prober, concurrent_limit=3).run(targets))

    result_set = aggregator.finalize()
    assert [r.address for r in result_set] == sorted(targets[1::2])
    assert aggregator.failure_counts() == {ErrorKind.TIMEOUT: 3}


def test_completion_hook_called_once_per_task():
    calls = []
    prober = CountingProber()
    targets = addresses(20)

    scheduler = ProbeScheduler(prober, concurrent_limit=4,
                               on_complete=lambda done, total, outcome: calls.append((done, total, outcome)))
    asyncio.run(scheduler.run(targets))

    assert sorted(done for done, _, _ in calls) == list(range(1, 21))
    assert {total for _, total, _ in calls} == {20}
    assert sorted(outcome.address for _, _, outcome in calls) == sorted(targets)


def test_prober_exception_does_not_break_barrier():
    class ExplodingProber:
        def probe(self, address):
            if address.endswith(".2"):
                raise RuntimeError("boom")
            return ProbeSuccess(address, 0.001)

    targets = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    aggregator = asyncio.run(ProbeScheduler(ExplodingProber(), concurrent_limit=2).run(targets))

    assert aggregator.failure_counts() == {ErrorKind.PROTOCOL_ERROR: 1}
    assert len(aggregator.finalize()) == 2


def test_failing_hook_does_not_break_barrier():
    seen = []

    def hook(done, total, outcome):
        seen.append(done)
        if done == 1:
            raise BrokenPipeError("stdout closed")

    targets = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    aggregator = asyncio.run(ProbeScheduler(CountingProber(), concurrent_limit=2,
                                            on_complete=hook).run(targets))

    assert sorted(seen) == [1, 2, 3]
    assert [r.address for r in aggregator.finalize()] == targets


def test_empty_target_list():
    aggregator = asyncio.run(ProbeScheduler(CountingProber(), concurrent_limit=5).run([]))
    assert aggregator.finalize().is_empty


def test_uses_given_aggregator():
    aggregator = ResultAggregator()
    returned = asyncio.run(ProbeScheduler(CountingProber()).run(["10.0.0.1"], aggregator))
    assert returned is aggregator


@pytest.mark.parametrize("limit", [0, -1])
def test_invalid_limit(limit):
    with pytest.raises(ValueError):
        ProbeScheduler(CountingProber(), concurrent_limit=limit)


def test_progress_tracker_output():
    stream = io.StringIO()
    tracker = ProgressTracker(total=4, update_interval=3600, stream=stream)

    tracker(1, 4, ProbeFailure("10.0.0.1", ErrorKind.TIMEOUT))
    tracker(2, 4, ProbeSuccess("10.0.0.2", 0.01))
    tracker(4, 4, ProbeSuccess("10.0.0.3", 0.01))
    tracker.finish()

    output = stream.getvalue()
    assert "1/4 (25.00%)" in output
    # промежуточное обновление подавлено интервалом
    assert "2/4" not in output
    assert "4/4 (100.00%)" in output
    assert output.endswith("секунд\n")


def test_progress_tracker_silent():
    stream = io.StringIO()
    tracker = ProgressTracker(total=2, show_progress=False, stream=stream)
    tracker.update(2)
    tracker.finish()
    assert stream.getvalue() == ""
