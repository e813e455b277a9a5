# tests/test_main.py
import asyncio

import pytest

from latency_scanner import main as main_module
from latency_scanner.config import ScannerConfig, ScanStatus
from latency_scanner.errors import ErrorKind
from latency_scanner.prober import EchoProber

from conftest import CountingProber, FakeSocketFactory


@pytest.fixture
def config(tmp_path):
    return ScannerConfig(input_file=str(tmp_path / "ip.txt"),
                         output_file=str(tmp_path / "ip.csv"),
                         show_progress=False)


def test_completed_scan_is_ranked(config):
    prober = CountingProber(latencies={"192.168.1.1": 0.050, "192.168.1.2": 0.002, "8.8.8.8": 0.020})

    report = asyncio.run(main_module.run_scan(config, ["192.168.1.0/30", "8.8.8.8"], prober=prober))

    assert report.status == ScanStatus.COMPLETED
    assert report.total_targets == 3
    assert report.result_set.rows() == [
        ("192.168.1.2", "2 ms"),
        ("8.8.8.8", "20 ms"),
        ("192.168.1.1", "50 ms"),
    ]


def test_all_timeouts_report_no_reachable_hosts(config):
    targets = ["10.0.0.1", "10.0.0.2"]
    prober = CountingProber(failing=targets)

    report = asyncio.run(main_module.run_scan(config, targets, prober=prober))

    assert report.status == ScanStatus.NO_REACHABLE_HOSTS
    assert report.result_set.is_empty
    assert report.failures == {ErrorKind.TIMEOUT: 2}


def test_only_bad_lines_report_no_targets(config):
    report = asyncio.run(main_module.run_scan(config, ["10.0.0.0/abc", "", "# comment"],
                                              prober=CountingProber()))

    assert report.status == ScanStatus.NO_TARGETS
    assert len(report.parse_errors) == 1


def test_malformed_cidr_does_not_stop_following_lines(config):
    prober = CountingProber()

    report = asyncio.run(main_module.run_scan(config, ["10.0.0.0/abc", "192.168.1.0/30"], prober=prober))

    assert report.status == ScanStatus.COMPLETED
    assert sorted(prober.calls) == ["192.168.1.1", "192.168.1.2"]
    assert report.parse_errors[0].line == "10.0.0.0/abc"


def test_invalid_literal_lines_are_not_probed(config):
    prober = CountingProber()

    report = asyncio.run(main_module.run_scan(config, ["bogus", "10.0.0.1"], prober=prober))

    assert prober.calls == ["10.0.0.1"]
    assert report.parse_errors[0].line == "bogus"


def test_unreadable_source_is_fatal(config):
    prober = CountingProber()

    report = asyncio.run(main_module.run_scan(config, prober=prober))

    assert report.status == ScanStatus.SOURCE_UNREADABLE
    assert report.error
    assert prober.calls == []


def test_unreachable_literal_yields_one_timeout(config):
    prober = EchoProber(timeout=0.05, socket_factory=FakeSocketFactory())

    report = asyncio.run(main_module.run_scan(config, ["192.0.2.10"], prober=prober))

    assert report.status == ScanStatus.NO_REACHABLE_HOSTS
    assert report.failures == {ErrorKind.TIMEOUT: 1}
    assert len(report.result_set) == 0


def test_custom_completion_hook(config):
    seen = []
    report = asyncio.run(main_module.run_scan(
        config, ["10.0.0.1", "10.0.0.2"], prober=CountingProber(),
        on_complete=lambda done, total, outcome: seen.append(done),
    ))

    assert report.status == ScanStatus.COMPLETED
    assert sorted(seen) == [1, 2]


def test_failing_hook_keeps_every_result(config):
    def hook(done, total, outcome):
        if done == 1:
            raise BrokenPipeError("stdout closed")

    targets = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    report = asyncio.run(main_module.run_scan(config, targets, prober=CountingProber(), on_complete=hook))

    assert report.status == ScanStatus.COMPLETED
    assert [address for address, _ in report.result_set.rows()] == targets


def test_cli_writes_csv(tmp_path, monkeypatch):
    source = tmp_path / "ip.txt"
    source.write_text("8.8.8.8\n1.1.1.1\n", encoding="utf-8")
    output = tmp_path / "ip.csv"
    prober = CountingProber(latencies={"8.8.8.8": 0.030, "1.1.1.1": 0.010})
    monkeypatch.setattr(main_module, "EchoProber", lambda **kwargs: prober)

    code = main_module.main(["-f", str(source), "-o", str(output), "--no-progress", "-m", "2"])

    assert code == 0
    assert output.read_text(encoding="utf-8").splitlines() == [
        "IP Address,Latency",
        "1.1.1.1,10 ms",
        "8.8.8.8,30 ms",
    ]


def test_cli_does_not_write_empty_report(tmp_path, monkeypatch):
    source = tmp_path / "ip.txt"
    source.write_text("10.0.0.1\n", encoding="utf-8")
    output = tmp_path / "ip.csv"
    prober = CountingProber(failing={"10.0.0.1"})
    monkeypatch.setattr(main_module, "EchoProber", lambda **kwargs: prober)

    code = main_module.main(["-f", str(source), "-o", str(output), "--no-progress"])

    assert code == 2
    assert not output.exists()


def test_cli_exit_codes_for_missing_and_empty_input(tmp_path):
    assert main_module.main(["-f", str(tmp_path / "missing.txt"), "--no-progress"]) == 1

    empty = tmp_path / "empty.txt"
    empty.write_text("# nothing\n", encoding="utf-8")
    assert main_module.main(["-f", str(empty), "--no-progress"]) == 3


def test_cli_check_mode(tmp_path, capsys):
    source = tmp_path / "ip.txt"
    source.write_text("8.8.8.8\n10.0.0.0/abc\n", encoding="utf-8")

    assert main_module.main(["-f", str(source), "--check"]) == 0
    assert "Найдено IP-адресов: 1" in capsys.readouterr().out


def test_cli_rejects_invalid_limit(tmp_path):
    assert main_module.main(["-f", str(tmp_path / "ip.txt"), "-m", "0"]) == 1
