"""
Параллельный сканер задержки ICMP
"""

__version__ = "1.0.0"
__author__ = "IP Scanner Team"

from .config import ScannerConfig, ScanStatus, ProbeSuccess, ProbeFailure
from .errors import ErrorKind, TargetParseError, SourceUnreadableError
from .ip_parser import IPParser
from .prober import EchoProber
from .scanner import ProbeScheduler
from .aggregator import ResultAggregator, ResultSet, ScanReport
from .reporter import ReportGenerator
from .main import run_scan
