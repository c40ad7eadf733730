"""Health subsystem — prober, result store, check cycle, scheduler."""

from .checker import CycleReport, StatusChecker
from .engine import AggregateVerdict, ProbeResult, Verdict, aggregate, probe
from .scheduler import CycleScheduler
from .store import MemoryKV, ResultStore, SQLiteKV, open_store
