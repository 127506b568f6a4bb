from threading import Lock
from typing import Dict, Iterable, List, Optional

from .collectors import Collector
from .collectors.base import HOSTNAME
from .models import UNKNOWN, FetchResult, PartialFieldFailure, Record, ReportCollection, SkipEntry


def conform(record: Optional[Record], columns: List[str], host: str) -> Record:
    """Same keys, same order, for every record of a kind."""
    record = record or {}
    row = {col: record.get(col, UNKNOWN) for col in columns}
    if HOSTNAME in row:
        row[HOSTNAME] = record.get(HOSTNAME) or host
    return row


class Aggregator:
    """
    Fan-in point for per-host results.

    add() may be called from worker threads in completion order; collections()
    reports hosts in the order of the managed object ids given at construction
    (the resolver's order).
    """

    def __init__(self, collectors: Dict[str, Collector], order: Iterable[str]) -> None:
        self.collectors = collectors
        self._rank = {moid: i for i, moid in enumerate(order)}
        self._results: List[FetchResult] = []
        self._lock = Lock()

    def add(self, result: FetchResult) -> None:
        with self._lock:
            self._results.append(result)

    def _ordered(self) -> List[FetchResult]:
        with self._lock:
            results = list(self._results)
        fallback = len(self._rank)
        return sorted(results, key=lambda r: (self._rank.get(r.target.moid, fallback), r.target.name.lower()))

    def collections(self) -> Dict[str, ReportCollection]:
        ordered = self._ordered()
        out: Dict[str, ReportCollection] = {}
        for kind, collector in self.collectors.items():
            columns = list(collector.columns)
            records = [
                conform(r.records.get(kind), columns, r.target.name)
                for r in ordered
                if r.skip is None
            ]
            out[kind] = ReportCollection(kind=kind, title=collector.title, columns=columns, records=records)
        return out

    def skipped(self) -> List[SkipEntry]:
        return [r.skip for r in self._ordered() if r.skip is not None]

    def failures(self) -> List[PartialFieldFailure]:
        return [f for r in self._ordered() for f in r.failures]


def aggregate(results: Iterable[FetchResult], collectors: Dict[str, Collector]) -> Dict[str, ReportCollection]:
    """Group results by report kind, keeping the order they arrive in."""
    results = list(results)
    aggregator = Aggregator(collectors, [r.target.moid for r in results])
    for result in results:
        aggregator.add(result)
    return aggregator.collections()
