from typing import Dict, List, Optional

from .base import CollectContext, Collector, FieldReader, HostCollector
from .compliance import ComplianceCollector
from .configuration import ConfigurationCollector
from .hardware import HardwareCollector
from .networking import NetworkingCollector
from .speculative import SpeculativeExecutionCollector
from .storage import StorageCollector

COLLECTORS = [
    HardwareCollector,
    ConfigurationCollector,
    NetworkingCollector,
    StorageCollector,
    ComplianceCollector,
    SpeculativeExecutionCollector,
]

REPORT_KINDS = [c.name for c in COLLECTORS]


def build_collectors(kinds: Optional[List[str]] = None) -> Dict[str, Collector]:
    """Collectors keyed by report kind, in report order. No kinds means all of them."""
    wanted = {k.lower() for k in kinds or []}
    unknown = wanted - set(REPORT_KINDS)
    if unknown:
        raise ValueError(f"Unknown report kind(s): {', '.join(sorted(unknown))}")
    return {c.name: c() for c in COLLECTORS if not wanted or c.name in wanted}


__all__ = [
    "COLLECTORS",
    "REPORT_KINDS",
    "CollectContext",
    "Collector",
    "FieldReader",
    "HostCollector",
    "build_collectors",
]
