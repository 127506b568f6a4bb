from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import SelectorConflict

UNKNOWN = "Unknown"

Record = Dict[str, Any]


class HostState(str, Enum):
    CONNECTED = "Connected"
    MAINTENANCE = "Maintenance"
    DISCONNECTED = "Disconnected"
    NOT_RESPONDING = "NotResponding"
    UNKNOWN = "Unknown"

    @property
    def eligible(self) -> bool:
        return self in (HostState.CONNECTED, HostState.MAINTENANCE)

    @classmethod
    def from_host(cls, host: Any) -> "HostState":
        """Map runtime.connectionState / inMaintenanceMode of a HostSystem."""
        try:
            runtime = host.runtime
            raw = str(getattr(runtime, "connectionState", "") or "")
            in_maintenance = bool(getattr(runtime, "inMaintenanceMode", False))
        except Exception:
            return cls.UNKNOWN
        if raw == "connected":
            return cls.MAINTENANCE if in_maintenance else cls.CONNECTED
        if raw == "disconnected":
            return cls.DISCONNECTED
        if raw == "notResponding":
            return cls.NOT_RESPONDING
        return cls.UNKNOWN


class SelectorPolicy(str, Enum):
    FIRST_MATCH = "first-match"
    UNION = "union"
    EXCLUSIVE = "exclusive"


@dataclass
class Selector:
    hosts: List[str] = field(default_factory=list)
    clusters: List[str] = field(default_factory=list)
    datacenters: List[str] = field(default_factory=list)

    @property
    def is_all(self) -> bool:
        return not (self.hosts or self.clusters or self.datacenters)

    def given(self) -> List[Tuple[str, List[str]]]:
        """Non-empty selector kinds in precedence order."""
        kinds = [("host", self.hosts), ("cluster", self.clusters), ("datacenter", self.datacenters)]
        return [(kind, names) for kind, names in kinds if names]

    def check(self, policy: SelectorPolicy) -> None:
        """Raise SelectorConflict when the exclusive policy sees more than one kind."""
        given = self.given()
        if policy == SelectorPolicy.EXCLUSIVE and len(given) > 1:
            raise SelectorConflict("Only one of host, cluster or datacenter may be given: " + ", ".join(k for k, _ in given))


@dataclass
class Target:
    name: str
    moid: str
    state: HostState = HostState.UNKNOWN
    cluster: str = ""
    datacenter: str = ""
    ref: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class ResolutionWarning:
    kind: str
    name: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class SkipEntry:
    host: str
    state: str
    reason: str = ""


@dataclass(frozen=True)
class PartialFieldFailure:
    host: str
    kind: str
    field: str
    error: str


@dataclass
class ReportCollection:
    kind: str
    title: str
    columns: List[str]
    records: List[Record] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)


@dataclass
class FetchResult:
    target: Target
    records: Dict[str, Record] = field(default_factory=dict)
    skip: Optional[SkipEntry] = None
    failures: List[PartialFieldFailure] = field(default_factory=list)


@dataclass
class RunResult:
    collections: Dict[str, ReportCollection] = field(default_factory=dict)
    skipped: List[SkipEntry] = field(default_factory=list)
    warnings: List[ResolutionWarning] = field(default_factory=list)
    failures: List[PartialFieldFailure] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    export_warnings: List[str] = field(default_factory=list)
    targets: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "targets": list(self.targets),
            "collections": {
                kind: {"title": c.title, "columns": c.columns, "records": c.records}
                for kind, c in self.collections.items()
            },
            "skipped": [vars(s) for s in self.skipped],
            "warnings": [vars(w) for w in self.warnings],
            "field_failures": [vars(f) for f in self.failures],
            "exports": list(self.exports),
            "export_warnings": list(self.export_warnings),
        }
