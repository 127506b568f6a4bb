import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from ..advisories import AdvisoryProvider, NullAdvisoryProvider
from ..models import UNKNOWN, PartialFieldFailure, Record, Target

logger = logging.getLogger("vdocumentation.collectors")

HOSTNAME = "Hostname"


@dataclass
class CollectContext:
    content: Any = None
    advisories: AdvisoryProvider = field(default_factory=NullAdvisoryProvider)
    task_timeout: float = 600.0
    poll_interval: float = 5.0
    cancel_event: threading.Event = field(default_factory=threading.Event)


class Collector(Protocol):
    name: str
    title: str
    columns: List[str]

    def run(self, target: Target, context: CollectContext) -> Tuple[Record, List[PartialFieldFailure]]:
        ...


def as_cell(value: Any) -> Any:
    """Flatten a value into something a CSV cell can hold."""
    if value is None:
        return UNKNOWN
    if isinstance(value, str):
        return value.strip() or UNKNOWN
    if isinstance(value, bool):
        return value
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return joined(value)
    return value


def joined(items: Iterable[Any], sep: str = ", ") -> str:
    return sep.join(str(i) for i in items if i not in (None, ""))


class FieldReader:
    """
    Builds one record for a host, reading every field in isolation.

    A getter that raises leaves the placeholder in place and is recorded as a
    partial failure, so one missing data point never discards the rest.
    """

    def __init__(self, host: str, kind: str, columns: List[str]) -> None:
        self.host = host
        self.kind = kind
        self.record: Record = {col: UNKNOWN for col in columns}
        self.record[HOSTNAME] = host
        self.failures: List[PartialFieldFailure] = []

    def read(self, column: str, getter: Callable[[], Any]) -> Optional[Any]:
        try:
            value = getter()
        except Exception as exc:
            self.fail(column, exc)
            return None
        self.record[column] = as_cell(value)
        return value

    def set(self, column: str, value: Any) -> None:
        self.record[column] = as_cell(value)

    def fail(self, column: str, exc: BaseException) -> None:
        message = f"{exc.__class__.__name__}: {getattr(exc, 'msg', None) or exc}"
        logger.debug("[%s] %s.%s unavailable: %s", self.host, self.kind, column, message)
        if column in self.record:
            self.record[column] = UNKNOWN
        self.failures.append(PartialFieldFailure(self.host, self.kind, column, message[:200]))


class HostCollector:
    name = ""
    title = ""
    columns: List[str] = []

    def run(self, target: Target, context: CollectContext) -> Tuple[Record, List[PartialFieldFailure]]:
        reader = FieldReader(target.name, self.name, self.columns)
        if "Cluster" in reader.record:
            reader.set("Cluster", target.cluster or "Standalone")
        if "Datacenter" in reader.record:
            reader.set("Datacenter", target.datacenter)
        try:
            self.collect(target.ref, reader, context)
        except Exception as exc:
            # Whatever was read before the failure is kept
            reader.fail("*", exc)
        return reader.record, reader.failures

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        raise NotImplementedError


def find_service(host: Any, key: str) -> Optional[Any]:
    for svc in host.config.service.service or []:
        if svc.key == key:
            return svc
    return None


def service_state(host: Any, key: str) -> str:
    svc = find_service(host, key)
    if svc is None:
        return "Not installed"
    running = "Running" if svc.running else "Stopped"
    return f"{running} (policy {svc.policy})"


def advanced_option(host: Any, key: str) -> Any:
    options = host.configManager.advancedOption.QueryOptions(key)
    if not options:
        return None
    return options[0].value


def _selected_vnic_keys(host: Any, nic_type: str) -> Dict[str, Any]:
    info = host.config.virtualNicManagerInfo
    for net_config in info.netConfig or []:
        if net_config.nicType == nic_type:
            selected = set(net_config.selectedVnic or [])
            return {vnic.key: vnic for vnic in net_config.candidateVnic or [] if vnic.key in selected}
    return {}


def vnic_services(host: Any) -> Dict[str, List[str]]:
    """VMkernel device -> enabled service types."""
    services: Dict[str, List[str]] = {}
    for net_config in host.config.virtualNicManagerInfo.netConfig or []:
        selected = set(net_config.selectedVnic or [])
        for vnic in net_config.candidateVnic or []:
            if vnic.key in selected:
                services.setdefault(vnic.device, []).append(net_config.nicType)
    return services


def management_ip(host: Any) -> Optional[str]:
    for vnic in _selected_vnic_keys(host, "management").values():
        ip = getattr(getattr(vnic.spec, "ip", None), "ipAddress", None)
        if ip:
            return ip
    return None
