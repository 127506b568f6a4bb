from collections import Counter
from typing import Any, List, Optional

from pyVmomi import vim

from .base import HOSTNAME, CollectContext, FieldReader, HostCollector


def format_wwn(value: Optional[int]) -> str:
    if not value:
        return ""
    raw = f"{value:016x}"
    return ":".join(raw[i:i + 2] for i in range(0, len(raw), 2))


def storage_adapters(host: Any) -> List[str]:
    out = []
    for hba in host.config.storageDevice.hostBusAdapter or []:
        out.append(f"{hba.device} ({hba.model}, {hba.driver}, {hba.status})")
    return out


def iscsi_names(host: Any) -> List[str]:
    return [
        f"{hba.device}: {hba.iScsiName}"
        for hba in host.config.storageDevice.hostBusAdapter or []
        if isinstance(hba, vim.host.InternetScsiHba)
    ]


def fc_wwpns(host: Any) -> List[str]:
    return [
        f"{hba.device}: {format_wwn(hba.portWorldWideName)}"
        for hba in host.config.storageDevice.hostBusAdapter or []
        if isinstance(hba, vim.host.FibreChannelHba)
    ]


def datastores(host: Any) -> List[str]:
    return sorted(ds.name for ds in host.datastore or [])


def multipath_policies(host: Any) -> str:
    multipath = host.config.storageDevice.multipathInfo
    if multipath is None:
        return "None"
    counts = Counter(lun.policy.policy for lun in multipath.lun or [] if lun.policy)
    return ", ".join(f"{policy} x{count}" for policy, count in sorted(counts.items())) or "None"


class StorageCollector(HostCollector):
    name = "storage"
    title = "Storage"
    columns = [
        HOSTNAME,
        "Cluster",
        "Storage Adapters",
        "iSCSI Names",
        "FC WWPNs",
        "Datastores",
        "LUN Count",
        "Multipath Policies",
    ]

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        reader.read("Storage Adapters", lambda: storage_adapters(host))
        reader.read("iSCSI Names", lambda: iscsi_names(host))
        reader.read("FC WWPNs", lambda: fc_wwpns(host))
        reader.read("Datastores", lambda: datastores(host))
        reader.read("LUN Count", lambda: len(host.config.storageDevice.scsiLun or []))
        reader.read("Multipath Policies", lambda: multipath_policies(host))
