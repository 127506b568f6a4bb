from typing import Any, Optional

from .base import HOSTNAME, CollectContext, FieldReader, HostCollector, management_ip

SERIAL_IDENTIFIERS = ("SerialNumberTag", "ServiceTag", "EnclosureSerialNumberTag")


def serial_number(host: Any) -> Optional[str]:
    system_info = host.hardware.systemInfo
    serial = getattr(system_info, "serialNumber", None)
    if serial:
        return serial
    for ident in getattr(system_info, "otherIdentifyingInfo", None) or []:
        if ident.identifierType.key in SERIAL_IDENTIFIERS and ident.identifierValue:
            return ident.identifierValue.strip()
    return None


class HardwareCollector(HostCollector):
    name = "hardware"
    title = "Hardware"
    columns = [
        HOSTNAME,
        "Management IP",
        "Datacenter",
        "Cluster",
        "Vendor",
        "Model",
        "Serial Number",
        "CPU Model",
        "CPU Sockets",
        "CPU Cores",
        "CPU Threads",
        "CPU Speed (MHz)",
        "Hyper-Threading",
        "Max EVC Mode",
        "Memory (GB)",
        "Power Policy",
        "NIC Count",
        "HBA Count",
        "BIOS Vendor",
        "BIOS Version",
        "BIOS Release Date",
    ]

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        reader.read("Management IP", lambda: management_ip(host))
        reader.read("Vendor", lambda: host.summary.hardware.vendor)
        reader.read("Model", lambda: host.summary.hardware.model)
        reader.read("Serial Number", lambda: serial_number(host))
        reader.read("CPU Model", lambda: host.summary.hardware.cpuModel)
        reader.read("CPU Sockets", lambda: host.summary.hardware.numCpuPkgs)
        reader.read("CPU Cores", lambda: host.summary.hardware.numCpuCores)
        reader.read("CPU Threads", lambda: host.summary.hardware.numCpuThreads)
        reader.read("CPU Speed (MHz)", lambda: host.summary.hardware.cpuMhz)
        reader.read("Hyper-Threading", lambda: "Active" if host.config.hyperThread.active else "Inactive")
        reader.read("Max EVC Mode", lambda: host.summary.maxEVCModeKey or "None")
        reader.read("Memory (GB)", lambda: round(host.hardware.memorySize / 1024 ** 3, 2))
        reader.read("Power Policy", lambda: host.config.powerSystemInfo.currentPolicy.shortName)
        reader.read("NIC Count", lambda: len(host.config.network.pnic or []))
        reader.read("HBA Count", lambda: len(host.config.storageDevice.hostBusAdapter or []))

        reader.read("BIOS Vendor", lambda: host.hardware.biosInfo.vendor)
        reader.read("BIOS Version", lambda: host.hardware.biosInfo.biosVersion)
        reader.read("BIOS Release Date", lambda: _release_date(host))


def _release_date(host: Any):
    released = host.hardware.biosInfo.releaseDate
    return released.date() if released else None
