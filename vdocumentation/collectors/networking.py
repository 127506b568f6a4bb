from typing import Any, Dict, List

from .base import HOSTNAME, CollectContext, FieldReader, HostCollector, joined, vnic_services


def _pnic_devices(host: Any) -> Dict[str, str]:
    return {pnic.key: pnic.device for pnic in host.config.network.pnic or []}


def physical_adapters(host: Any) -> List[str]:
    out = []
    for pnic in host.config.network.pnic or []:
        speed = f"{pnic.linkSpeed.speedMb} Mb" if pnic.linkSpeed else "down"
        out.append(f"{pnic.device} ({speed}, {pnic.driver or 'unknown driver'})")
    return out


def standard_switches(host: Any) -> List[str]:
    devices = _pnic_devices(host)
    out = []
    for vswitch in host.config.network.vswitch or []:
        uplinks = joined((devices.get(key, key) for key in vswitch.pnic or []), "/") or "no uplinks"
        out.append(f"{vswitch.name} [{uplinks}] MTU {vswitch.mtu}")
    return out


def distributed_switches(host: Any) -> List[str]:
    return [proxy.dvsName for proxy in host.config.network.proxySwitch or []]


def port_groups(host: Any) -> List[str]:
    return [f"{pg.spec.name} (VLAN {pg.spec.vlanId})" for pg in host.config.network.portgroup or []]


def vmkernel_adapters(host: Any) -> List[str]:
    services = vnic_services(host)
    out = []
    for vnic in host.config.network.vnic or []:
        ip = vnic.spec.ip
        address = "dhcp" if ip.dhcp else f"{ip.ipAddress}/{ip.subnetMask}"
        enabled = joined(services.get(vnic.device, []), "/") or "none"
        out.append(f"{vnic.device} {address} MTU {vnic.spec.mtu} [{enabled}]")
    return out


def switch_neighbours(host: Any) -> List[str]:
    out = []
    hints = host.configManager.networkSystem.QueryNetworkHint()
    for hint in hints or []:
        cdp = getattr(hint, "connectedSwitchPort", None)
        lldp = getattr(hint, "lldpInfo", None)
        if cdp is not None:
            out.append(f"{hint.device}: {cdp.devId} {cdp.portId} (CDP)")
        elif lldp is not None:
            out.append(f"{hint.device}: {lldp.chassisId} {lldp.portId} (LLDP)")
    return out


class NetworkingCollector(HostCollector):
    name = "networking"
    title = "Networking"
    columns = [
        HOSTNAME,
        "Cluster",
        "Physical Adapters",
        "Standard Switches",
        "Distributed Switches",
        "Port Groups",
        "VMkernel Adapters",
        "Switch Neighbours",
    ]

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        reader.read("Physical Adapters", lambda: physical_adapters(host))
        reader.read("Standard Switches", lambda: standard_switches(host))
        reader.read("Distributed Switches", lambda: distributed_switches(host))
        reader.read("Port Groups", lambda: port_groups(host))
        reader.read("VMkernel Adapters", lambda: vmkernel_adapters(host))
        # QueryNetworkHint is unsupported on some NIC drivers
        reader.read("Switch Neighbours", lambda: switch_neighbours(host))
