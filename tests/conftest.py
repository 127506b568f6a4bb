from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from vdocumentation.advisories import reset_cache
from vdocumentation.errors import VCenterConnectionError

# CPUID leaf 1 EAX of a Cascade Lake part (signature 0x50654)
CASCADE_LAKE_EAX = "0000:0000:0000:0101:0000:0110:0101:0100"


def build_host(name, moid=None, state="connected", maintenance=False):
    """In-memory stand-in for a vim.HostSystem with the properties the collectors read."""
    vmk0 = SimpleNamespace(
        key="key-vim.host.VirtualNic-vmk0",
        device="vmk0",
        spec=SimpleNamespace(
            ip=SimpleNamespace(dhcp=False, ipAddress=f"10.0.0.{len(name)}", subnetMask="255.255.255.0"),
            mtu=1500,
        ),
    )
    vmk1 = SimpleNamespace(
        key="key-vim.host.VirtualNic-vmk1",
        device="vmk1",
        spec=SimpleNamespace(ip=SimpleNamespace(dhcp=False, ipAddress="10.1.0.5", subnetMask="255.255.255.0"), mtu=9000),
    )
    services = {
        "ntpd": SimpleNamespace(key="ntpd", running=True, policy="on"),
        "TSM-SSH": SimpleNamespace(key="TSM-SSH", running=False, policy="off"),
    }
    options = {
        "Syslog.global.logHost": [SimpleNamespace(value="udp://syslog.lab.local:514")],
        "ScratchConfig.CurrentScratchLocation": [SimpleNamespace(value="/vmfs/volumes/datastore1/.locker")],
    }

    return SimpleNamespace(
        name=name,
        _moId=moid or f"host-{name}",
        runtime=SimpleNamespace(
            connectionState=state,
            inMaintenanceMode=maintenance,
            bootTime=datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc),
        ),
        summary=SimpleNamespace(
            hardware=SimpleNamespace(
                vendor="Dell Inc.",
                model="PowerEdge R640",
                cpuModel="Intel(R) Xeon(R) Gold 6248 CPU @ 2.50GHz",
                numCpuPkgs=2,
                numCpuCores=40,
                numCpuThreads=80,
                cpuMhz=2494,
            ),
            maxEVCModeKey="intel-cascadelake",
        ),
        hardware=SimpleNamespace(
            memorySize=512 * 1024 ** 3,
            systemInfo=SimpleNamespace(serialNumber=f"SN-{name}", otherIdentifyingInfo=[]),
            biosInfo=SimpleNamespace(
                vendor="Dell Inc.",
                biosVersion="2.15.1",
                releaseDate=datetime(2022, 6, 14),
            ),
            cpuFeature=[SimpleNamespace(level=0, eax="0"), SimpleNamespace(level=1, eax=CASCADE_LAKE_EAX)],
        ),
        config=SimpleNamespace(
            hyperThread=SimpleNamespace(active=True),
            powerSystemInfo=SimpleNamespace(currentPolicy=SimpleNamespace(shortName="dynamic")),
            product=SimpleNamespace(version="7.0.3", build="21930508", fullName="VMware ESXi 7.0.3 build-21930508"),
            lockdownMode="lockdownDisabled",
            dateTimeInfo=SimpleNamespace(
                timeZone=SimpleNamespace(name="UTC"),
                ntpConfig=SimpleNamespace(server=["0.pool.ntp.org", "1.pool.ntp.org"]),
            ),
            service=SimpleNamespace(service=list(services.values())),
            featureCapability=[
                SimpleNamespace(key="cpuid.IBRS", value="1"),
                SimpleNamespace(key="cpuid.IBPB", value="1"),
                SimpleNamespace(key="cpuid.STIBP", value="1"),
                SimpleNamespace(key="cpuid.SSBD", value="1"),
                SimpleNamespace(key="cpuid.MDCLEAR", value="0"),
            ],
            virtualNicManagerInfo=SimpleNamespace(
                netConfig=[
                    SimpleNamespace(nicType="management", selectedVnic=[vmk0.key], candidateVnic=[vmk0, vmk1]),
                    SimpleNamespace(nicType="vmotion", selectedVnic=[vmk1.key], candidateVnic=[vmk0, vmk1]),
                ]
            ),
            network=SimpleNamespace(
                dnsConfig=SimpleNamespace(
                    hostName=name.split(".")[0],
                    domainName="lab.local",
                    address=["10.0.0.2", "10.0.0.3"],
                    searchDomain=["lab.local"],
                ),
                pnic=[
                    SimpleNamespace(key="key-vim.host.PhysicalNic-vmnic0", device="vmnic0", linkSpeed=SimpleNamespace(speedMb=10000), driver="i40en"),
                    SimpleNamespace(key="key-vim.host.PhysicalNic-vmnic1", device="vmnic1", linkSpeed=None, driver="i40en"),
                ],
                vswitch=[SimpleNamespace(name="vSwitch0", pnic=["key-vim.host.PhysicalNic-vmnic0"], mtu=1500)],
                proxySwitch=[SimpleNamespace(dvsName="DSwitch-Prod")],
                portgroup=[SimpleNamespace(spec=SimpleNamespace(name="Management Network", vlanId=10))],
                vnic=[vmk0, vmk1],
            ),
            storageDevice=SimpleNamespace(
                hostBusAdapter=[SimpleNamespace(device="vmhba0", model="PERC H730P", driver="lsi_mr3", status="online")],
                scsiLun=[SimpleNamespace(), SimpleNamespace(), SimpleNamespace()],
                multipathInfo=SimpleNamespace(
                    lun=[
                        SimpleNamespace(policy=SimpleNamespace(policy="VMW_PSP_RR")),
                        SimpleNamespace(policy=SimpleNamespace(policy="VMW_PSP_RR")),
                        SimpleNamespace(policy=SimpleNamespace(policy="VMW_PSP_FIXED")),
                    ]
                ),
            ),
        ),
        configManager=SimpleNamespace(
            imageConfigManager=SimpleNamespace(
                HostImageConfigGetProfile=lambda: SimpleNamespace(name="ESXi-7.0U3n-standard"),
                HostImageConfigGetAcceptance=lambda: "partner",
            ),
            advancedOption=SimpleNamespace(QueryOptions=lambda key: options.get(key, [])),
            networkSystem=SimpleNamespace(
                QueryNetworkHint=lambda: [
                    SimpleNamespace(
                        device="vmnic0",
                        connectedSwitchPort=SimpleNamespace(devId="core-sw01", portId="Ethernet1/10"),
                        lldpInfo=None,
                    ),
                    SimpleNamespace(
                        device="vmnic1",
                        connectedSwitchPort=None,
                        lldpInfo=SimpleNamespace(chassisId="00:11:22:33:44:55", portId="ge-0/0/1"),
                    ),
                ]
            ),
        ),
        datastore=[SimpleNamespace(name="vsanDatastore"), SimpleNamespace(name="datastore1")],
    )


class FakeInventory:
    """InventoryService over plain dicts; names match case-insensitively."""

    def __init__(self, hosts, clusters=None, datacenters=None, unreachable=False, broken=()):
        self.hosts = list(hosts)
        self.clusters = clusters or {}
        self.datacenters = datacenters or {}
        self.unreachable = unreachable
        # names whose lookup fails with a non-connection fault
        self.broken = {b.lower() for b in broken}

    def _check(self, name=None):
        if self.unreachable:
            raise VCenterConnectionError("vCenter unreachable: connection refused")
        if name is not None and name.lower() in self.broken:
            raise RuntimeError(f"ManagedObjectNotFound: {name} was deleted")

    @staticmethod
    def _lookup(groups, name):
        for key, members in groups.items():
            if key.lower() == name.lower():
                return list(members)
        return None

    def all_hosts(self):
        self._check()
        return list(self.hosts)

    def find_host(self, name):
        self._check(name)
        for host in self.hosts:
            if host.name.lower() == name.lower():
                return host
        return None

    def hosts_in_cluster(self, name):
        self._check(name)
        return self._lookup(self.clusters, name)

    def hosts_in_datacenter(self, name):
        self._check(name)
        return self._lookup(self.datacenters, name)


class FakeSession:
    def __init__(self, content=None, active=True):
        self.content = content
        self.active = active
        self.closed = False

    def ensure_active(self):
        if not self.active:
            raise VCenterConnectionError("No active session to vcenter.lab.local")

    def close(self):
        self.closed = True


@pytest.fixture
def host_factory():
    return build_host


@pytest.fixture
def inventory_factory():
    return FakeInventory


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture(autouse=True)
def _clear_advisory_cache():
    reset_cache()
    yield
    reset_cache()
