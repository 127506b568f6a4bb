from datetime import datetime, timezone
from typing import Any, Optional

from ..models import HostState
from .base import HOSTNAME, CollectContext, FieldReader, HostCollector, advanced_option, joined, service_state


def mask_license_key(key: Optional[str]) -> Optional[str]:
    if not key:
        return key
    parts = key.split("-")
    return "-".join(["*****"] * (len(parts) - 1) + parts[-1:])


def _assigned_license(host: Any, content: Any) -> Optional[Any]:
    if content is None:
        return None
    manager = content.licenseManager.licenseAssignmentManager
    assignments = manager.QueryAssignedLicenses(entityId=host._moId)
    if not assignments:
        return None
    return assignments[0].assignedLicense


def _uptime_days(host: Any) -> Optional[float]:
    boot = host.runtime.bootTime
    if boot is None:
        return None
    if boot.tzinfo is None:
        boot = boot.replace(tzinfo=timezone.utc)
    return round((datetime.now(timezone.utc) - boot).total_seconds() / 86400, 1)


def _fqdn(host: Any) -> str:
    dns = host.config.network.dnsConfig
    if dns.domainName:
        return f"{dns.hostName}.{dns.domainName}"
    return dns.hostName


class ConfigurationCollector(HostCollector):
    name = "configuration"
    title = "Configuration"
    columns = [
        HOSTNAME,
        "Connection State",
        "ESXi Version",
        "Build",
        "Full Name",
        "Image Profile",
        "Acceptance Level",
        "License Edition",
        "License Key",
        "Boot Time",
        "Uptime (Days)",
        "FQDN",
        "DNS Servers",
        "Search Domains",
        "Time Zone",
        "NTP Servers",
        "NTP Service",
        "SSH Service",
        "ESXi Shell Service",
        "Lockdown Mode",
        "Syslog Server",
        "Scratch Location",
    ]

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        reader.read("Connection State", lambda: HostState.from_host(host).value)
        reader.read("ESXi Version", lambda: host.config.product.version)
        reader.read("Build", lambda: host.config.product.build)
        reader.read("Full Name", lambda: host.config.product.fullName)

        reader.read("Image Profile", lambda: host.configManager.imageConfigManager.HostImageConfigGetProfile().name)
        reader.read("Acceptance Level", lambda: host.configManager.imageConfigManager.HostImageConfigGetAcceptance())

        license_info = reader.read("License Edition", lambda: _assigned_license(host, context.content))
        if license_info is not None:
            reader.set("License Edition", license_info.name)
            reader.set("License Key", mask_license_key(license_info.licenseKey))

        reader.read("Boot Time", lambda: host.runtime.bootTime)
        reader.read("Uptime (Days)", lambda: _uptime_days(host))
        reader.read("FQDN", lambda: _fqdn(host))
        reader.read("DNS Servers", lambda: host.config.network.dnsConfig.address or [])
        reader.read("Search Domains", lambda: host.config.network.dnsConfig.searchDomain or [])
        reader.read("Time Zone", lambda: host.config.dateTimeInfo.timeZone.name)
        reader.read("NTP Servers", lambda: joined(host.config.dateTimeInfo.ntpConfig.server or []) or "None")
        reader.read("NTP Service", lambda: service_state(host, "ntpd"))
        reader.read("SSH Service", lambda: service_state(host, "TSM-SSH"))
        reader.read("ESXi Shell Service", lambda: service_state(host, "TSM"))
        reader.read("Lockdown Mode", lambda: host.config.lockdownMode)
        reader.read("Syslog Server", lambda: advanced_option(host, "Syslog.global.logHost") or "None")
        reader.read("Scratch Location", lambda: advanced_option(host, "ScratchConfig.CurrentScratchLocation"))
