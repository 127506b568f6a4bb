from typing import Any, Dict, Optional

from ..advisories import NOT_LISTED, AdvisoryProvider, bios_compliance
from .base import HOSTNAME, CollectContext, FieldReader, HostCollector, joined

NOT_CHECKED = "Not checked"

MITIGATION_FEATURES = {
    "IBRS": "cpuid.IBRS",
    "IBPB": "cpuid.IBPB",
    "STIBP": "cpuid.STIBP",
    "SSBD": "cpuid.SSBD",
    "MD_CLEAR": "cpuid.MDCLEAR",
}


def cpuid_eax(host: Any) -> Optional[int]:
    """EAX of CPUID leaf 1 as reported in hardware.cpuFeature ('0000:0000:...')."""
    for feature in host.hardware.cpuFeature or []:
        if feature.level == 1 and feature.eax:
            return int(feature.eax.replace(":", ""), 2)
    return None


def decode_signature(eax: int) -> Dict[str, Any]:
    stepping = eax & 0xF
    base_model = (eax >> 4) & 0xF
    base_family = (eax >> 8) & 0xF
    ext_model = (eax >> 16) & 0xF
    ext_family = (eax >> 20) & 0xFF
    family = base_family + ext_family if base_family == 0xF else base_family
    model = (ext_model << 4) + base_model if base_family in (0x6, 0xF) else base_model
    return {
        "signature": f"0x{eax & 0x0FFF3FFF:x}",
        "family": f"0x{family:x}",
        "model": f"0x{model:x}",
        "stepping": stepping,
    }


def feature_flags(host: Any) -> Dict[str, str]:
    capabilities = {cap.key: cap.value for cap in host.config.featureCapability or []}
    return {label: ("Yes" if capabilities.get(key) == "1" else "No") for label, key in MITIGATION_FEATURES.items()}


def microcode_status(advisories: AdvisoryProvider, signature: str) -> str:
    advisory = advisories.microcode(signature)
    if advisory is None:
        return NOT_LISTED
    detail = joined([advisory.processor, advisory.status])
    return f"{advisory.revision} ({detail})" if detail else advisory.revision


class SpeculativeExecutionCollector(HostCollector):
    name = "speculative"
    title = "Speculative Execution"
    columns = [
        HOSTNAME,
        "Cluster",
        "Vendor",
        "Model",
        "CPU Model",
        "CPUID Signature",
        "CPU Family",
        "CPU Model Number",
        "CPU Stepping",
        *MITIGATION_FEATURES.keys(),
        "Microcode Advisory",
        "BIOS Version",
        "BIOS Release Date",
        "BIOS Compliance",
    ]

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        advisories = context.advisories
        vendor = reader.read("Vendor", lambda: host.summary.hardware.vendor)
        model = reader.read("Model", lambda: host.summary.hardware.model)
        reader.read("CPU Model", lambda: host.summary.hardware.cpuModel)

        eax = reader.read("CPUID Signature", lambda: cpuid_eax(host))
        signature = None
        if eax is not None:
            decoded = decode_signature(eax)
            signature = decoded["signature"]
            reader.set("CPUID Signature", signature)
            reader.set("CPU Family", decoded["family"])
            reader.set("CPU Model Number", decoded["model"])
            reader.set("CPU Stepping", decoded["stepping"])

        try:
            flags = feature_flags(host)
        except Exception as exc:
            for label in MITIGATION_FEATURES:
                reader.fail(label, exc)
        else:
            for label, value in flags.items():
                reader.set(label, value)

        if not advisories.configured:
            reader.set("Microcode Advisory", NOT_CHECKED)
        elif signature:
            reader.read("Microcode Advisory", lambda: microcode_status(advisories, signature))

        version = reader.read("BIOS Version", lambda: host.hardware.biosInfo.biosVersion)
        released = reader.read("BIOS Release Date", lambda: host.hardware.biosInfo.releaseDate)
        if released is not None:
            reader.set("BIOS Release Date", released.date())

        if not advisories.configured:
            reader.set("BIOS Compliance", NOT_CHECKED)
        elif vendor and model:
            reader.read("BIOS Compliance", lambda: bios_compliance(version, released, advisories.bios(vendor, model)))
