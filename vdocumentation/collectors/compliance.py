import logging
from typing import Any, List, Optional

from ..tasks import wait_for_task
from .base import HOSTNAME, CollectContext, FieldReader, HostCollector

logger = logging.getLogger("vdocumentation.collectors.compliance")

STATUS_LABELS = {
    "compliant": "Compliant",
    "nonCompliant": "Non-compliant",
    "unknown": "Unknown",
    "running": "Running",
}


def associated_profile(host: Any, content: Any) -> Optional[Any]:
    if content is None:
        raise ValueError("host profile lookup needs a vCenter session")
    profiles = content.hostProfileManager.FindAssociatedProfile(host)
    return profiles[0] if profiles else None


def failure_messages(result: Any) -> List[str]:
    messages = []
    for failure in getattr(result, "failure", None) or []:
        message = getattr(getattr(failure, "message", None), "message", None)
        messages.append(message or str(getattr(failure, "failureType", "failure")))
    return messages


class ComplianceCollector(HostCollector):
    name = "compliance"
    title = "Compliance"
    columns = [
        HOSTNAME,
        "Cluster",
        "Host Profile",
        "Compliance Status",
        "Failures",
        "Checked At",
    ]

    def check(self, host: Any, profile: Any, context: CollectContext) -> Optional[Any]:
        manager = context.content.complianceManager
        task = manager.CheckCompliance_Task(profile=[profile], entity=[host])
        logger.info("[%s] compliance check started for profile %s", host.name, profile.name)
        results = wait_for_task(
            task,
            timeout=context.task_timeout,
            poll_interval=context.poll_interval,
            cancel_event=context.cancel_event,
        )
        for result in results or []:
            entity = getattr(result, "entity", None)
            if entity is None or entity == host:
                return result
        return None

    def collect(self, host: Any, reader: FieldReader, context: CollectContext) -> None:
        failed = len(reader.failures)
        profile = reader.read("Host Profile", lambda: associated_profile(host, context.content))
        if len(reader.failures) > failed:
            return
        if profile is None:
            reader.set("Host Profile", "None")
            reader.set("Compliance Status", "No host profile")
            reader.set("Failures", [])
            return
        reader.set("Host Profile", profile.name)

        result = reader.read("Compliance Status", lambda: self.check(host, profile, context))
        if result is None:
            return
        reader.set("Compliance Status", STATUS_LABELS.get(result.complianceStatus, result.complianceStatus))
        reader.set("Failures", failure_messages(result))
        reader.set("Checked At", getattr(result, "checkTime", None))
