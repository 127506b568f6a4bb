import logging
import time
from typing import Dict

from .collectors import CollectContext, Collector
from .models import FetchResult, HostState, PartialFieldFailure, SkipEntry, Target

logger = logging.getLogger("vdocumentation.fetcher")


class HostFetcher:
    """Runs every requested collector against one host, sequentially."""

    def __init__(self, collectors: Dict[str, Collector], context: CollectContext) -> None:
        self.collectors = collectors
        self.context = context

    def fetch(self, target: Target) -> FetchResult:
        result = FetchResult(target=target)

        # Reachability gate on the live state, not the one seen at resolution
        state = HostState.from_host(target.ref) if target.ref is not None else target.state
        target.state = state
        if not state.eligible:
            logger.warning(f"[{target.name}] skipped, connection state {state.value}")
            result.skip = SkipEntry(target.name, state.value, "not connected")
            return result

        start = time.perf_counter()
        for kind, collector in self.collectors.items():
            if self.context.cancel_event.is_set():
                logger.info(f"[{target.name}] cancelled before {kind}")
                result.failures.append(PartialFieldFailure(target.name, kind, "*", "cancelled"))
                continue
            record, failures = collector.run(target, self.context)
            result.records[kind] = record
            result.failures.extend(failures)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"[{target.name}] collected {len(result.records)} report(s) in {duration_ms}ms, "
            f"{len(result.failures)} field(s) unavailable"
        )
        return result
