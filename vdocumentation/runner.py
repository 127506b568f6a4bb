import concurrent.futures
import json
import logging
import sys
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO

from .advisories import AdvisoryProvider, build_provider
from .aggregator import Aggregator
from .collectors import CollectContext, build_collectors
from .config import Config
from .errors import ExportDependencyMissing
from .fetcher import HostFetcher
from .inventory import InventoryService, VCenterInventory
from .models import FetchResult, ReportCollection, RunResult, SkipEntry, Target
from .resolver import resolve
from .session import VCenterSession
from .writers import ReportXlsxWriter, print_collections, print_summary, write_csvs

logger = logging.getLogger("vdocumentation.runner")


class Runner:
    """
    One documentation run: session, resolution, parallel fetch, aggregation, exports.

    Only VCenterConnectionError (and SelectorConflict, raised before any
    connection is made) leave execute(); every other problem ends up in the
    RunResult as a skip, a warning or a field failure.
    """

    def __init__(
        self,
        config: Config,
        session: Optional[Any] = None,
        inventory: Optional[InventoryService] = None,
        advisories: Optional[AdvisoryProvider] = None,
        stream: Optional[TextIO] = None,
    ):
        self.config = config
        self.session = session
        self.inventory = inventory
        self.advisories = advisories
        self.stream = stream or sys.stdout
        self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.cancel_event = threading.Event()
        self.result = RunResult()

    def _open_session(self):
        if self.session is None:
            self.session = VCenterSession.from_config(self.config).connect()
        self.session.ensure_active()
        if self.inventory is None:
            self.inventory = VCenterInventory(self.session)

    def _context(self) -> CollectContext:
        advisories = self.advisories
        if advisories is None:
            advisories = build_provider(self.config.microcode_advisory, self.config.bios_advisory)
        return CollectContext(
            content=getattr(self.session, "content", None),
            advisories=advisories,
            task_timeout=self.config.task_timeout_sec,
            poll_interval=self.config.poll_interval_sec,
            cancel_event=self.cancel_event,
        )

    def fetch_all(self, targets: List[Target], fetcher: HostFetcher, aggregator: Aggregator):
        """Fan out over targets; a host that blows up is skipped, never fatal."""
        if not targets:
            return
        workers = max(1, min(self.config.max_concurrency, len(targets)))
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=workers)
        try:
            future_to_target = {executor.submit(fetcher.fetch, t): t for t in targets}
            for future in concurrent.futures.as_completed(future_to_target):
                target = future_to_target[future]
                try:
                    aggregator.add(future.result())
                except Exception as exc:
                    logger.error(f"[{target.name}] fetch EXCEPTION: {exc}")
                    skip = SkipEntry(target.name, target.state.value, f"error: {exc}")
                    aggregator.add(FetchResult(target=target, skip=skip))
        except KeyboardInterrupt:
            logger.warning("Interrupted, cancelling outstanding hosts")
            self.cancel_event.set()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        finally:
            executor.shutdown(wait=True)

    def export(self, collections: Dict[str, ReportCollection]):
        folder = self.config.folder_path
        prefix = f"{self.run_id}-"
        want_csv = self.config.export_csv

        if self.config.export_excel:
            xlsx_path = folder / f"{prefix}vDocumentation.xlsx"
            try:
                summary = ReportXlsxWriter().write(collections, xlsx_path)
            except ExportDependencyMissing as exc:
                message = f"Excel export unavailable ({exc}), falling back to CSV"
                logger.warning(message)
                self.result.export_warnings.append(message)
                want_csv = True
            else:
                self.result.exports.append(str(xlsx_path))
                logger.info(f"XLSX saved: {xlsx_path}")
                for item in summary:
                    logger.debug(f"{item['sheet']}: cols={item['columns']} rows={item['rows']}")

        if want_csv:
            self.result.exports.extend(str(p) for p in write_csvs(collections, folder, prefix))

    def save_report(self):
        path = self.config.json_report_path
        if path is None:
            return
        try:
            report = {"run_id": self.run_id, "server": self.config.server, **self.result.as_dict()}
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, default=str)
            logger.info(f"Report saved to {path}")
        except OSError as e:
            logger.error(f"Failed to save report: {e}")

    def print_results(self, duration: float):
        if self.config.pass_thru:
            print(json.dumps(self.result.as_dict(), indent=2, default=str), file=self.stream)
            return
        print_collections(self.result.collections, self.stream)
        print_summary(self.result.skipped, self.result.warnings, self.result.failures, self.stream)

        print("\n=== vDocumentation Run Summary ===", file=self.stream)
        print(f"Run ID: {self.run_id}", file=self.stream)
        print(f"Hosts Targeted: {len(self.result.targets)}", file=self.stream)
        print(f"Hosts Skipped: {len(self.result.skipped)}", file=self.stream)
        for collection in self.result.collections.values():
            print(f"{collection.title}: rows={len(collection)}", file=self.stream)
        for path in self.result.exports:
            print(f"Export: {path}", file=self.stream)
        for warning in self.result.export_warnings:
            print(f"Warning: {warning}", file=self.stream)
        print(f"Duration: {duration}s", file=self.stream)
        print("=================================\n", file=self.stream)

    def execute(self) -> RunResult:
        start_time = time.time()
        collectors = build_collectors(self.config.report_kinds)
        logger.info(f"Report kinds: {', '.join(collectors)}")
        self.config.selector.check(self.config.selector_policy)

        try:
            self._open_session()
            targets, warnings = resolve(self.config.selector, self.inventory, self.config.selector_policy)
            self.result.warnings = warnings
            self.result.targets = [t.name for t in targets]

            aggregator = Aggregator(collectors, [t.moid for t in targets])
            fetcher = HostFetcher(collectors, self._context())
            self.fetch_all(targets, fetcher, aggregator)
        finally:
            if self.session is not None:
                self.session.close()

        self.result.collections = aggregator.collections()
        self.result.skipped = aggregator.skipped()
        self.result.failures = aggregator.failures()

        if self.config.export_csv or self.config.export_excel:
            self.export(self.result.collections)

        self.save_report()
        self.print_results(round(time.time() - start_time, 2))
        return self.result
