import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .models import Selector, SelectorPolicy

DEFAULT_ENV_PATH = Path.cwd() / ".env"

REPORT_KIND_FLAGS = [
    ("hardware", "Host hardware inventory"),
    ("configuration", "Host configuration (version, services, NTP, DNS, syslog)"),
    ("networking", "Physical adapters, switches, port groups and VMkernel adapters"),
    ("storage", "Storage adapters, datastores and multipathing"),
    ("compliance", "Host profile compliance check"),
    ("speculative", "Speculative execution mitigations, microcode and BIOS advisories"),
]


@dataclass
class Config:
    # Connection
    server: str
    username: str
    password: str
    port: int = 443
    verify_ssl: bool = True

    # Targets
    selector: Selector = field(default_factory=Selector)
    selector_policy: SelectorPolicy = SelectorPolicy.FIRST_MATCH

    # Report kinds, empty means all
    report_kinds: List[str] = field(default_factory=list)

    # Resilience / performance
    max_concurrency: int = 4
    task_timeout_sec: int = 600
    poll_interval_sec: float = 5.0

    # Advisories
    microcode_advisory: Optional[str] = None
    bios_advisory: Optional[str] = None

    # Output
    folder_path: Path = field(default_factory=Path.cwd)
    export_csv: bool = False
    export_excel: bool = False
    pass_thru: bool = False
    json_report_path: Optional[Path] = None

    debug: bool = False


def _split_names(values: Optional[List[str]]) -> List[str]:
    names: List[str] = []
    for value in values or []:
        names.extend(n.strip() for n in value.split(",") if n.strip())
    return list(dict.fromkeys(names))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vdocumentation",
        description="Document ESXi hosts managed by a vCenter server",
    )

    # Connection
    parser.add_argument("--vcenter", "--server", dest="server", help="vCenter/ESXi hostname")
    parser.add_argument("--username", help="vCenter username")
    parser.add_argument("--password", help="vCenter password")
    parser.add_argument("--port", type=int, default=443, help="vCenter port (default 443)")
    parser.add_argument("--insecure", action="store_true", help="Ignore SSL cert validation")

    # Targets
    parser.add_argument("--esxi", "--vmhost", dest="esxi", action="append", help="Host name(s), comma-separated or repeated")
    parser.add_argument("--cluster", action="append", help="Cluster name(s), comma-separated or repeated")
    parser.add_argument("--datacenter", action="append", help="Datacenter name(s), comma-separated or repeated")
    parser.add_argument(
        "--selector-policy",
        default=SelectorPolicy.FIRST_MATCH.value,
        choices=[p.value for p in SelectorPolicy],
        help="How --esxi/--cluster/--datacenter combine (default first-match)",
    )

    # Report kinds
    for kind, help_text in REPORT_KIND_FLAGS:
        parser.add_argument(f"--{kind}", action="store_true", help=help_text)

    # Resilience
    parser.add_argument("--concurrency", type=int, default=4, help="Max parallel hosts")
    parser.add_argument("--task-timeout", type=int, default=600, help="Deadline (sec) for vCenter tasks")
    parser.add_argument("--poll-interval", type=float, default=5.0, help="Task polling interval (sec)")

    # Advisories
    parser.add_argument("--microcode-advisory", help="CSV path or URL with CPU microcode advisories")
    parser.add_argument("--bios-advisory", help="CSV path or URL with BIOS advisories")

    # Output
    parser.add_argument("--folder-path", help="Output directory for exports")
    parser.add_argument("--export-csv", action="store_true", help="Write one CSV per report kind")
    parser.add_argument("--export-excel", action="store_true", help="Write one XLSX workbook")
    parser.add_argument("--pass-thru", action="store_true", help="Print collected data as JSON instead of tables")
    parser.add_argument("--json-report", help="Path to store the JSON run report")

    parser.add_argument("--env-file", help="Path to .env file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def load_config(argv: Optional[List[str]] = None) -> Config:
    args = build_parser().parse_args(argv)

    # Load Env
    env_path = Path(args.env_file) if args.env_file else DEFAULT_ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)

    server = args.server or os.getenv("VCENTER_HOST") or ""
    server = server.replace("https://", "").replace("http://", "").rstrip("/")
    username = args.username or os.getenv("VCENTER_USER") or ""
    password = args.password or os.getenv("VCENTER_PASS") or ""

    selector = Selector(
        hosts=_split_names(args.esxi),
        clusters=_split_names(args.cluster),
        datacenters=_split_names(args.datacenter),
    )
    report_kinds = [kind for kind, _ in REPORT_KIND_FLAGS if getattr(args, kind)]

    folder_path = Path(args.folder_path) if args.folder_path else Path.cwd()
    if args.export_csv or args.export_excel:
        folder_path.mkdir(parents=True, exist_ok=True)

    return Config(
        server=server,
        username=username,
        password=password,
        port=args.port,
        verify_ssl=not args.insecure,
        selector=selector,
        selector_policy=SelectorPolicy(args.selector_policy),
        report_kinds=report_kinds,
        max_concurrency=max(1, args.concurrency),
        task_timeout_sec=max(1, args.task_timeout),
        poll_interval_sec=max(0.1, args.poll_interval),
        microcode_advisory=args.microcode_advisory or os.getenv("VDOC_MICROCODE_ADVISORY"),
        bios_advisory=args.bios_advisory or os.getenv("VDOC_BIOS_ADVISORY"),
        folder_path=folder_path,
        export_csv=args.export_csv,
        export_excel=args.export_excel,
        pass_thru=args.pass_thru,
        json_report_path=Path(args.json_report) if args.json_report else None,
        debug=args.debug,
    )
