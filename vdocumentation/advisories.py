"""
Advisory lookup tables for CPU microcode and BIOS levels.

Tables come from CSV files or http(s) URLs and sit behind the
AdvisoryProvider interface so collectors never see the source format.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests
from cachetools import TTLCache

from .errors import AdvisoryError

logger = logging.getLogger("vdocumentation.advisories")

COMPLIANT = "Compliant"
NON_COMPLIANT = "Non-compliant"
NOT_LISTED = "Not listed"
UNKNOWN = "Unknown"

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d.%m.%Y", "%Y/%m/%d")


@dataclass(frozen=True)
class MicrocodeAdvisory:
    signature: str
    processor: str
    revision: str
    status: str = ""


@dataclass(frozen=True)
class BiosAdvisory:
    vendor: str
    model: str
    min_version: str = ""
    min_release_date: Optional[date] = None


class AdvisoryProvider(Protocol):
    configured: bool

    def microcode(self, signature: str) -> Optional[MicrocodeAdvisory]:
        ...

    def bios(self, vendor: str, model: str) -> Optional[BiosAdvisory]:
        ...


class NullAdvisoryProvider:
    """Used when no advisory source is configured."""

    configured = False

    def microcode(self, signature: str) -> Optional[MicrocodeAdvisory]:
        return None

    def bios(self, vendor: str, model: str) -> Optional[BiosAdvisory]:
        return None


class _ThreadSafeTTLCache:
    def __init__(self, *, maxsize: int, ttl: int) -> None:
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = Lock()

    def get(self, key: str, default=None):
        with self._lock:
            return self._cache.get(key, default)

    def __setitem__(self, key: str, value) -> None:
        with self._lock:
            self._cache[key] = value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


_TABLE_CACHE = _ThreadSafeTTLCache(maxsize=16, ttl=3600)


def reset_cache() -> None:
    _TABLE_CACHE.clear()


def normalize_signature(value: Any) -> str:
    """'0x50654', '50654h' and '0x00050654' all become '0x50654'."""
    text = str(value or "").strip().lower()
    if not text:
        return ""
    text = text.removesuffix("h").removeprefix("0x")
    try:
        return f"0x{int(text, 16):x}"
    except ValueError:
        return ""


def _norm(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip().lower()


def _norm_key(value: str) -> str:
    return _norm(value.replace("\ufeff", "")).replace(" ", "_")


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _version_key(version: str) -> List[Tuple[int, Any]]:
    key: List[Tuple[int, Any]] = []
    for token in re.findall(r"\d+|[A-Za-z]+", version or ""):
        if token.isdigit():
            key.append((1, int(token)))
        else:
            key.append((0, token.lower()))
    return key


def compare_versions(left: str, right: str) -> int:
    a, b = _version_key(left), _version_key(right)
    if a == b:
        return 0
    return -1 if a < b else 1


def bios_compliance(version: Any, release_date: Any, advisory: Optional[BiosAdvisory]) -> str:
    """Minimum version wins when the advisory names one, otherwise the release date decides."""
    if advisory is None:
        return NOT_LISTED
    if advisory.min_version:
        if not version:
            return UNKNOWN
        return COMPLIANT if compare_versions(str(version), advisory.min_version) >= 0 else NON_COMPLIANT
    if advisory.min_release_date:
        host_date = parse_date(release_date)
        if host_date is None:
            return UNKNOWN
        return COMPLIANT if host_date >= advisory.min_release_date else NON_COMPLIANT
    return UNKNOWN


def _read_source(source: str, timeout: int = 30) -> str:
    cached = _TABLE_CACHE.get(source)
    if cached is not None:
        return cached
    if source.startswith(("http://", "https://")):
        try:
            resp = requests.get(source, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise AdvisoryError(f"Unable to download {source}: {exc}") from exc
        text = resp.text
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            raise AdvisoryError(f"Unable to read {source}: {exc}") from exc
    _TABLE_CACHE[source] = text
    return text


def _rows(text: str) -> List[Dict[str, str]]:
    sample = text[:2048]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;|\t")
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    rows = []
    for raw in reader:
        rows.append({_norm_key(k): (v or "").strip() for k, v in raw.items() if k})
    return rows


def _pick(row: Dict[str, str], *names: str) -> str:
    for name in names:
        if row.get(name):
            return row[name]
    return ""


def parse_microcode_table(text: str) -> Dict[str, MicrocodeAdvisory]:
    table: Dict[str, MicrocodeAdvisory] = {}
    for row in _rows(text):
        signature = normalize_signature(_pick(row, "cpuid", "signature", "cpuid_signature"))
        if not signature:
            continue
        table[signature] = MicrocodeAdvisory(
            signature=signature,
            processor=_pick(row, "processor", "description", "codename", "cpu"),
            revision=_pick(row, "microcode", "revision", "microcode_revision", "new_microcode"),
            status=_pick(row, "status", "production_status"),
        )
    return table


def parse_bios_table(text: str) -> Dict[Tuple[str, str], BiosAdvisory]:
    table: Dict[Tuple[str, str], BiosAdvisory] = {}
    for row in _rows(text):
        vendor = _pick(row, "vendor", "manufacturer")
        model = _pick(row, "model", "system")
        if not vendor or not model:
            continue
        table[(_norm(vendor), _norm(model))] = BiosAdvisory(
            vendor=vendor,
            model=model,
            min_version=_pick(row, "bios_version", "min_bios_version", "version"),
            min_release_date=parse_date(_pick(row, "release_date", "bios_release_date", "date")),
        )
    return table


class CsvAdvisoryProvider:
    """Advisory tables read from CSV files or URLs.

    Each table loads on its own. A source that cannot be read leaves its
    table empty and makes only that table's lookups raise ``AdvisoryError``.
    """

    configured = True

    def __init__(self, microcode_source: Optional[str] = None, bios_source: Optional[str] = None) -> None:
        self.microcode_source = microcode_source
        self.bios_source = bios_source
        self._microcode: Optional[Dict[str, MicrocodeAdvisory]] = None
        self._bios: Optional[Dict[Tuple[str, str], BiosAdvisory]] = None
        self._errors: Dict[str, str] = {}
        self._lock = Lock()

    def _load_table(self, table: str, source: Optional[str], parse) -> dict:
        if not source:
            return {}
        try:
            rows = parse(_read_source(source))
        except AdvisoryError as exc:
            self._errors[table] = str(exc)
            logger.warning("%s advisories unavailable, fields will be %s: %s", table.capitalize(), UNKNOWN, exc)
            return {}
        logger.info("Loaded %s %s advisories", len(rows), table)
        return rows

    def load(self) -> "CsvAdvisoryProvider":
        """Read both tables now so source errors surface before collection starts."""
        with self._lock:
            if self._microcode is None:
                self._microcode = self._load_table("microcode", self.microcode_source, parse_microcode_table)
            if self._bios is None:
                self._bios = self._load_table("bios", self.bios_source, parse_bios_table)
        return self

    def microcode(self, signature: str) -> Optional[MicrocodeAdvisory]:
        if self._microcode is None:
            self.load()
        if "microcode" in self._errors:
            raise AdvisoryError(self._errors["microcode"])
        return self._microcode.get(normalize_signature(signature))

    def bios(self, vendor: str, model: str) -> Optional[BiosAdvisory]:
        if self._bios is None:
            self.load()
        if "bios" in self._errors:
            raise AdvisoryError(self._errors["bios"])
        return self._bios.get((_norm(vendor), _norm(model)))


def build_provider(microcode_source: Optional[str], bios_source: Optional[str]) -> AdvisoryProvider:
    if not microcode_source and not bios_source:
        return NullAdvisoryProvider()
    return CsvAdvisoryProvider(microcode_source, bios_source).load()
