import csv
import logging
from pathlib import Path
from typing import Dict, List

from ..models import ReportCollection

logger = logging.getLogger("vdocumentation.writers.csv")


def csv_filename(prefix: str, collection: ReportCollection) -> str:
    return f"{prefix}{collection.title.replace(' ', '')}.csv"


def write_csvs(collections: Dict[str, ReportCollection], out_dir: Path, prefix: str = "") -> List[Path]:
    """Save one CSV per report kind, honoring the collection's columns. Empty kinds get a header-only file."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for collection in collections.values():
        csv_path = out_dir / csv_filename(prefix, collection)
        with open(csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=collection.columns, extrasaction="ignore", restval="")
            writer.writeheader()
            writer.writerows(collection.records)
        logger.info(f"CSV saved: {csv_path} ({len(collection.records)} rows)")
        written.append(csv_path)
    return written
