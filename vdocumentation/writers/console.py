import sys
from typing import Dict, List, TextIO

from ..models import PartialFieldFailure, ReportCollection, ResolutionWarning, SkipEntry


def print_collection(collection: ReportCollection, stream: TextIO = sys.stdout) -> None:
    """List-style output: one block per host, one line per field."""
    print(f"\n=== {collection.title} ===", file=stream)
    if not collection.records:
        print("(no records)", file=stream)
        return
    width = max(len(c) for c in collection.columns)
    for row in collection.records:
        for col in collection.columns:
            print(f"{col:<{width}} : {row.get(col, '')}", file=stream)
        print("", file=stream)


def print_collections(collections: Dict[str, ReportCollection], stream: TextIO = sys.stdout) -> None:
    for collection in collections.values():
        print_collection(collection, stream)


def print_summary(
    skipped: List[SkipEntry],
    warnings: List[ResolutionWarning],
    failures: List[PartialFieldFailure],
    stream: TextIO = sys.stdout,
) -> None:
    if warnings:
        print("\n=== Selector Warnings ===", file=stream)
        for w in warnings:
            print(f"{w.kind:<10} | {w.name:<30} | {w.message}", file=stream)
    if skipped:
        print("\n=== Skipped Hosts ===", file=stream)
        print(f"{'Host':<30} | {'State':<15} | Reason", file=stream)
        print("-" * 70, file=stream)
        for s in skipped:
            print(f"{s.host:<30} | {s.state:<15} | {s.reason}", file=stream)
    if failures:
        print(f"\n=== Unavailable Fields ({len(failures)}) ===", file=stream)
        for f in failures:
            print(f"{f.host:<30} | {f.kind:<13} | {f.field:<20} | {f.error}", file=stream)
