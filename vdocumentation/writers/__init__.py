from .console import print_collection, print_collections, print_summary
from .csv_writer import write_csvs
from .xlsx_writer import ReportXlsxWriter

__all__ = ["ReportXlsxWriter", "print_collection", "print_collections", "print_summary", "write_csvs"]
