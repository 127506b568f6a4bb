from pathlib import Path
from typing import Any, Dict, List

from ..errors import ExportDependencyMissing
from ..models import ReportCollection


class ReportXlsxWriter:
    def write(self, collections: Dict[str, ReportCollection], dest_path: Path) -> List[Dict[str, Any]]:
        """
        Create one workbook with one sheet per report kind.
        Returns a list of summaries per sheet.
        """
        try:
            from openpyxl import Workbook
        except ImportError as exc:
            raise ExportDependencyMissing("openpyxl is required for Excel export") from exc

        wb = Workbook()
        # Remove default sheet to keep ordering exact
        wb.remove(wb.active)

        summaries = []
        for collection in collections.values():
            ws = wb.create_sheet(title=collection.title[:31])
            ws.append(collection.columns)
            for row in collection.records:
                ws.append(["" if row.get(col) is None else row.get(col) for col in collection.columns])
            ws.freeze_panes = "B2"

            summaries.append({
                "sheet": ws.title,
                "columns": len(collection.columns),
                "rows": len(collection.records),
            })

        dest_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(dest_path)
        return summaries
