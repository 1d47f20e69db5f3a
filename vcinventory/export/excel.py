"""
Excel workbook export.

Path: vcinventory/export/excel.py

Writes shaped VM rows to an .xlsx workbook with two sheets:
    VMs       - one row per VM, columns in property order
    Metadata  - run details (server, time, counts, filters, columns)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from vcinventory.errors import ExportError
from vcinventory.inventory.models import SENTINEL
from vcinventory.vault.naming import normalize_server


logger = logging.getLogger(__name__)

DATA_SHEET = "VMs"
METADATA_SHEET = "Metadata"


@dataclass
class ReportMetadata:
    """Run details written to the metadata sheet."""
    server: str
    generated_at: datetime = field(default_factory=datetime.now)
    total_vms: int = 0
    exported_vms: int = 0
    filters: List[Tuple[str, str]] = field(default_factory=list)
    property_descriptions: Mapping[str, str] = field(default_factory=dict)
    extra: List[Tuple[str, Any]] = field(default_factory=list)

    def rows(self) -> List[Tuple[str, Any]]:
        rows = [
            ("Source server", self.server),
            ("Generated", self.generated_at.strftime("%Y-%m-%d %H:%M:%S")),
            ("VMs retrieved", self.total_vms),
            ("VMs exported", self.exported_vms),
        ]
        rows.extend((f"Filter: {name}", value) for name, value in self.filters)
        rows.extend(self.extra)
        return rows


def cell_value(value: Any) -> Any:
    """Strip characters Excel cannot store from text values."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def append_row(ws, values: Sequence[Any]):
    """
    Append one row of cleaned values.

    Text that starts with '=' is stored as a string, never as a formula.
    """
    ws.append([cell_value(v) for v in values])
    row = ws.max_row
    for column in range(1, len(values) + 1):
        cell = ws.cell(row=row, column=column)
        if cell.data_type == "f":
            cell.data_type = "s"


def apply_sheet_formatting(ws, header_row: int = 1, freeze_col: int = 1):
    """Bold header, frozen panes, auto-filter and sized columns."""
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for cell in ws[header_row]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    ws.freeze_panes = f"{get_column_letter(freeze_col + 1)}{header_row + 1}"

    if ws.max_row > header_row:
        ws.auto_filter.ref = ws.dimensions

    # Width between 10 and 50
    for column in ws.columns:
        max_length = 0
        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(max(max_length + 2, 10), 50)


class ExcelExporter:
    """
    Export rows to an .xlsx workbook.

    Usage:
        exporter = ExcelExporter()
        path = exporter.export(rows, ["Name", "PowerState"], metadata,
                               output_dir=Path("reports"))
    """

    def __init__(self, file_prefix: str = "VMInventory"):
        self.file_prefix = file_prefix

    def build_path(self, output_dir: Path, server: str, when: Optional[datetime] = None) -> Path:
        when = when or datetime.now()
        stamp = when.strftime("%Y%m%d_%H%M%S")
        return Path(output_dir) / f"{self.file_prefix}_{normalize_server(server)}_{stamp}.xlsx"

    def export(
        self,
        rows: Sequence[Mapping[str, Any]],
        properties: Sequence[str],
        metadata: ReportMetadata,
        output_dir: Path,
    ) -> Path:
        """
        Write the workbook.

        Args:
            rows: Flat name -> value mappings.
            properties: Column order. Missing keys are written as SENTINEL.
            metadata: Run details for the metadata sheet.
            output_dir: Directory for the workbook.

        Returns:
            Path of the written file.

        Raises:
            ExportError: Workbook could not be written.
        """
        path = self.build_path(output_dir, metadata.server, metadata.generated_at)

        try:
            wb = self._build_workbook(rows, properties, metadata)
        except (ValueError, IllegalCharacterError) as e:
            raise ExportError(f"Could not build workbook for {metadata.server}: {e}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(path)
        except OSError as e:
            raise ExportError(f"Could not write workbook {path}: {e}")

        logger.info(f"Wrote {len(rows)} rows to {path}")
        return path

    def _build_workbook(
        self,
        rows: Sequence[Mapping[str, Any]],
        properties: Sequence[str],
        metadata: ReportMetadata,
    ) -> Workbook:
        wb = Workbook()
        ws = wb.active
        ws.title = DATA_SHEET
        append_row(ws, list(properties))
        for row in rows:
            append_row(ws, [row.get(prop, SENTINEL) for prop in properties])
        apply_sheet_formatting(ws)

        meta_ws = wb.create_sheet(METADATA_SHEET)
        append_row(meta_ws, ["Key", "Value"])
        for key, value in metadata.rows():
            append_row(meta_ws, [key, value])

        meta_ws.append([])
        append_row(meta_ws, ["Property", "Description"])
        for prop in properties:
            append_row(meta_ws, [prop, metadata.property_descriptions.get(prop, "")])
        apply_sheet_formatting(meta_ws)

        return wb
