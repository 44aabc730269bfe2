"""Flatten work-log report trees into spreadsheet and CSV artifacts."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import TYPE_CHECKING

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from office_console.services.durations import format_duration_from_minutes, minutes_to_hours

if TYPE_CHECKING:
    from office_console.services.work_log_report_service import ProjectNode, RollupTotals

EXPORT_HEADERS = [
    "Project",
    "Module",
    "Task",
    "Task Type",
    "Total Duration (Hours)",
    "Total Duration (Formatted)",
    "Work Logs Count",
    "First Entry",
    "Last Entry",
]
COLUMN_WIDTHS = [25, 20, 30, 15, 15, 15, 12, 12, 12]

LEVEL_PROJECT = "project"
LEVEL_MODULE = "module"
LEVEL_TASK = "task"

LEVEL_FILLS = {
    LEVEL_PROJECT: "E3F2FD",
    LEVEL_MODULE: "F3E5F5",
    LEVEL_TASK: "FFFFFF",
}
BOLD_LEVELS = {LEVEL_PROJECT, LEVEL_MODULE}

NO_MODULE_LABEL = "No Module"
NO_TASKS_LABEL = "No Tasks"
MAX_SHEET_TITLE = 31


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


@dataclass(slots=True)
class ExportRow:
    level: str
    project: str = ""
    module: str = ""
    task: str = ""
    task_type: str = ""
    total_minutes: Decimal = Decimal("0")
    work_log_count: int = 0
    first_entry: datetime | None = None
    last_entry: datetime | None = None

    def values(self) -> list[object]:
        return [
            self.project,
            self.module,
            self.task,
            self.task_type,
            minutes_to_hours(self.total_minutes),
            format_duration_from_minutes(self.total_minutes),
            self.work_log_count,
            format_entry_date(self.first_entry),
            format_entry_date(self.last_entry),
        ]


def format_entry_date(value: datetime | None) -> str:
    """``Jan 5, 2026`` style; blank when absent."""

    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def _totals_row(level: str, totals: RollupTotals, **labels: str) -> ExportRow:
    return ExportRow(
        level=level,
        total_minutes=totals.total_duration_minutes,
        work_log_count=totals.work_log_count,
        first_entry=totals.first_entry,
        last_entry=totals.last_entry,
        **labels,
    )


def flatten_tree(projects: list[ProjectNode]) -> list[ExportRow]:
    """One row per node, outline style; empty branches get placeholder rows."""

    rows: list[ExportRow] = []
    for project in projects:
        rows.append(_totals_row(LEVEL_PROJECT, project.totals, project=project.name))
        if not project.modules:
            rows.append(ExportRow(level=LEVEL_MODULE, module=NO_MODULE_LABEL))
            continue
        for module in project.modules:
            rows.append(_totals_row(LEVEL_MODULE, module.totals, module=module.name))
            if not module.tasks:
                rows.append(ExportRow(level=LEVEL_TASK, task=NO_TASKS_LABEL))
                continue
            for task in module.tasks:
                rows.append(_totals_row(LEVEL_TASK, task.totals, task=task.title, task_type=task.type))
    return rows


def build_workbook(rows: list[ExportRow], *, sheet_title: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:MAX_SHEET_TITLE]

    sheet.append(EXPORT_HEADERS)
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for row in rows:
        sheet.append(row.values())
        fill = PatternFill(fill_type="solid", start_color=LEVEL_FILLS[row.level], end_color=LEVEL_FILLS[row.level])
        bold = row.level in BOLD_LEVELS
        for cell in sheet[sheet.max_row]:
            cell.fill = fill
            if bold:
                cell.font = Font(bold=True)

    for index, width in enumerate(COLUMN_WIDTHS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def build_csv(rows: list[ExportRow]) -> bytes:
    sio = io.StringIO()
    writer = csv.writer(sio)
    writer.writerow(EXPORT_HEADERS)
    for row in rows:
        writer.writerow(row.values())
    return sio.getvalue().encode("utf-8")


def export_filename(date_from: date | None, date_to: date | None, now: datetime, extension: str) -> str:
    stamp = now.strftime("%Y-%m-%d_%H-%M")
    if date_from is not None and date_to is not None:
        return f"work_logs_report_{date_from.isoformat()}_to_{date_to.isoformat()}_{stamp}.{extension}"
    return f"work_logs_report_{stamp}.{extension}"
