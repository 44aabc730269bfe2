from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from office_console.services.work_log_export import export_filename, flatten_tree, format_entry_date
from office_console.services.work_log_report_service import ModuleNode, ProjectNode, RollupTotals, TaskNode

NOW = datetime(2026, 3, 10, 14, 5)


def test_filename_includes_range_only_when_both_dates_given() -> None:
    assert export_filename(date(2026, 1, 1), date(2026, 1, 31), NOW, "xlsx") == (
        "work_logs_report_2026-01-01_to_2026-01-31_2026-03-10_14-05.xlsx"
    )
    assert export_filename(date(2026, 1, 1), None, NOW, "csv") == "work_logs_report_2026-03-10_14-05.csv"


def test_entry_dates_use_short_month_format() -> None:
    assert format_entry_date(datetime(2026, 1, 5, 9, 30)) == "Jan 5, 2026"
    assert format_entry_date(None) == ""


def test_flatten_tree_adds_placeholder_rows() -> None:
    entry = datetime(2026, 1, 5, 9, 0)
    totals = RollupTotals(
        total_duration_minutes=Decimal("45"),
        raw_duration_minutes=Decimal("30"),
        work_log_count=1,
        first_entry=entry,
        last_entry=entry,
    )
    task = TaskNode(id=uuid.uuid4(), title="Engine", type="BUG", totals=totals)
    module = ModuleNode(id=str(uuid.uuid4()), name="Core", tasks=[task], totals=totals)
    empty_module = ModuleNode(id=str(uuid.uuid4()), name="Docs")
    with_modules = ProjectNode(id=uuid.uuid4(), name="Alpha", modules=[module, empty_module], totals=totals)
    bare = ProjectNode(id=uuid.uuid4(), name="Bare")

    rows = flatten_tree([with_modules, bare])

    assert [(row.level, row.project, row.module, row.task) for row in rows] == [
        ("project", "Alpha", "", ""),
        ("module", "", "Core", ""),
        ("task", "", "", "Engine"),
        ("module", "", "Docs", ""),
        ("task", "", "", "No Tasks"),
        ("project", "Bare", "", ""),
        ("module", "", "No Module", ""),
    ]
    assert rows[2].values()[4:7] == [0.75, "45m", 1]
