#!/usr/bin/env python3
"""
Generates sample-data/work_orders.xlsx, a CMMS-style work-order export with
the quirks wo-viewer has to absorb.

Run from the repo root:
    python sample-data/generate_xlsx.py

Quirks baked in:
  Sheet "Export"
    - Vendor headers: "WO #", "Sched Start", "Orig. PM Due Date",
      "Target Finish (Local)", "Assigned_To", plus an unmapped "Priority"
    - Dates as native cells, spreadsheet serials (45292 = 01/01/2024),
      M/D/YYYY text, M/D/YY text and ISO text
    - A blank row in the middle and two trailing blank rows
    - A row with only an assignee (kept) and a row with only a status (dropped)
    - Work-order numbers typed as numbers (1001.0 reads back as "1001")
  Sheet "Notes"
    - Ignored: only the first sheet is read
"""

from datetime import datetime
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "work_orders.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Export ──────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Export"

headers = [
    "WO #",
    "Description",
    "Status",
    "Work Type",
    "Dept.",
    "Equipment ID",
    "Equipment Desc.",
    "Sched Start",
    "Orig. PM Due Date",
    "Target Finish (Local)",
    "Assigned_To",
    "Priority",
]
ws.append(headers)

data = [
    [1001, "Replace belt", "Open", "PM", "Maintenance", "PMP-01", "Feed pump",
     datetime(2024, 1, 5, 7, 30), "1/5/2024", "2024-01-06", "Alice Ng", "High"],
    [1002, "Inspect guard", "Open", "PM", "Maintenance", "CNV-02", "Conveyor 2",
     45292, 45290, 45293.75, "Alice Ng", "Low"],
    ["WO-1003", "Lube bearings", "Scheduled", "PM", "Facilities", "FAN-7", "Roof fan",
     "1/8/24", None, "01/09/2024", "bob diaz", "Med"],
    [None, None, None, None, None, None, None, None, None, None, None, None],
    ["WO-1010", "Fix leak", "Closed", "CM", "Facilities", "VLV-3", "Valve 3",
     None, None, None, "Bob Diaz", "High"],
    [None, None, None, None, None, None, None, None, None, None, "Carmen Ruiz", None],
    [None, None, "Open", "PM", "Maintenance", None, None, None, None, None, None, "Low"],
    ["WO-1004", "Calibrate sensor", "Open", "PM", "Utilities", "SNS-11", "Flow sensor",
     "not scheduled", "2024-02-30", "2/1/2024", None, None],
    [None, None, None, None, None, None, None, None, None, None, None, None],
    [None, None, None, None, None, None, None, None, None, None, None, None],
]

for row in data:
    ws.append(row)

ws.column_dimensions["B"].width = 22
ws.column_dimensions["K"].width = 16

# ── Sheet 2: Notes ───────────────────────────────────────────────────────────
notes = wb.create_sheet("Notes")
notes.append(["Exported from CMMS", "Site A"])

wb.save(OUTPUT)
print(f"Saved -> {OUTPUT}")
