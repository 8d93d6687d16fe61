import tempfile
import unittest
from pathlib import Path

from wo_viewer.config import ConfigError, ViewerConfig
from wo_viewer.dates import DAY_FIRST
from wo_viewer.filters import FilterSpec
from wo_viewer.normalizer import NO_HEADERS_WARNING
from wo_viewer.pivot import UNASSIGNED
from wo_viewer.session import (
    CLEARED_MESSAGE,
    EMPTY_LOAD_MESSAGE,
    Dataset,
    WorkOrderSession,
)
from wo_viewer.sorting import DESC

REPO_ROOT = Path(__file__).resolve().parents[1]
SAMPLE_CSV = REPO_ROOT / "sample-data" / "work_orders.csv"


def numbers(records):
    return [record.work_order for record in records]


class LoadTests(unittest.TestCase):
    def test_sample_export_loads_and_drops_blank_rows(self):
        session = WorkOrderSession()
        outcome = session.load_path(SAMPLE_CSV)
        self.assertTrue(outcome.ok)
        self.assertFalse(outcome.is_error)
        self.assertEqual(outcome.message, "Loaded 5 rows from work_orders.csv")
        self.assertEqual(len(session.dataset), 5)
        self.assertEqual(session.dataset.dropped, 1)
        self.assertEqual(session.dataset.source, "work_orders.csv")
        self.assertEqual(session.dataset.records[0].sched_start, "2024-01-05")

    def test_load_bytes_uses_upload_name(self):
        session = WorkOrderSession()
        outcome = session.load_bytes(b"WO #,Assignee\nWO-1,Alice\n", "upload.csv")
        self.assertEqual(outcome.message, "Loaded 1 rows from upload.csv")
        self.assertEqual(session.dataset.records[0].assigned_to, "Alice")

    def test_unrecognized_headers_load_empty_with_warning(self):
        session = WorkOrderSession()
        outcome = session.load_bytes(b"foo,bar\n1,2\n", "odd.csv")
        self.assertTrue(outcome.ok)
        self.assertTrue(outcome.is_error)
        self.assertEqual(outcome.message, EMPTY_LOAD_MESSAGE)
        self.assertEqual(outcome.warnings, (NO_HEADERS_WARNING,))
        self.assertTrue(session.dataset.is_loaded)
        self.assertEqual(len(session.dataset), 0)

    def test_failed_load_keeps_previous_dataset(self):
        session = WorkOrderSession()
        session.load_path(SAMPLE_CSV)
        before = session.dataset

        outcome = session.load_bytes(b"prose only\n", "notes.txt")
        self.assertFalse(outcome.ok)
        self.assertTrue(outcome.message.startswith("Failed to read file: "))
        self.assertIs(session.dataset, before)
        self.assertEqual(outcome.rows, 5)

    def test_unsupported_upload_message_is_shown_as_is(self):
        session = WorkOrderSession()
        outcome = session.load_bytes(b"%PDF", "report.pdf")
        self.assertFalse(outcome.ok)
        self.assertEqual(
            outcome.message,
            "Unsupported file type '.pdf'. Please upload a .csv, .tsv, .txt, .xlsx, .xlsm, or .xls file.",
        )

    def test_missing_path_is_a_failed_load(self):
        session = WorkOrderSession()
        with tempfile.TemporaryDirectory() as tmpdir:
            outcome = session.load_path(Path(tmpdir) / "gone.csv")
        self.assertFalse(outcome.ok)
        self.assertIn("File not found", outcome.message)
        self.assertFalse(session.dataset.is_loaded)

    def test_reload_replaces_dataset(self):
        session = WorkOrderSession()
        session.load_path(SAMPLE_CSV)
        session.load_records([{"Work Order": "WO-99"}], source="manual")
        self.assertEqual(numbers(session.dataset.records), ["WO-99"])
        self.assertEqual(session.dataset.source, "manual")

    def test_day_first_config_reaches_the_normalizer(self):
        session = WorkOrderSession(ViewerConfig(date_order=DAY_FIRST))
        session.load_records([{"WO": "WO-1", "Sched Start": "03/04/2024"}])
        self.assertEqual(session.dataset.records[0].sched_start, "2024-04-03")

    def test_invalid_config_is_rejected(self):
        with self.assertRaises(ConfigError):
            WorkOrderSession(ViewerConfig(default_date_field="status"))

    def test_clear(self):
        session = WorkOrderSession()
        session.load_path(SAMPLE_CSV)
        outcome = session.clear()
        self.assertEqual(outcome.message, CLEARED_MESSAGE)
        self.assertEqual(session.dataset, Dataset.empty())
        self.assertEqual(session.visible_rows(), [])
        self.assertTrue(session.pivot().is_empty)


class EndToEndTests(unittest.TestCase):
    def test_three_row_export(self):
        session = WorkOrderSession()
        data = (
            b"Work Order,Assigned To,Sched. Start Date\n"
            b"100,Alice,1/5/2024\n"
            b"101,Alice,1/5/2024\n"
            b"102,Bob,\n"
        )
        outcome = session.load_bytes(data, "three.csv")
        self.assertEqual(outcome.rows, 3)
        self.assertEqual(numbers(session.visible_rows()), ["100", "101", "102"])

        result = session.pivot()
        self.assertEqual(result.count("Alice", "2024-01-05"), 2)
        self.assertNotIn("Bob", result.assignees)
        self.assertEqual(result.grand_total, 2)

    def test_trailing_comma_row_is_still_counted(self):
        session = WorkOrderSession()
        data = (
            b"Work Order,Assigned To,Sched. Start Date\n"
            b"100,Alice,1/5/2024\n"
            b"101,Alice,1/5/2024,\n"
            b"102,Bob,\n"
        )
        outcome = session.load_bytes(data, "vendor.csv")
        self.assertEqual(outcome.rows, 3)
        self.assertEqual(numbers(session.dataset.records), ["100", "101", "102"])
        self.assertEqual(session.pivot().count("Alice", "2024-01-05"), 2)
        self.assertEqual(len(outcome.warnings), 1)
        self.assertIn("extra cells were dropped", outcome.warnings[0])

    def test_damaged_workbook_is_reported_not_raised(self):
        session = WorkOrderSession()
        session.load_path(SAMPLE_CSV)
        outcome = session.load_bytes(b"definitely not a zip archive", "broken.xlsx")
        self.assertFalse(outcome.ok)
        self.assertTrue(outcome.message.startswith("Failed to read file: Could not open workbook"))
        self.assertEqual(len(session.dataset), 5)


class ViewTests(unittest.TestCase):
    def setUp(self):
        self.session = WorkOrderSession()
        self.session.load_path(SAMPLE_CSV)

    def test_defaults_show_everything_in_file_order(self):
        self.assertEqual(numbers(self.session.visible_rows()), ["WO-9", "WO-10", "WO-11", "WO-12", "WO-13"])

    def test_filters_then_sort(self):
        self.session.set_filters(FilterSpec(date_from="2024-01-01"))
        self.session.set_sort("work_order", DESC)
        self.assertEqual(numbers(self.session.visible_rows()), ["WO-12", "WO-10", "WO-9"])

    def test_sort_does_not_change_filtered_rows(self):
        self.session.set_sort("sched_start", DESC)
        self.assertEqual(numbers(self.session.filtered_rows()), ["WO-9", "WO-10", "WO-11", "WO-12", "WO-13"])
        self.assertEqual(numbers(self.session.visible_rows())[-1], "WO-11")

    def test_keyword_search_on_display_dates(self):
        self.session.set_filters(FilterSpec(keyword="12/25"))
        self.assertEqual(numbers(self.session.visible_rows()), ["WO-13"])

    def test_pivot_uses_filtered_rows_and_date_field(self):
        result = self.session.pivot()
        self.assertEqual(result.assignees, [UNASSIGNED, "Alice Ng", "Bob Diaz"])
        self.assertEqual(result.grand_total, 4)
        self.assertEqual(result.count("Alice Ng", "2024-01-05"), 2)

        self.session.set_filters(FilterSpec(equals={"assigned_to": "Alice Ng"}, date_field="sched_end"))
        result = self.session.pivot()
        self.assertEqual(result.date_field, "sched_end")
        self.assertEqual(result.dates, ["2024-01-05", "2024-01-06"])

    def test_pivot_meta(self):
        self.session.set_filters(FilterSpec(date_from="2024-01-01"))
        self.assertEqual(
            self.session.pivot_meta(),
            {"Rows shown": "3", "Counting by": "Sched. Start Date", "Range": "01/01/2024 → —"},
        )

    def test_assignee_options_follow_filters(self):
        self.assertEqual(self.session.assignee_options(), ["Alice Ng", "Bob Diaz"])
        self.session.set_filters(FilterSpec(keyword="facilities"))
        self.assertEqual(self.session.assignee_options(), ["Bob Diaz"])

    def test_bad_sort_arguments(self):
        with self.assertRaises(ValueError):
            self.session.set_sort("priority")
        with self.assertRaises(ValueError):
            self.session.set_sort("work_order", "sideways")
        self.assertIsNone(self.session.sort_field)


if __name__ == "__main__":
    unittest.main()
