from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from wo_viewer import __version__
from wo_viewer.pivot import NO_DATED_ROWS, UNASSIGNED


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "wo_viewer.cli"]
SAMPLE = "sample-data/work_orders.csv"


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env.pop("WO_VIEWER_CONFIG", None)
    merged_env.pop("WO_VIEWER_PREFS", None)
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def work_orders(payload: dict) -> list[str]:
    return [row["work_order"] for row in payload["rows"]]


class HeadersCommandTests(unittest.TestCase):
    def test_headers_json_maps_every_sample_column(self):
        proc = run_cli("headers", SAMPLE, "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "wo_viewer.headers")
        self.assertEqual(payload["run_summary"]["tool"], "wo-viewer")
        self.assertEqual(payload["headers"]["mapping"]["Assigned To"], "assigned_to")
        self.assertEqual(payload["headers"]["missing_fields"], [])
        self.assertEqual(payload["run_summary"]["metrics"]["mapped"], 11)

    def test_headers_text(self):
        proc = run_cli("headers", SAMPLE)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("'Sched. Start Date' -> sched_start [exact]", proc.stdout)

    def test_unrecognized_headers_are_reported(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "odd.csv"
            path.write_text("foo,bar\n1,2\n", encoding="utf-8")
            proc = run_cli("headers", str(path))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("'foo' -> (unmapped)", proc.stdout)
        self.assertIn("No recognizable headers found.", proc.stderr)


class RowsCommandTests(unittest.TestCase):
    def test_rows_json_only_on_stdout(self):
        proc = run_cli("rows", SAMPLE, "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "wo_viewer.rows")
        self.assertEqual(work_orders(payload), ["WO-9", "WO-10", "WO-11", "WO-12", "WO-13"])
        self.assertEqual(payload["rows"][0]["sched_start"], "2024-01-05")
        self.assertIsNone(payload["rows"][2]["sched_start"])
        self.assertEqual(payload["run_summary"]["metrics"]["rows_dropped"], 1)
        self.assertIn("Loaded 5 rows from work_orders.csv", proc.stderr)

    def test_date_range(self):
        proc = run_cli("rows", SAMPLE, "--json", "--from", "01/01/2024")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(work_orders(payload), ["WO-9", "WO-10", "WO-12"])
        self.assertEqual(payload["filters"]["date_from"], "2024-01-01")

    def test_search_matches_display_dates(self):
        proc = run_cli("rows", SAMPLE, "--json", "--search", "12/25")
        self.assertEqual(work_orders(json.loads(proc.stdout)), ["WO-13"])

    def test_equality_and_column_filters(self):
        proc = run_cli("rows", SAMPLE, "--json", "--assignee", "Bob Diaz", "--column", "description=LUBE")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(work_orders(json.loads(proc.stdout)), ["WO-12"])

    def test_natural_sort_descending(self):
        proc = run_cli("rows", SAMPLE, "--json", "--sort", "work_order", "--desc")
        payload = json.loads(proc.stdout)
        self.assertEqual(work_orders(payload), ["WO-13", "WO-12", "WO-11", "WO-10", "WO-9"])
        self.assertEqual(payload["sort"], {"field": "work_order", "direction": "desc"})

    def test_text_table_uses_display_dates(self):
        proc = run_cli("rows", SAMPLE, "--sort", "sched_start")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("12/25/2023", proc.stdout)
        self.assertIn("Rows shown: 5", proc.stderr)

    def test_output_file_and_no_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "rows.csv"
            proc = run_cli("rows", SAMPLE, "--output", str(output))
            self.assertEqual(proc.returncode, 0, proc.stderr)
            self.assertTrue(output.exists())
            self.assertIn("Work Order", output.read_text(encoding="utf-8").splitlines()[0])

            again = run_cli("rows", SAMPLE, "--output", str(output))
            self.assertEqual(again.returncode, 1)
            self.assertIn("Refusing to overwrite", again.stderr)

    def test_bad_arguments_exit_1(self):
        cases = [
            (("--column", "priority=high"), "Unknown field"),
            (("--column", "nonsense"), "--column expects FIELD=TEXT"),
            (("--from", "someday"), "Could not read date bound"),
            (("--output", "rows.json"), "--output must end in .csv or .xlsx"),
        ]
        for extra, message in cases:
            with self.subTest(extra=extra):
                proc = run_cli("rows", SAMPLE, *extra)
                self.assertEqual(proc.returncode, 1)
                self.assertIn(message, proc.stderr)

    def test_missing_input_exit_1(self):
        proc = run_cli("rows", "sample-data/does-not-exist.csv")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_unsupported_input_exit_2(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "report.pdf"
            path.write_bytes(b"%PDF-1.4")
            proc = run_cli("rows", str(path))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Unsupported file type '.pdf'", proc.stderr)


class PivotCommandTests(unittest.TestCase):
    def test_pivot_json(self):
        proc = run_cli("pivot", SAMPLE, "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        pivot = payload["pivot"]
        self.assertEqual(pivot["assignees"], [UNASSIGNED, "Alice Ng", "Bob Diaz"])
        self.assertEqual(pivot["grand_total"], 4)
        self.assertEqual(pivot["undated"], 1)
        self.assertEqual(payload["meta"]["Range"], "— → —")

    def test_pivot_on_another_date_field(self):
        proc = run_cli("pivot", SAMPLE, "--json", "--date-field", "orig_due")
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["pivot"]["date_field"], "orig_due")
        self.assertEqual(payload["pivot"]["grand_total"], 3)
        self.assertEqual(payload["meta"]["Counting by"], "Original PM Due Date")

    def test_pivot_text(self):
        proc = run_cli("pivot", SAMPLE)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Counting by: Sched. Start Date", proc.stdout)
        self.assertIn(UNASSIGNED, proc.stdout)
        self.assertIn("01/05/2024", proc.stdout)

    def test_pivot_with_nothing_dated(self):
        proc = run_cli("pivot", SAMPLE, "--from", "2030-01-01")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn(NO_DATED_ROWS, proc.stdout)
        self.assertIn("Rows shown: 0", proc.stdout)

    def test_invalid_date_field_is_a_usage_error(self):
        proc = run_cli("pivot", SAMPLE, "--date-field", "status")
        self.assertEqual(proc.returncode, 1)


class ConfigCommandTests(unittest.TestCase):
    def test_config_init_refuses_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "wo-viewer.json"
            first = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(first.returncode, 0, first.stderr)
            self.assertEqual(json.loads(config_path.read_text(encoding="utf-8"))["date_order"], "month_first")
            second = run_cli("config", "init", "--path", str(config_path))
            self.assertEqual(second.returncode, 1)
            self.assertIn("Refusing to overwrite existing config", second.stderr)

    def test_config_init_requires_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            proc = run_cli("config", "init", "--path", str(Path(tmpdir) / "wo-viewer.yaml"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("must end in .json", proc.stderr)

    def test_yaml_config_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "wo-viewer.yaml"
            config_path.write_text("date_order: day_first\n", encoding="utf-8")
            proc = run_cli("rows", SAMPLE, "--config", str(config_path))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Use JSON for now", proc.stderr)

    def test_day_first_config_from_environment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "site.json"
            config_path.write_text(json.dumps({"date_order": "day_first"}), encoding="utf-8")
            data_path = Path(tmpdir) / "eu.csv"
            data_path.write_text("WO,Sched Start\nWO-1,03/04/2024\n", encoding="utf-8")
            proc = run_cli("rows", str(data_path), "--json", env={"WO_VIEWER_CONFIG": str(config_path)})
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(proc.stdout)["rows"][0]["sched_start"], "2024-04-03")


class MiscCommandTests(unittest.TestCase):
    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_unknown_command(self):
        proc = run_cli("explode")
        self.assertEqual(proc.returncode, 1)


if __name__ == "__main__":
    unittest.main()
