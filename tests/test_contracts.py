from __future__ import annotations

import json
import re
import unittest
from pathlib import Path

from wo_viewer import __version__
from wo_viewer.contracts import CONTRACT_VERSIONS, TOOL_NAME, build_contract, build_envelope, utc_now_iso


class ContractTests(unittest.TestCase):
    def test_every_contract_is_versioned(self):
        for name in CONTRACT_VERSIONS:
            with self.subTest(contract=name):
                contract = build_contract(name)
                self.assertEqual(contract["name"], name)
                self.assertRegex(contract["version"], r"^\d+\.\d+\.\d+$")

    def test_unknown_command_is_a_key_error(self):
        with self.assertRaises(KeyError):
            build_envelope("nope", Path("in.csv"))

    def test_envelope_shape(self):
        envelope = build_envelope(
            "pivot",
            Path("exports/jan.csv"),
            metrics={"rows_in": 5},
            warnings=["Multiple sheets found"],
        )
        self.assertEqual(envelope["contract"], {"name": "wo_viewer.pivot", "version": "1.0.0"})
        summary = envelope["run_summary"]
        self.assertEqual(summary["tool"], TOOL_NAME)
        self.assertEqual(summary["tool_version"], __version__)
        self.assertEqual(summary["command"], "pivot")
        self.assertEqual(summary["input_file"], str(Path("exports/jan.csv")))
        self.assertIsNone(summary["output_file"])
        self.assertEqual(summary["warnings"], ["Multiple sheets found"])
        self.assertEqual(summary["metrics"], {"rows_in": 5})
        json.dumps(envelope)

    def test_output_path_is_stringified(self):
        summary = build_envelope("rows", Path("in.csv"), output_path=Path("out.xlsx"))["run_summary"]
        self.assertEqual(summary["output_file"], "out.xlsx")
        self.assertEqual(summary["warnings"], [])
        self.assertEqual(summary["metrics"], {})

    def test_timestamp_is_utc_zulu(self):
        self.assertTrue(re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", utc_now_iso()))


if __name__ == "__main__":
    unittest.main()
