"""Versioned envelopes for wo-viewer JSON outputs.

Every ``--json`` payload starts with the same two keys:

    contract     {"name": "wo_viewer.<command>", "version": ...}
    run_summary  what was read, what was written, load warnings, counts

and the command adds its own keys (``headers``, ``rows``, ``pivot`` ...).
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from wo_viewer import __version__

TOOL_NAME = "wo-viewer"

CONTRACT_VERSIONS = {
    "wo_viewer.headers": "1.0.0",
    "wo_viewer.rows": "1.0.0",
    "wo_viewer.pivot": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    output_path: Optional[Path] = None,
    metrics: Optional[dict[str, Any]] = None,
    warnings: Optional[list[str]] = None,
) -> dict[str, Any]:
    return {
        "tool": TOOL_NAME,
        "tool_version": __version__,
        "command": command,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "warnings": list(warnings or []),
        "metrics": dict(metrics or {}),
    }


def build_envelope(command: str, input_path: Path, **summary: Any) -> dict[str, Any]:
    """``contract`` and ``run_summary`` for one command; KeyError for an unknown command."""
    return {
        "contract": build_contract(f"wo_viewer.{command}"),
        "run_summary": build_run_summary(command=command, input_path=input_path, **summary),
    }
