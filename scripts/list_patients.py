#!/usr/bin/env python3
"""Print one visible page of patients.

Loads the full patient list, applies the given filter, sort and page the
same way the list screen does, and prints the resulting rows.

Usage
-----
Set environment variables and run::

    export PATIENTS_BASE_URL="https://example.org/api"
    export PATIENTS_USERNAME="user"
    export PATIENTS_PASSWORD="secret"
    python scripts/list_patients.py --family-name rossi --sort birth_date --desc

Options::

    --family-name TEXT   Case-insensitive substring filter on the family name
    --given-name TEXT    Case-insensitive substring filter on the given name
    --sex M|F|other      Exact sex filter
    --alarm / --no-alarm Only patients with / without an alarming parameter
    --sort FIELD         Sort field (default: family_name)
    --desc               Sort descending
    --page N             Page index, 1-based
    --page-size N        Rows per page (default: PATIENTS_PAGE_SIZE or 4)
    --json               Output as machine-readable JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pypatients import (  # noqa: E402
    Patient,
    PatientListView,
    PatientsClient,
    PatientsConfig,
    PatientsError,
    SortDirection,
    SortField,
    SortSpec,
    ViewResult,
)


def _format_row(patient: Patient) -> str:
    alarm = "!" if patient.has_alarm else " "
    return (
        f"  {alarm} {patient.id:>6}  {patient.display_name:<41} "
        f"{patient.birth_date.isoformat()}  {patient.sex.value}"
    )


def _render(result: ViewResult) -> str:
    lines = [f"── patients: page {result.page_index}/{max(result.total_pages, 1)}, {result.total_count} match ──"]
    if not result.rows:
        lines.append("  (no rows)")
    lines.extend(_format_row(patient) for patient in result.rows)
    return "\n".join(lines)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Print one filtered, sorted page of patients.")
    parser.add_argument("--family-name", help="Family name substring")
    parser.add_argument("--given-name", help="Given name substring")
    parser.add_argument("--sex", help="Exact sex value (M, F, other)")
    alarm = parser.add_mutually_exclusive_group()
    alarm.add_argument("--alarm", dest="has_alarm", action="store_const", const=True, help="Only alarming patients")
    alarm.add_argument("--no-alarm", dest="has_alarm", action="store_const", const=False, help="Only quiet patients")
    parser.add_argument("--sort", default=SortField.FAMILY_NAME.value, choices=[f.value for f in SortField])
    parser.add_argument("--desc", action="store_true", help="Sort descending")
    parser.add_argument("--page", type=int, default=1, help="Page index, 1-based")
    parser.add_argument("--page-size", type=int, help="Rows per page")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {"filter_settle_delay": 0.0}
    if args.page_size is not None:
        overrides["page_size"] = args.page_size
    config = PatientsConfig.from_env(**overrides)

    async with PatientsClient(config) as client, PatientListView(client, config) as view:
        if view.error_message is not None:
            print(f"!! load failed: {view.error_message}", file=sys.stderr)
            return 1
        view.set_filter(
            family_name=args.family_name,
            given_name=args.given_name,
            sex=args.sex,
            has_alarm=args.has_alarm,
        )
        direction = SortDirection.DESC if args.desc else SortDirection.ASC
        view.sort.set(SortSpec(field=SortField(args.sort), direction=direction))
        view.go_to_page(args.page)
        result = view.result

    if args.json_mode:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(_render(result))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except PatientsError as exc:
        print(f"!! {exc}", file=sys.stderr)
        sys.exit(2)
