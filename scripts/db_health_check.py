#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.services.schema_guard import verify_runtime_schema
from app.settings import get_settings


def _expected_alembic_heads() -> list[str]:
    config = Config(str(ROOT_DIR / "alembic.ini"))
    script = ScriptDirectory.from_config(config)
    return sorted(script.get_heads())


def run() -> dict[str, Any]:
    database_url = get_settings().database_url
    engine = create_engine(database_url, pool_pre_ping=True)
    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    try:
        schema_result = verify_runtime_schema(engine)
        add(
            "schema_guard",
            "ok" if schema_result.ok else "fail",
            {"issues": schema_result.issues, "warnings": schema_result.warnings},
        )

        with engine.connect() as conn:
            current_versions = [
                str(row[0]).strip()
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
                if row and row[0] is not None
            ]
            expected_heads = _expected_alembic_heads()
            missing_heads = [head for head in expected_heads if head not in current_versions]
            add(
                "migration_up_to_date",
                "warn" if missing_heads else "ok",
                {"expected_heads": expected_heads, "current": current_versions},
            )

            multiple_open = conn.execute(
                text(
                    """
                    select user_id, count(*)
                    from clock_entries
                    where status = 'in_progress'
                    group by user_id
                    having count(*) > 1
                    """
                )
            ).fetchall()
            add(
                "multiple_open_clock_entries",
                "fail" if multiple_open else "ok",
                {"rows": [list(row) for row in multiple_open]},
            )

            inverted_entries = conn.execute(
                text(
                    """
                    select id
                    from clock_entries
                    where clock_out is not null and clock_out < clock_in
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "clock_out_before_clock_in",
                "fail" if inverted_entries else "ok",
                {"sample_ids": [row[0] for row in inverted_entries]},
            )

            closed_without_duration = conn.execute(
                text(
                    """
                    select id
                    from clock_entries
                    where status <> 'in_progress' and duration_minutes is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "closed_entry_without_duration",
                "fail" if closed_without_duration else "ok",
                {"sample_ids": [row[0] for row in closed_without_duration]},
            )

            drifted_tasks = conn.execute(
                text(
                    """
                    select t.id, t.actual_hours, coalesce(sum(w.hours), 0)
                    from tasks t
                    left join work_logs w on w.task_id = t.id
                    group by t.id, t.actual_hours
                    having t.actual_hours <> coalesce(sum(w.hours), 0)
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "task_actual_hours_drift",
                "warn" if drifted_tasks else "ok",
                {"rows": [[row[0], str(row[1]), str(row[2])] for row in drifted_tasks]},
            )

            overlapping_leave = conn.execute(
                text(
                    """
                    select a.id, b.id
                    from leave_requests a
                    join leave_requests b
                      on a.user_id = b.user_id
                     and a.id < b.id
                     and a.start_date <= b.end_date
                     and b.start_date <= a.end_date
                    where a.status = 'approved' and b.status = 'approved'
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "overlapping_approved_leave",
                "fail" if overlapping_leave else "ok",
                {"pairs": [list(row) for row in overlapping_leave]},
            )
    finally:
        engine.dispose()

    report["ok"] = all(check["status"] != "fail" for check in report["checks"])
    return report


if __name__ == "__main__":
    result = run()
    print(json.dumps(result, ensure_ascii=False, indent=2))
    raise SystemExit(0 if result["ok"] else 1)
