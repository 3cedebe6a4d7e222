"""Recompute the staff expense journal for one month.

Usage: python scripts/recompute_payroll.py 2026-10 [--activity ACTIVITY_ID]

Without ``--activity`` every activity is processed for every staff member
that has a rule scoped to it.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.edu_billing.edu_billing.attendance.model import AffectedMonth
from src.edu_billing.edu_billing.container import build_container
from src.edu_billing.edu_billing.main import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("month", help="YYYY-MM")
    parser.add_argument("--activity", dest="activity_id", default=None)
    args = parser.parse_args()

    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(db_config=dict(settings.DB_CONFIG))

    if args.activity_id:
        activity_ids = [args.activity_id]
    else:
        activity_ids = [a.id for a in container.activities_repo.list_all() if a.is_active]

    keys = [AffectedMonth(student_id="*", activity_id=a, month=args.month) for a in activity_ids]
    for result in container.payroll_service.recompute_affected(keys):
        print(f"{result.month} staff={result.staff_id} activity={result.activity_id} total={result.total}")


if __name__ == "__main__":
    main()
