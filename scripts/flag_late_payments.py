from __future__ import annotations

import argparse
from datetime import date

from deps.store import get_store
from services.late_payments import run_late_payment_sweep
from services.observability import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Flag overdue contributions once.")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="YYYY-MM-DD, defaults to local today")
    args = parser.parse_args()

    configure_logging()
    result = run_late_payment_sweep(get_store(), today=args.today)
    summary = result["summary"]

    print(
        "counts:",
        f"today={summary['today']}",
        f"tontines_flagged={summary['tontines_flagged']}",
        f"payments_flagged={summary['payments_flagged']}",
        f"failed={summary['failed']}",
    )


if __name__ == "__main__":
    main()
