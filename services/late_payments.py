# services/late_payments.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from app.rotation import ledger
from app.rotation.errors import TontineNotFound
from app.rotation.schedule import local_today
from app.rotation.store import TontineStore
from services.metrics import increment_payment_event

logger = logging.getLogger("dourou.late_payments")


def run_late_payment_sweep(store: TontineStore, *, today: date | None = None) -> dict[str, Any]:
    """
    Flag overdue pending contributions across every active tontine. Each
    tontine is handled in its own session so one failure doesn't block the rest.
    """
    today = today or local_today()
    items: list[dict[str, Any]] = []
    failed = 0

    for tontine_id in store.active_tontine_ids():
        try:
            with store.session(tontine_id) as s:
                flagged = ledger.flag_late_payments(s.tontine, today=today)
                for p in flagged:
                    s.record("payment_late", "Contribution is late", payment_id=p.id, member_id=p.member_id)
        except TontineNotFound:
            # deleted between listing and locking
            continue
        except Exception:
            failed += 1
            logger.exception("late payment sweep failed tontine_id=%s", tontine_id)
            continue

        if flagged:
            increment_payment_event("late", len(flagged))
            items.append(
                {
                    "tontine_id": tontine_id,
                    "payment_ids": [p.id for p in flagged],
                }
            )

    summary = {
        "today": today.isoformat(),
        "tontines_flagged": len(items),
        "payments_flagged": sum(len(i["payment_ids"]) for i in items),
        "failed": failed,
    }
    logger.info(
        "late_payment_sweep today=%s tontines_flagged=%s payments_flagged=%s failed=%s",
        summary["today"],
        summary["tontines_flagged"],
        summary["payments_flagged"],
        failed,
    )
    return {"summary": summary, "items": items}
