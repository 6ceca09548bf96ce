# scripts/late_payments_daemon.py
from __future__ import annotations

import logging
import time

from deps.store import get_store
from services.late_payments import run_late_payment_sweep
from services.observability import configure_logging
from settings import settings


logger = logging.getLogger("dourou.late_payments")


def main() -> None:
    configure_logging()
    interval = settings.LATE_PAYMENTS_INTERVAL_SECONDS
    store = get_store()
    logger.info("Late payments daemon starting; interval=%ss store=%s", interval, settings.STORE_BACKEND)

    while True:
        try:
            result = run_late_payment_sweep(store)
        except KeyboardInterrupt:
            logger.info("Late payments daemon exiting")
            raise
        except Exception:
            logger.exception("Late payments daemon failed")
            raise

        summary = result.get("summary") or {}
        logger.info(
            "Late payments sweep done | tontines_flagged=%s payments_flagged=%s failed=%s",
            summary.get("tontines_flagged"),
            summary.get("payments_flagged"),
            summary.get("failed"),
        )
        time.sleep(interval)


if __name__ == "__main__":
    main()
