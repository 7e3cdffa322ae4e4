# scripts/maintenance_tick.py
"""
Maintenance "tick" script.

Meant to run from cron (or a Kubernetes CronJob) every 30 minutes, which
keeps every reminder window hit at least once. The same work is exposed
over HTTP under /cron for hosted schedulers.

Flow:
1. Mark CONFIRMED meetings that already ended as COMPLETED.
2. Send the 24h and 1h reminders that are due.

`--now` replays a tick at a given UTC instant instead of the wall clock.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime

from unimeet.config import get_settings
from unimeet.db.session import SessionLocal
from unimeet.schemas.scheduling import to_naive_utc
from unimeet.services.clock import FixedClock, SystemClock
from unimeet.services.maintenance_service import (
    complete_elapsed_meetings,
    send_due_reminders,
)
from unimeet.services.notifier import get_notifier


def run_once(now: datetime | None = None) -> None:
    clock = FixedClock(now) if now is not None else SystemClock()
    db = SessionLocal()
    try:
        completed = complete_elapsed_meetings(db, clock=clock)
        counts = send_due_reminders(db, notifier=get_notifier(), clock=clock)

        print(
            f"[maintenance_tick] completed={completed} "
            f"reminders_24h={counts.sent_24h} reminders_1h={counts.sent_1h}"
        )

    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="ISO timestamp to run the tick at (UTC if no offset is given)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    run_once(now=to_naive_utc(args.now) if args.now is not None else None)


if __name__ == "__main__":
    main()
