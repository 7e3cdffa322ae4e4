# unimeet/routers/cron.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from unimeet.config import get_settings
from unimeet.db.session import get_db
from unimeet.services.clock import get_clock
from unimeet.services.maintenance_service import (
    complete_elapsed_meetings,
    send_due_reminders,
)
from unimeet.services.notifier import get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Expect `Authorization: Bearer <CRON_SECRET>`.

    Without a configured secret the endpoints are switched off (503) rather
    than left open.
    """
    secret = get_settings().CRON_SECRET
    if not secret:
        raise HTTPException(status_code=503, detail="CRON_SECRET is not configured")
    if authorization != f"Bearer {secret}":
        logger.warning("Rejected cron call with bad credentials")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/complete-meetings", dependencies=[Depends(require_cron_secret)])
def run_complete_meetings(
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
) -> Dict[str, Any]:
    completed = complete_elapsed_meetings(db, clock=clock)
    return {"completed": completed}


@router.post("/reminders", dependencies=[Depends(require_cron_secret)])
def run_reminders(
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
        notifier=Depends(get_notifier),
) -> Dict[str, Any]:
    counts = send_due_reminders(db, notifier=notifier, clock=clock)
    return {"sent_24h": counts.sent_24h, "sent_1h": counts.sent_1h}
