"""
Best-effort usage accounting for sent messages.

After a message has been delivered upstream, the application record bound
to the chat session gets its message counter bumped. Every failure is caught
where it happens and turned into an AccountingResult; nothing propagates to
the caller of increment_message_count.

The counter update is a read followed by a write with no lock or
compare-and-swap, so concurrent sends to the same session can lose an
increment.
"""

import enum
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from chat_relay.errors import AccountingFailure
from chat_relay.metrics import record_accounting_outcome
from chat_relay.storage import find_application_by_chat_id, update_application
from chat_relay.utils import utc_now_iso

logger = logging.getLogger(__name__)


class AccountingResult(str, enum.Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


def _lookup(db: Session, session_id: str):
    try:
        return find_application_by_chat_id(db, session_id)
    except Exception as e:
        raise AccountingFailure(f"lookup failed for chat {session_id}: {e}") from e


def _read_count(application) -> int:
    try:
        return application.number_of_messages or 0
    except Exception as e:
        raise AccountingFailure(f"could not read message count for app {application.id}: {e}") from e


def _write(db: Session, app_id: str, count: int, now: Optional[datetime]):
    patch = {
        "number_of_messages": count,
        "updated_at": utc_now_iso(now),
    }
    try:
        return update_application(db, app_id, patch)
    except Exception as e:
        raise AccountingFailure(f"update failed for app {app_id}: {e}") from e


def increment_message_count(db: Session, session_id: str, now: Optional[datetime] = None) -> AccountingResult:
    """
    Increment number_of_messages on the application bound to session_id.

    Args:
        db: Database session
        session_id: External chat session the message was sent to
        now: Timestamp written to updated_at (defaults to the current time)

    Returns:
        UPDATED when the counter was written, SKIPPED when no application
        is bound to the session, FAILED when the lookup or write raised
    """
    try:
        application = _lookup(db, session_id)
        if application is None:
            logger.info(f"No application bound to chat {session_id}, skipping usage accounting")
            result = AccountingResult.SKIPPED
        else:
            current = _read_count(application)
            updated = _write(db, application.id, current + 1, now)
            if updated is None:
                result = AccountingResult.SKIPPED
            else:
                logger.info(f"Message count for app {application.id}: {current} -> {current + 1}")
                result = AccountingResult.UPDATED
    except AccountingFailure as e:
        logger.warning(f"Usage accounting failed: {e}")
        result = AccountingResult.FAILED

    record_accounting_outcome(result.value)
    return result
