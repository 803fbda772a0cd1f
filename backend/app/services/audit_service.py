# Overview: After-commit audit trail for document postings; failures never reach the caller.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AuditLog
from app.time_utils import utcnow

ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"


def record(
    org_id: int,
    actor_user_id: int | None,
    action: str,
    target_type: str,
    target_id: int | None,
    message: str | None = None,
) -> AuditLog | None:
    """
    Write one audit row in its own commit.

    Call only after the business transaction has committed. Any failure is
    logged and the session rolled back; the posting it describes stays
    committed. Returns None when the row could not be written.
    """
    try:
        entry = AuditLog(
            org_id=org_id,
            actor_user_id=actor_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            message=message,
            created_at=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to write audit log (%s %s %s)", action, target_type, target_id
        )
        return None


def list_for_target(org_id: int, target_type: str, target_id: int) -> list[AuditLog]:
    return (
        db.session.query(AuditLog)
        .filter_by(org_id=org_id, target_type=target_type, target_id=target_id)
        .order_by(AuditLog.id.asc())
        .all()
    )
