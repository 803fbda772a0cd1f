# Overview: Race-safe allocation of human-readable document codes (INV-00001, ...).

from __future__ import annotations

import re

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, FinancialDocument
from .errors import ValidationFailed


def _last_issued_number(org_id: int, document_type: str, prefix: str) -> int:
    """
    Highest number already used by `prefix` codes of this tenant and kind.

    Seeds a missing sequence row, so tenants whose documents predate the
    sequence table keep counting from where they were.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    codes = (
        db.session.query(FinancialDocument.code)
        .filter(
            FinancialDocument.org_id == org_id,
            FinancialDocument.kind == document_type,
            FinancialDocument.code.like(f"{prefix}-%"),
        )
        .all()
    )
    highest = 0
    for (code,) in codes:
        match = pattern.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _current_next_number(org_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(org_id=org_id, document_type=document_type)
        .scalar()
    )


def next_document_code(
    *,
    org_id: int,
    document_type: str,
    prefix: str,
    pad: int = 5,
) -> str:
    """
    Atomically allocate the next document code for a tenant/kind.

    Runs inside the caller's transaction: if the posting rolls back, the
    number is given back too. Concurrent allocators serialize on the
    sequence row (atomic UPDATE ... SET next_number = next_number + 1).
    """
    if not org_id:
        raise ValidationFailed("org_id is required")
    if not document_type:
        raise ValidationFailed("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_next_number(org_id, document_type) - 1
    else:
        next_num = _last_issued_number(org_id, document_type, prefix) + 1
        try:
            with db.session.begin_nested():
                db.session.add(
                    DocumentSequence(org_id=org_id, document_type=document_type, next_number=next_num + 1)
                )
        except IntegrityError:
            # Another transaction created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_next_number(org_id, document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"
