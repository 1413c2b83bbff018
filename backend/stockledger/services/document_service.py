# Overview: Chronological document numbering for journal entries and inventory transactions.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow
from .exceptions import ValidationError


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next number for a document type inside the caller's transaction.

    The UPDATE takes the sequence row's write lock until the caller commits, so
    numbers are unique and allocated in commit order. A concurrent first
    allocation of the same type fails on the unique constraint at flush; the
    posting boundary treats that as a retryable conflict.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not prefix:
        raise ValidationError("prefix is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    stamp = utcnow().strftime("%Y%m%d")
    return f"{prefix}-{stamp}-{next_num:0{pad}d}"
