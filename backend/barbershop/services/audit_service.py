# Overview: Append-only audit log writes.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog


def append_audit_log(
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    details: dict | None = None,
    actor_user_id: int | None = None,
) -> AuditLog:
    """
    Append an audit entry in the caller's transaction.

    No commit here: the entry lands together with the domain change it records.
    """
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details,
        actor_user_id=actor_user_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def append_audit_log_best_effort(**kwargs) -> AuditLog | None:
    """
    Append an audit entry inside a SAVEPOINT.

    A failure rolls back only the savepoint and is logged; the surrounding
    transaction stays usable.
    """
    try:
        with db.session.begin_nested():
            return append_audit_log(**kwargs)
    except SQLAlchemyError:
        current_app.logger.warning(
            "Failed to write audit log %s for %s %s",
            kwargs.get("action"),
            kwargs.get("entity_type"),
            kwargs.get("entity_id"),
            exc_info=True,
        )
        return None
