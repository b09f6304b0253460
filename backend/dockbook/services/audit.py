"""
Audit trail: one audit_log row per mutating action.

Rows are written after the business transaction has committed, in their own
transaction. A failing audit write is logged and never undoes the action.
"""
import logging

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..models.audit import AuditLog

logger = logging.getLogger(__name__)


def snapshot(obj) -> dict:
    """Column values of an ORM object as a JSON-safe dict."""
    if obj is None:
        return {}
    mapper = inspect(obj).mapper
    return jsonable_encoder({c.key: getattr(obj, c.key) for c in mapper.column_attrs})


def record(
    db: Session,
    ctx: RequestContext,
    action: str,
    entity_type: str,
    entity_id: int | None,
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> None:
    entry = AuditLog(
        user_id=ctx.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=jsonable_encoder(old_values) if old_values is not None else None,
        new_values=jsonable_encoder(new_values) if new_values is not None else None,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Audit write failed for {action} {entity_type}#{entity_id}: {e}")
        return
    logger.info(f"AUDIT {action} {entity_type}#{entity_id} by user={ctx.user_id} ({ctx.user_type.value})")
