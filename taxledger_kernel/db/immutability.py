"""
ORM-Level Immutability Enforcement for the tax ledger.

Transaction events are append-only.  A snapshot, once written, is the
historical record of what the invoice looked like for a reporting period;
corrections are new entries, never edits.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept them for TransactionEvent:

    session.flush()
         |
         v
    [before_update] --> _check_transaction_event_update() --> ImmutabilityViolationError
    [before_delete] --> _check_transaction_event_delete() --> ImmutabilityViolationError

Bulk ORM statements (``session.execute(update(TransactionEvent))`` and
``delete(...)``) never load objects, so no mapper event fires for them.  A
Session-level ``do_orm_execute`` listener rejects those before execution:

    session.execute(update(TransactionEvent)...)
         |
         v
    [do_orm_execute] --> _check_bulk_transaction_event_statement() --> ImmutabilityViolationError

Usage:
    from taxledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup (create_tables does it)
"""

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session

from taxledger_kernel.exceptions import ImmutabilityViolationError
from taxledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transaction_event_update(mapper, connection, target):
    """Prevent any updates to TransactionEvent rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransactionEvent",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransactionEvent",
        entity_id=str(target.id),
        reason="Ledger entries are immutable; record a new entry instead",
    )


def _check_transaction_event_delete(mapper, connection, target):
    """Prevent deletion of TransactionEvent rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransactionEvent",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransactionEvent",
        entity_id=str(target.id),
        reason="Ledger entries cannot be deleted",
    )


def _check_bulk_transaction_event_statement(orm_execute_state: ORMExecuteState):
    """Prevent bulk UPDATE / DELETE statements against transaction_events."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return

    from taxledger_kernel.models.transaction_event import TransactionEvent

    mapper = orm_execute_state.bind_mapper
    if mapper is None or mapper.class_ is not TransactionEvent:
        return

    operation = "BULK_UPDATE" if orm_execute_state.is_update else "BULK_DELETE"
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransactionEvent",
            "entity_id": "*",
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransactionEvent",
        entity_id="*",
        reason=f"{operation} statements against the ledger are not allowed",
    )


def register_immutability_listeners():
    """
    Register the ledger immutability listeners.

    Safe to call more than once: already-registered listeners are skipped.
    """
    from taxledger_kernel.models.transaction_event import TransactionEvent

    if not event.contains(TransactionEvent, "before_update", _check_transaction_event_update):
        event.listen(TransactionEvent, "before_update", _check_transaction_event_update)
    if not event.contains(TransactionEvent, "before_delete", _check_transaction_event_delete):
        event.listen(TransactionEvent, "before_delete", _check_transaction_event_delete)
    if not event.contains(Session, "do_orm_execute", _check_bulk_transaction_event_statement):
        event.listen(Session, "do_orm_execute", _check_bulk_transaction_event_statement)
