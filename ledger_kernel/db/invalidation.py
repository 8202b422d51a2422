"""
Module: ledger_kernel.db.invalidation
Responsibility: Change notification for readers.  After a session commits,
    publish one signal per entity class that the transaction wrote, so UI
    sessions and caches re-fetch instead of sharing in-memory state.
Architecture position: Kernel > DB.  Imports models lazily to classify
    flushed objects.

Invariants enforced:
    - Signals are published only after COMMIT.  A rolled-back transaction
      publishes nothing.
    - A failing subscriber is logged and skipped; it never affects the
      write that triggered it or the other subscribers.

Usage:
    bus = InvalidationBus()
    install_invalidation_listeners(session_factory, bus)
    bus.subscribe(EntityClass.ENTRIES, lambda cls: refresh_reports())
"""

import threading
import weakref
from collections.abc import Callable
from enum import Enum

from sqlalchemy import event
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.invalidation")

_PENDING_KEY = "ledger_pending_invalidation"

# target -> the bus its listeners feed; one set of listeners per target
_wired: "weakref.WeakKeyDictionary[object, InvalidationBus]" = weakref.WeakKeyDictionary()


class EntityClass(str, Enum):
    """Record classes that readers subscribe to."""

    ACCOUNTS = "accounts"
    ENTRIES = "entries"
    DOCUMENTS = "documents"
    PERIODS = "periods"
    AUDIT = "audit"


Subscriber = Callable[[EntityClass], None]


class InvalidationBus:
    """
    In-process publish/subscribe channel keyed by EntityClass.

    Contract:
        ``subscribe(None, fn)`` receives every class.  ``subscribe``
        returns a callable that removes the subscription.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[EntityClass | None, Subscriber]] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        entity_class: EntityClass | None,
        callback: Subscriber,
    ) -> Callable[[], None]:
        entry = (entity_class, callback)
        with self._lock:
            self._subscribers.append(entry)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return _unsubscribe

    def publish(self, entity_classes) -> None:
        """Deliver each class (in a stable order) to matching subscribers."""
        with self._lock:
            subscribers = list(self._subscribers)

        for entity_class in sorted(set(entity_classes), key=lambda c: c.value):
            logger.debug(
                "invalidation_published",
                extra={"entity_class": entity_class.value},
            )
            for wanted, callback in subscribers:
                if wanted is not None and wanted != entity_class:
                    continue
                try:
                    callback(entity_class)
                except Exception:
                    logger.warning(
                        "invalidation_subscriber_failed",
                        extra={"entity_class": entity_class.value},
                        exc_info=True,
                    )


def _entity_class_map() -> dict[type, EntityClass]:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.audit_log import AuditLogEntry
    from ledger_kernel.models.document import Document
    from ledger_kernel.models.fiscal_period import FiscalPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return {
        Account: EntityClass.ACCOUNTS,
        JournalEntry: EntityClass.ENTRIES,
        JournalLine: EntityClass.ENTRIES,
        Document: EntityClass.DOCUMENTS,
        FiscalPeriod: EntityClass.PERIODS,
        AuditLogEntry: EntityClass.AUDIT,
    }


def install_invalidation_listeners(target, bus: InvalidationBus) -> InvalidationBus:
    """
    Attach session listeners that feed ``bus``.

    Listeners go on a target once. Installing again on the same target
    attaches nothing and returns the bus already wired to it, so every
    facade sharing a sessionmaker publishes through one channel.

    Args:
        target: A sessionmaker, a Session instance or the Session class.
        bus: The channel to publish on.

    Returns:
        The bus the target's listeners publish on.
    """
    wired = _wired.get(target)
    if wired is not None:
        if wired is not bus:
            logger.debug("invalidation_listeners_already_installed")
        return wired

    class_map = _entity_class_map()

    def _after_flush(session: Session, flush_context) -> None:
        pending = session.info.setdefault(_PENDING_KEY, set())
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            entity_class = class_map.get(type(obj))
            if entity_class is not None:
                pending.add(entity_class)

    def _after_commit(session: Session) -> None:
        pending = session.info.pop(_PENDING_KEY, None)
        if pending:
            bus.publish(pending)

    def _after_transaction_end(session: Session, transaction) -> None:
        # Root transaction ended without commit: drop what it collected
        if transaction.parent is None:
            session.info.pop(_PENDING_KEY, None)

    event.listen(target, "after_flush", _after_flush)
    event.listen(target, "after_commit", _after_commit)
    event.listen(target, "after_transaction_end", _after_transaction_end)
    _wired[target] = bus
    return bus
