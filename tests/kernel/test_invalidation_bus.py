"""Commit-time change signals for readers."""

import pytest

from ledger_kernel.db.engine import session_scope
from ledger_kernel.db.invalidation import (
    EntityClass,
    InvalidationBus,
    install_invalidation_listeners,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.services.account_service import AccountService


@pytest.fixture
def bus(session_factory) -> InvalidationBus:
    channel = InvalidationBus()
    install_invalidation_listeners(session_factory, channel)
    return channel


class TestPublish:
    def test_commit_publishes_written_classes(self, bus, session_factory):
        received = []
        bus.subscribe(None, received.append)

        with session_scope(session_factory) as session:
            AccountService(session).create_account("1900", "misc", AccountType.ASSET)

        assert received == [EntityClass.ACCOUNTS, EntityClass.AUDIT]

    def test_rollback_publishes_nothing(self, bus, session_factory):
        received = []
        bus.subscribe(None, received.append)

        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as session:
                AccountService(session).create_account("1900", "misc", AccountType.ASSET)
                raise RuntimeError("abort")

        assert received == []

    def test_filtered_subscription(self, bus, session_factory):
        received = []
        bus.subscribe(EntityClass.AUDIT, received.append)

        with session_scope(session_factory) as session:
            AccountService(session).create_account("1900", "misc", AccountType.ASSET)

        assert received == [EntityClass.AUDIT]

    def test_read_only_transaction_publishes_nothing(self, bus, session_factory):
        received = []
        bus.subscribe(None, received.append)

        with session_scope(session_factory) as session:
            AccountService(session).list_accounts()

        assert received == []


class TestSubscribers:
    def test_unsubscribe(self):
        channel = InvalidationBus()
        received = []
        unsubscribe = channel.subscribe(None, received.append)

        unsubscribe()
        channel.publish({EntityClass.ENTRIES})

        assert received == []

    def test_failing_subscriber_is_isolated(self, captured_logs):
        channel = InvalidationBus()
        received = []

        def _broken(entity_class):
            raise ValueError("reader crashed")

        channel.subscribe(None, _broken)
        channel.subscribe(None, received.append)
        channel.publish({EntityClass.DOCUMENTS})

        assert received == [EntityClass.DOCUMENTS]
        failures = [r for r in captured_logs() if r["message"] == "invalidation_subscriber_failed"]
        assert failures[0]["entity_class"] == "documents"

    def test_publish_order_is_stable(self):
        channel = InvalidationBus()
        received = []
        channel.subscribe(None, received.append)

        channel.publish({EntityClass.PERIODS, EntityClass.ACCOUNTS, EntityClass.ENTRIES})

        assert received == [EntityClass.ACCOUNTS, EntityClass.ENTRIES, EntityClass.PERIODS]


class TestInstall:
    def test_second_install_returns_wired_bus(self, bus, session_factory):
        received = []
        bus.subscribe(None, received.append)

        assert install_invalidation_listeners(session_factory, InvalidationBus()) is bus

        with session_scope(session_factory) as session:
            AccountService(session).create_account("1900", "misc", AccountType.ASSET)

        assert received == [EntityClass.ACCOUNTS, EntityClass.AUDIT]
