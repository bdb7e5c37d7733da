"""Shared fixtures: every test runs against in-memory storage."""

import json

import pytest

from savings_store.audit import AuditLogger
from savings_store.exchange import BackupExchanger
from savings_store.migration import LegacyMigrator
from savings_store.models import Customer, Transaction
from savings_store.services.storage import InMemoryStorage
from savings_store.snapshot import SnapshotStore


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage):
    return SnapshotStore(storage, audit_logger=AuditLogger())


@pytest.fixture
def migrator(store):
    return LegacyMigrator(store)


@pytest.fixture
def exchanger(store):
    return BackupExchanger(store)


@pytest.fixture
def snapshot(store):
    return store.load()


@pytest.fixture
def populated(store, snapshot):
    """A loaded snapshot with two customers and three transactions, saved."""
    snapshot.customers = [
        Customer(id=101, name="Ada", balance_savings=30.0),
        Customer(id=102, name="Bayo", balance_savings=500.0),
    ]
    snapshot.transactions = [
        Transaction(tx_id=1001, customer_id=101, type="DAILY", amount=50.0),
        Transaction(tx_id=1002, customer_id=101, type="WITHDRAWAL", amount=20.0),
        Transaction(tx_id=1003, customer_id=102, type="MONTHLY", amount=500.0),
    ]
    result = store.save(snapshot)
    assert result.success
    return snapshot


@pytest.fixture
def put_legacy(storage):
    """Write 2.2 records under the legacy prefix."""
    def _put(**records):
        for name, value in records.items():
            storage.set("obata_" + name, json.dumps(value))
    return _put
