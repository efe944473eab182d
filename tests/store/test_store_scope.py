"""
Tests for the storage port wiring.

Covers:
- UnconfiguredStore satisfies the protocol and fails fast on every call
- store_scope selects the stub without a database URL
- store_scope commits on success and rolls back on error
"""

from dataclasses import replace
from uuid import uuid4

import pytest

from resale_config.schema import DatabaseConfig, ResaleConfig
from resale_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from resale_kernel.db.immutability import unregister_immutability_listeners
from resale_kernel.exceptions import StoreNotConfiguredError
from resale_kernel.services import LedgerService, OrderService
from resale_kernel.store import (
    STORE_OPERATIONS,
    ResaleStore,
    SqlAlchemyStore,
    UnconfiguredStore,
    store_scope,
)


class TestUnconfiguredStore:
    def test_satisfies_protocol(self):
        assert isinstance(UnconfiguredStore(), ResaleStore)

    def test_sqlalchemy_store_satisfies_protocol(self, session):
        assert isinstance(SqlAlchemyStore(session), ResaleStore)

    @pytest.mark.parametrize("operation", sorted(STORE_OPERATIONS))
    def test_every_operation_fails_fast(self, operation):
        with pytest.raises(StoreNotConfiguredError) as exc_info:
            getattr(UnconfiguredStore(), operation)(uuid4())
        assert exc_info.value.operation == operation
        assert exc_info.value.code == "STORE_NOT_CONFIGURED"

    def test_service_surfaces_typed_error(self, seller_id):
        service = OrderService(UnconfiguredStore())
        with pytest.raises(StoreNotConfiguredError):
            service.list_orders(seller_id)

    def test_failure_logged(self, captured_logs):
        with pytest.raises(StoreNotConfiguredError):
            UnconfiguredStore().get_order(uuid4())
        logs = [r for r in captured_logs() if r["message"] == "store_not_configured"]
        assert logs[0]["operation"] == "get_order"


class TestStoreScope:
    @pytest.fixture
    def file_config(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'resale.db'}"
        init_engine_from_url(url)
        create_tables()
        yield ResaleConfig(config_id="test", version=1, database=DatabaseConfig(url=url))
        unregister_immutability_listeners()
        reset_engine()

    def test_no_url_yields_stub(self):
        config = ResaleConfig(config_id="test", version=1)
        with store_scope(config) as store:
            assert isinstance(store, UnconfiguredStore)

    def test_commits_on_success(self, file_config):
        with store_scope(file_config) as store:
            customer = LedgerService(store).create_customer(name="A", phone="0300")

        with store_scope(file_config) as store:
            assert LedgerService(store).get_customer(customer.id).name == "A"

    def test_rolls_back_on_error(self, file_config):
        with pytest.raises(RuntimeError):
            with store_scope(file_config) as store:
                LedgerService(store).create_customer(name="A", phone="0300")
                raise RuntimeError("boom")

        with store_scope(file_config) as store:
            assert LedgerService(store).list_customers() == []

    def test_reuses_initialized_engine(self, file_config, captured_logs):
        with store_scope(file_config):
            pass
        with store_scope(replace(file_config, checksum="x")):
            pass
        assert not any(r["message"] == "engine_initialized" for r in captured_logs())
