"""
Storage port and its implementations.

    from resale_config import get_active_config
    from resale_kernel.store import store_scope

    with store_scope(get_active_config()) as store:
        LedgerService(store).khata(KhataFilter(customer_id=cid))
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from resale_kernel.logging_config import get_logger
from resale_kernel.store.base import (
    STORE_OPERATIONS,
    BillLineInput,
    KhataFilter,
    ResaleStore,
)
from resale_kernel.store.sqlalchemy_store import SqlAlchemyStore
from resale_kernel.store.unconfigured import UnconfiguredStore

if TYPE_CHECKING:
    from resale_config.schema import ResaleConfig

logger = get_logger("store")


@contextmanager
def store_scope(config: ResaleConfig) -> Iterator[ResaleStore]:
    """
    Yield the store for the configured database.

    Without a database URL the fail-fast UnconfiguredStore is yielded.
    Otherwise the engine is initialized (once per URL) and a
    SqlAlchemyStore runs inside ``session_scope()``: commit on success,
    rollback on error.
    """
    url = config.database.url
    if not url:
        logger.warning("store_not_configured_using_stub")
        yield UnconfiguredStore()
        return

    from resale_kernel.db import engine as db_engine
    from resale_kernel.db.immutability import register_immutability_listeners

    if db_engine.current_url() != url:
        db_engine.init_engine_from_url(url, echo=config.database.echo)
    register_immutability_listeners()

    with db_engine.session_scope() as session:
        yield SqlAlchemyStore(session)


__all__ = [
    "ResaleStore",
    "STORE_OPERATIONS",
    "KhataFilter",
    "BillLineInput",
    "SqlAlchemyStore",
    "UnconfiguredStore",
    "store_scope",
]
