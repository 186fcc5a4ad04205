# Overview: Service-layer operations for stores and products; tenant timezone resolution.

from __future__ import annotations

from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

from ..errors import AlreadyExists, FailedPrecondition, InvalidArgument
from ..models import Product, Store
from ..repositories import Repositories, default_repositories
from storeops.time_utils import current_clock, resolve_timezone


def _default_timezone() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_TIMEZONE", "UTC")
    return "UTC"


def store_timezone(repos: Repositories, store_id: str | None) -> ZoneInfo:
    """
    Timezone used to bucket a store's events into local days.

    Unknown stores and missing/invalid identifiers fall back to
    DEFAULT_TIMEZONE (UTC unless configured).
    """
    store = repos.stores.get(store_id) if store_id else None
    return resolve_timezone(store.timezone if store else None, default=_default_timezone())


def require_store(repos: Repositories, store_id: str) -> Store:
    store = repos.stores.get(store_id)
    if store is None:
        raise FailedPrecondition("Unknown store", details={"storeId": store_id})
    return store


def create_store(
    *,
    store_id: str,
    name: str,
    timezone: str | None = "UTC",
    repos: Repositories | None = None,
) -> Store:
    repos = repos or default_repositories()
    store_id = (store_id or "").strip()
    if not store_id:
        raise InvalidArgument("store_id is required")
    if repos.stores.get(store_id):
        raise AlreadyExists(f"Store {store_id} already exists")

    store = repos.stores.add(Store(id=store_id, name=name or store_id, timezone=timezone))
    repos.session.commit()
    return store


def create_product(
    *,
    product_id: str,
    store_id: str,
    name: str,
    price: float | None = None,
    stock_count: int = 0,
    reorder_threshold: int | None = None,
    repos: Repositories | None = None,
) -> Product:
    """
    Register a product with its opening stock.

    Opening stock is not a ledger movement; the ledger records changes
    made by commits from this point on.
    """
    repos = repos or default_repositories()
    product_id = (product_id or "").strip()
    if not product_id:
        raise InvalidArgument("product_id is required")
    if not repos.stores.get(store_id):
        raise FailedPrecondition(f"Store {store_id} not found")
    if repos.products.get(product_id):
        raise AlreadyExists(f"Product {product_id} already exists")

    product = repos.products.add(Product(
        id=product_id,
        store_id=store_id,
        name=name,
        price=price,
        stock_count=stock_count,
        reorder_threshold=reorder_threshold,
        updated_at=current_clock().now(),
    ))
    repos.session.commit()
    return product
