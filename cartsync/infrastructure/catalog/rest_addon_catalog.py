"""
Add-on catalog adapters

``RestAddonCatalog`` reads add-on definitions from the store REST API
(``GET /products/{id}``, ``addons`` field) and keeps them in the long-TTL
cache. ``StaticAddonCatalog`` serves fixed definitions.
"""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional

import httpx

from cartsync.domain.entities.addon import AddonDefinition, AddonOption, ProductAddons
from cartsync.domain.repositories.addon_catalog import AddonCatalog
from cartsync.domain.value_objects.addon_types import AddonType, PriceType
from cartsync.domain.value_objects.money import Money
from cartsync.domain.value_objects.product_id import ProductId
from cartsync.infrastructure.cache.cache_store import CacheManager
from cartsync.infrastructure.logging.logging_config import UpstreamRequestLog, log_performance
from cartsync.infrastructure.upstream.store_api_client import (
    build_http_client,
    rejection_from_response,
)
from cartsync.infrastructure.utilities.constants import UpstreamSettings
from cartsync.infrastructure.utilities.exceptions import UpstreamRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)


def _price(raw: Any, currency: str) -> Optional[Money]:
    if raw in (None, ""):
        return None
    try:
        return Money.from_major(Decimal(str(raw)), currency)
    except (InvalidOperation, ValueError):
        logger.warning("⚠️ Ignoring unparseable add-on price: %r", raw)
        return None


def _required(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes"}
    return bool(raw)


def parse_addon_definitions(raw_addons: Iterable[Mapping[str, Any]], currency: str = "USD") -> tuple:
    """Parse REST API add-on fields; unknown field types are skipped"""
    definitions = []
    for index, raw in enumerate(raw_addons or []):
        try:
            addon_type = AddonType.parse(raw.get("type") or raw.get("display") or "")
        except ValueError as e:
            logger.warning("⚠️ Skipping add-on %s: %s", raw.get("name"), e)
            continue

        field_id = raw.get("id") or raw.get("field_name") or f"addon-{index}"
        options = tuple(
            AddonOption(
                label=str(option.get("label") or ""),
                price=_price(option.get("price"), currency) or Money.zero(currency),
                price_type=PriceType.parse(option.get("price_type")),
            )
            for option in raw.get("options") or []
        )
        definitions.append(
            AddonDefinition(
                field_id=str(field_id),
                name=str(raw.get("name") or field_id),
                addon_type=addon_type,
                required=_required(raw.get("required")),
                price=_price(raw.get("price"), currency),
                price_type=PriceType.parse(raw.get("price_type")),
                options=options,
            )
        )
    return tuple(definitions)


def parse_product_addons(product_id: ProductId, payload: Any, currency: str = "USD") -> ProductAddons:
    """Build ProductAddons from a REST API product document"""
    if not isinstance(payload, dict):
        raise ValueError("Product payload must be an object")
    base_price = _price(payload.get("price"), currency) or Money.zero(currency)
    return ProductAddons(
        product_id=product_id.value,
        base_price=base_price,
        addons=parse_addon_definitions(payload.get("addons") or [], currency),
    )


class RestAddonCatalog(AddonCatalog):
    """Add-on definitions from the store REST API, cached with the long TTL"""

    def __init__(
        self,
        base_url: str,
        cache_manager: CacheManager,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        timeout: float = UpstreamSettings.DEFAULT_TIMEOUT_SECONDS,
        currency: str = "USD",
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        auth = None
        if consumer_key and consumer_secret:
            auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(base_url, timeout, transport, auth)
        self._cache_manager = cache_manager
        self._currency = currency
        self._logger = logging.getLogger(self.__class__.__name__)

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it"""
        if self._owns_client:
            await self._client.aclose()

    async def get_product_addons(self, product_id: ProductId) -> ProductAddons:
        """Get a product's add-on definitions, from cache when fresh"""
        cached = self._cache_manager.get_product_addons(product_id.value)
        if cached is not None:
            return cached

        path = UpstreamSettings.PRODUCT_PATH.format(product_id=product_id.value)
        started = time.perf_counter()
        status = "error"
        status_code = None
        try:
            try:
                response = await self._client.get(path, params={"context": "view"})
            except httpx.RequestError as e:
                raise UpstreamUnavailable(f"Cannot load add-ons for product {product_id}: {e}") from e

            status_code = response.status_code
            if status_code >= 500:
                raise UpstreamUnavailable(
                    f"Catalog returned HTTP {status_code} for product {product_id}",
                    status_code=status_code,
                )
            if status_code >= 400:
                raise rejection_from_response(response)

            try:
                product_addons = parse_product_addons(product_id, response.json(), self._currency)
            except ValueError as e:
                raise UpstreamUnavailable(f"Malformed product {product_id}: {e}") from e
            status = "success"
        finally:
            log_performance(
                UpstreamRequestLog(
                    method="GET",
                    endpoint=path,
                    response_time=time.perf_counter() - started,
                    status=status,
                    status_code=status_code,
                )
            )

        self._cache_manager.set_product_addons(product_id.value, product_addons)
        self._logger.info(
            "📦 Loaded %d add-on definitions for product %s", len(product_addons.addons), product_id
        )
        return product_addons


class StaticAddonCatalog(AddonCatalog):
    """Fixed in-memory catalog"""

    def __init__(self, products: Optional[Mapping[int, ProductAddons]] = None):
        self._products: Dict[int, ProductAddons] = dict(products or {})

    def register(self, product_addons: ProductAddons) -> None:
        """Add or replace a product"""
        self._products[product_addons.product_id] = product_addons

    async def get_product_addons(self, product_id: ProductId) -> ProductAddons:
        try:
            return self._products[product_id.value]
        except KeyError:
            raise UpstreamRejected(
                f"Product {product_id} not found", status_code=404, code="product_not_found"
            ) from None
