"""
Cart sync engine

Reconciles the upstream cart, which omits add-on prices, with the add-on
ledger and produces a price-complete CartView.

Refresh is single-flight: concurrent callers share one asyncio.Task and one
upstream ``get_cart``. Refresh flights and cart mutations take the same lock,
so a refresh that started before an add-item can never prune the key that
add-item is about to commit.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from cartsync.application.dtos.cart_dtos import CartOperationResponse
from cartsync.application.services.addon_resolution import (
    AddonInput,
    resolve_addon_selections,
)
from cartsync.domain.entities.addon import AddonSelection
from cartsync.domain.entities.cart import (
    AddonSource,
    CartLineItem,
    CartView,
    ServerCartSnapshot,
    ServerLineItem,
)
from cartsync.domain.repositories.addon_catalog import AddonCatalog
from cartsync.domain.repositories.cart_gateway import AddItemRequest, UpstreamCartGateway
from cartsync.domain.services.price_calculator import compute_cart_total
from cartsync.domain.value_objects.product_id import ProductId
from cartsync.infrastructure.cache.cache_store import CacheManager
from cartsync.infrastructure.logging.logging_config import get_structured_logger
from cartsync.infrastructure.persistence.addon_ledger import AddonLedger
from cartsync.infrastructure.utilities.exceptions import CartSyncError, ValidationError

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Engine state within one reconciliation cycle"""

    IDLE = "idle"
    REFRESHING = "refreshing"
    RECONCILED = "reconciled"


class CartSyncEngine:
    """
    Orchestrates the upstream cart, the add-on ledger and the cart cache

    Handles:
    1. Single-flight refresh and reconciliation
    2. Adding items with priced add-ons (two-phase ledger commit)
    3. Quantity, removal, coupon and shipping mutations
    4. Serving cached cart views
    """

    def __init__(
        self,
        client: UpstreamCartGateway,
        ledger: AddonLedger,
        catalog: AddonCatalog,
        cache_manager: CacheManager,
    ):
        self._client = client
        self._ledger = ledger
        self._catalog = catalog
        self._cache_manager = cache_manager

        self._state = SyncState.IDLE
        self._mutation_lock = asyncio.Lock()
        self._flight: Optional["asyncio.Task[CartView]"] = None
        self._flight_generation = -1
        self._mutation_generation = 0
        self._cycle = 0
        self._disposed = False

        self._logger = logging.getLogger(self.__class__.__name__)
        self._slog = get_structured_logger(__name__)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def ledger(self) -> AddonLedger:
        return self._ledger

    # Lifecycle

    def ensure_initialized(self) -> None:
        """Hydrate the ledger on first use; later calls are no-ops"""
        if self._disposed:
            raise RuntimeError("Cart engine has been disposed")
        if not self._ledger.is_hydrated:
            self._ledger.hydrate()

    def dispose(self) -> None:
        """Abandon any in-flight refresh and release the ledger"""
        if self._disposed:
            return
        self._disposed = True
        self._flight = None
        self._ledger.dispose()
        self._cache_manager.invalidate_cart_view()
        self._state = SyncState.IDLE
        self._logger.info("🛑 Cart engine disposed")

    # Refresh

    async def refresh(self) -> CartView:
        """Fetch and reconcile the cart, joining a refresh already in flight"""
        self.ensure_initialized()
        return await asyncio.shield(self._join_or_start_flight(min_generation=0))

    async def get_cart_view(self, allow_stale: bool = False) -> CartView:
        """
        Return the cached cart view when fresh, otherwise refresh.

        With ``allow_stale`` an expired view is returned immediately while a
        background refresh brings the cache up to date.
        """
        self.ensure_initialized()
        entry = self._cache_manager.get_cart_view_entry()
        if entry is not None:
            if self._cache_manager.is_cart_view_fresh():
                return entry.value
            if allow_stale:
                self._join_or_start_flight(min_generation=0)
                return entry.value
        return await self.refresh()

    def _join_or_start_flight(self, min_generation: int) -> "asyncio.Task[CartView]":
        flight = self._flight
        if flight is not None and not flight.done() and self._flight_generation >= min_generation:
            self._logger.debug("Joining in-flight cart refresh")
            return flight

        flight = asyncio.get_running_loop().create_task(self._run_flight())
        self._flight = flight
        self._flight_generation = self._mutation_generation
        flight.add_done_callback(self._on_flight_done)
        return flight

    def _on_flight_done(self, flight: "asyncio.Task[CartView]") -> None:
        if self._flight is flight:
            self._flight = None
        if flight.cancelled():
            return
        error = flight.exception()
        if error is not None:
            # marks the exception retrieved when every caller has gone away
            self._logger.debug("Cart refresh flight failed: %s", error)

    async def _run_flight(self) -> CartView:
        async with self._mutation_lock:
            cycle = self._next_cycle()
            self._state = SyncState.REFRESHING
            try:
                snapshot = await self._client.get_cart()
            except CartSyncError as e:
                self._slog.warning("cart_refresh_failed", cycle=cycle, error_code=e.error_code)
                raise
            finally:
                self._state = SyncState.IDLE
            return self._reconcile(snapshot, cycle)

    def _next_cycle(self) -> int:
        self._cycle += 1
        return self._cycle

    # Reconciliation

    def _reconcile(self, snapshot: ServerCartSnapshot, cycle: int) -> CartView:
        if self._disposed:
            raise RuntimeError("Cart engine has been disposed")
        log = self._slog.bind(cycle=cycle)

        pruned = self._ledger.sync_with_server_keys(snapshot.line_item_keys)

        items: List[CartLineItem] = []
        gap_keys: List[str] = []
        for server_item in snapshot.items:
            addons, source = self._line_addons(server_item)
            currency = server_item.base_unit_price.currency
            if source is not AddonSource.NONE and any(
                addon.unit_price.currency != currency for addon in addons
            ):
                self._logger.warning(
                    "⚠️ Add-ons of line %s are not priced in %s; priced at base only",
                    server_item.key,
                    currency,
                    extra={"cycle": cycle, "line_key": server_item.key},
                )
                addons, source = (), AddonSource.NONE
            elif source is AddonSource.NONE:
                self._logger.warning(
                    "⚠️ No add-on prices for line %s (%s); priced at base only",
                    server_item.key,
                    server_item.name,
                    extra={"cycle": cycle, "line_key": server_item.key},
                )
            if source is AddonSource.NONE:
                gap_keys.append(server_item.key)
            items.append(CartLineItem.build(server_item, addons, source))

        subtotal = compute_cart_total((item.line_total for item in items), snapshot.currency)
        totals = snapshot.totals
        view = CartView(
            items=tuple(items),
            subtotal=subtotal,
            grand_total=subtotal,
            server_total=totals.total,
            discount_total=totals.discount,
            shipping_total=totals.shipping,
            tax_total=totals.tax,
            coupons=snapshot.coupons,
            shipping_packages=snapshot.shipping_packages,
            items_count=snapshot.items_count,
            currency=snapshot.currency,
            gap_keys=tuple(gap_keys),
        )

        self._cache_manager.set_cart_view(view)
        self._state = SyncState.RECONCILED
        log.info(
            "cart_reconciled",
            lines=len(items),
            pruned=pruned,
            gaps=len(gap_keys),
            grand_total=view.grand_total.cents,
            server_total=totals.total.cents,
        )
        self._state = SyncState.IDLE
        return view

    def _line_addons(
        self, server_item: ServerLineItem
    ) -> Tuple[Tuple[AddonSelection, ...], AddonSource]:
        """Pick a line's add-ons: server prices, then the ledger, else none"""
        if server_item.has_addon_pricing:
            addons = tuple(server_item.server_addons)
            if tuple(self._ledger.get_item_addons(server_item.key)) != addons:
                self._ledger.set_item_addons(server_item.key, addons)
            return addons, AddonSource.SERVER
        if self._ledger.has_item(server_item.key):
            return tuple(self._ledger.get_item_addons(server_item.key)), AddonSource.LEDGER
        return (), AddonSource.NONE

    # Mutations

    async def add_item(
        self,
        product_id: Union[int, str, ProductId],
        quantity: int = 1,
        selections: Sequence[AddonInput] = (),
        variation_id: Optional[int] = None,
    ) -> CartView:
        """
        Add a product with add-ons.

        Add-on prices are resolved from the catalog before the upstream call and
        frozen into the ledger under the key the upstream assigns.
        """
        self.ensure_initialized()
        try:
            product = ProductId.parse(product_id)
        except ValueError as e:
            raise ValidationError(str(e), field="product_id") from e
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be a positive whole number", field="quantity")

        product_addons = await self._catalog.get_product_addons(product)
        resolved = resolve_addon_selections(
            product_addons.addons, selections, product_addons.base_price
        )
        request = AddItemRequest(
            product_id=product,
            quantity=quantity,
            addon_config=resolved.addon_config,
            variation_id=variation_id,
        )

        provisional_key = self._ledger.stage_provisional(resolved.selections)
        committed = False
        try:
            async with self._mutation_lock:
                cycle = self._next_cycle()
                self._state = SyncState.REFRESHING
                try:
                    prior = await self._client.get_cart()
                    snapshot = await self._client.add_item(request)
                finally:
                    self._state = SyncState.IDLE

                new_key = self._locate_new_key(prior, snapshot, product, quantity)
                if new_key is None:
                    self._logger.error(
                        "💥 Added product %s but no single cart line matches it; add-ons not recorded",
                        product,
                        extra={"cycle": cycle},
                    )
                else:
                    self._ledger.commit_provisional(provisional_key, new_key)
                    committed = True
                    self._slog.info(
                        "cart_item_added",
                        cycle=cycle,
                        product_id=product.value,
                        line_key=new_key,
                        addons=len(resolved.selections),
                    )
                self._mutation_generation += 1
        finally:
            if not committed:
                self._ledger.discard_provisional(provisional_key)

        return await asyncio.shield(
            self._join_or_start_flight(min_generation=self._mutation_generation)
        )

    @staticmethod
    def _locate_new_key(
        prior: ServerCartSnapshot,
        snapshot: ServerCartSnapshot,
        product_id: ProductId,
        quantity: int,
    ) -> Optional[str]:
        prior_keys = prior.line_item_keys
        new_items = [item for item in snapshot.items if item.key not in prior_keys]
        if new_items:
            same_product = [item for item in new_items if item.product_id == product_id.value]
            return (same_product or new_items)[-1].key
        # the upstream merged the addition into an existing line: only the
        # line that grew by exactly the added quantity can be it
        prior_quantities = {item.key: item.quantity for item in prior.items}
        grown = [
            item
            for item in snapshot.items
            if item.product_id == product_id.value
            and item.key in prior_quantities
            and item.quantity - prior_quantities[item.key] == quantity
        ]
        if len(grown) == 1:
            return grown[0].key
        return None

    async def update_item_quantity(self, key: str, quantity: int) -> CartView:
        """Change a line's quantity; zero removes the line"""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("Quantity must be a non-negative whole number", field="quantity")
        if quantity == 0:
            return await self.remove_item(key)
        return await self._mutate(
            "update_item", lambda: self._client.update_item(key, quantity)
        )

    async def remove_item(self, key: str) -> CartView:
        """Remove a line and its ledger entry"""
        return await self._mutate(
            "remove_item",
            lambda: self._client.remove_item(key),
            ledger_update=lambda: self._ledger.remove_item(key),
        )

    async def empty_cart(self) -> CartView:
        """Remove every line and clear the ledger"""
        return await self._mutate(
            "empty_cart", self._client.clear_cart, ledger_update=self._ledger.clear_all
        )

    async def apply_coupon(self, code: str) -> CartView:
        """Apply a coupon code"""
        code = self._require_text(code, "code")
        return await self._mutate("apply_coupon", lambda: self._client.apply_coupon(code))

    async def remove_coupon(self, code: str) -> CartView:
        """Remove a coupon code"""
        code = self._require_text(code, "code")
        return await self._mutate("remove_coupon", lambda: self._client.remove_coupon(code))

    async def select_shipping_rate(self, package_id: int, rate_id: str) -> CartView:
        """Choose a shipping rate"""
        rate_id = self._require_text(rate_id, "rate_id")
        return await self._mutate(
            "select_shipping_rate",
            lambda: self._client.select_shipping_rate(package_id, rate_id),
        )

    @staticmethod
    def _require_text(value: str, field: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required", field=field)
        return value.strip()

    async def _mutate(
        self,
        operation: str,
        call: Callable[[], Awaitable[ServerCartSnapshot]],
        ledger_update: Optional[Callable[[], object]] = None,
    ) -> CartView:
        """Run an upstream mutation and reconcile the cart it returns"""
        self.ensure_initialized()
        async with self._mutation_lock:
            cycle = self._next_cycle()
            self._state = SyncState.REFRESHING
            try:
                snapshot = await call()
            except CartSyncError:
                self._logger.warning("❌ Cart %s failed", operation, extra={"cycle": cycle})
                raise
            finally:
                self._state = SyncState.IDLE
            if ledger_update is not None:
                ledger_update()
            self._mutation_generation += 1
            return self._reconcile(snapshot, cycle)

    # Result wrapper

    async def execute_safely(
        self, operation: Callable[[], Awaitable[CartView]], name: str = "cart_operation"
    ) -> CartOperationResponse:
        """Run an engine operation and convert typed errors into a response"""
        try:
            view = await operation()
        except CartSyncError as e:
            self._logger.warning("⚠️ %s failed: %s", name, e)
            return CartOperationResponse(
                success=False,
                cart=self.cached_view(),
                error_message=e.user_message,
                error_code=e.error_code,
                retryable=e.retryable,
            )
        return CartOperationResponse(success=True, cart=view)

    def cached_view(self) -> Optional[CartView]:
        """Last reconciled view, fresh or stale"""
        entry = self._cache_manager.get_cart_view_entry()
        return entry.value if entry is not None else None

    def addons_for(self, key: str) -> List[AddonSelection]:
        """Ledger add-ons recorded for a line"""
        return self._ledger.get_item_addons(key)
