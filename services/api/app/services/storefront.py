from __future__ import annotations

import threading

from services.api.app.services.cart_store import CartStore
from services.api.app.services.checkout import CheckoutService
from services.api.app.services.order_factory import OrderFactory
from services.api.app.services.order_queue import LocalOrderQueue
from services.api.app.services.order_tracker import OrderTracker
from services.api.app.services.slot_storage import SlotStorage, SqlSlotStorage
from services.api.app.services.sync import RemoteSyncClient
from services.api.app.services.sync_base import RemoteOrderClient
from services.api.app.services.sync_factory import get_remote_client


class Storefront:
    """Wires the cart-to-order components together for one app instance.

    Carts are kept per session id; everything else is shared.
    """

    def __init__(
        self,
        *,
        storage: SlotStorage,
        remote_client: RemoteOrderClient,
        factory: OrderFactory | None = None,
    ) -> None:
        self.remote_client = remote_client
        self.queue = LocalOrderQueue(storage)
        self.factory = factory or OrderFactory()
        self.sync = RemoteSyncClient(remote_client)
        self.tracker = OrderTracker(self.queue, self.sync)
        self.checkout = CheckoutService(factory=self.factory, queue=self.queue, sync=self.sync)

        self._carts: dict[str, CartStore] = {}
        self._carts_lock = threading.Lock()

    def cart_for(self, session_id: str) -> CartStore:
        with self._carts_lock:
            cart = self._carts.get(session_id)
            if cart is None:
                cart = CartStore()
                self._carts[session_id] = cart
            return cart


def build_storefront() -> Storefront:
    """Storefront backed by the configured database and remote client."""

    return Storefront(storage=SqlSlotStorage(), remote_client=get_remote_client())
