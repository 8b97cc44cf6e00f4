"""
Order Service
=============
Place / dry-run / cancel / cancel-replace / complex orders on top of the
request pipeline.

Every submission is validated locally first; a structural problem raises
BrokerOrderValidationException before any network call.

Cancel-replace gotcha: the PUT succeeds but its response does not reliably
identify the replacement order. We poll the live orders afterwards and
pick the one that looks like the replacement (see _find_replacement).
This is best-effort: if nothing matches, the PUT response is returned
unchanged with reconciled=False.
"""

import logging
from typing import List, Optional, Union

from tastyclient.config import Config
from tastyclient.services.broker.exceptions import BrokerCancelledException, BrokerException
from tastyclient.services.broker.order_models import (
    AnyOrder,
    ComplexOrderRequest,
    ComplexOrderResponse,
    Order,
    OrderList,
    OrderRequest,
    OrderResponse,
    OrderStatus,
)
from tastyclient.services.broker.order_validator import validate_complex_order, validate_order
from tastyclient.utils import cancellation

logger = logging.getLogger(__name__)

# Statuses a freshly created replacement order can be in
REPLACEMENT_STATUSES = (OrderStatus.RECEIVED, OrderStatus.WORKING, OrderStatus.LIVE)


class OrderService:
    """Order lifecycle operations for one BrokerClient."""

    def __init__(self, client, reconcile_attempts: int = None, reconcile_base_delay: float = None):
        self.client = client
        self.reconcile_attempts = (
            Config.RECONCILE_ATTEMPTS if reconcile_attempts is None else reconcile_attempts
        )
        self.reconcile_base_delay = (
            Config.RECONCILE_BASE_DELAY if reconcile_base_delay is None else reconcile_base_delay
        )

    # ─── Submission ─────────────────────────────────────────────────

    def place_order(self, account_number: str, order: AnyOrder, cancel=None) -> OrderResponse:
        """Validate and submit an order.

        The account number is stamped onto a copy; the caller's order is
        left untouched.
        """
        request = self._prepare(account_number, order)
        response = self.client._request(
            'POST', f'/accounts/{account_number}/orders',
            body=request.to_payload(), model=OrderResponse, cancel=cancel,
        )
        logger.info(
            f"Order placed: id={response.order.id}, status={response.order.status}, "
            f"account={account_number}"
        )
        return response

    def dry_run_order(self, account_number: str, order: AnyOrder, cancel=None) -> OrderResponse:
        """Submit to the dry-run endpoint: fees, buying-power effect and
        warnings, without creating a live order.

        Local validation still runs so malformed orders fail fast.
        """
        request = self._prepare(account_number, order)
        response = self.client._request(
            'POST', f'/accounts/{account_number}/orders/dry-run',
            body=request.to_payload(), model=OrderResponse, cancel=cancel,
        )
        if response.warnings:
            logger.info(f"Dry-run warnings for {account_number}: "
                        f"{[w.message for w in response.warnings]}")
        return response

    def _prepare(self, account_number: str, order: AnyOrder) -> OrderRequest:
        request = validate_order(order)
        return request.model_copy(update={'account_number': account_number})

    # ─── Reads ──────────────────────────────────────────────────────

    def get_order(self, account_number: str, order_id: int, cancel=None) -> Order:
        return self.client._request(
            'GET', f'/accounts/{account_number}/orders/{order_id}',
            model=Order, cancel=cancel,
        )

    def get_live_orders(self, account_number: str, cancel=None) -> List[Order]:
        """Orders created or updated today (working and recently terminal)."""
        result = self.client._request(
            'GET', f'/accounts/{account_number}/orders/live',
            model=OrderList, cancel=cancel,
        )
        return result.items

    # ─── Cancel / replace ───────────────────────────────────────────

    def cancel_order(self, account_number: str, order_id: int, cancel=None):
        """Request cancellation. Success means the API accepted the request."""
        self.client._request(
            'DELETE', f'/accounts/{account_number}/orders/{order_id}', cancel=cancel,
        )
        logger.info(f"Cancel requested: order={order_id}, account={account_number}")

    def cancel_replace_order(self, account_number: str, order_id: int, new_order: AnyOrder,
                             cancel=None) -> OrderResponse:
        """Replace a live order and try to locate the replacement.

        Returns:
            OrderResponse whose `order` is the replacement when it was found
            (reconciled=True), otherwise the PUT response as received
            (reconciled=False). A missing replacement is never an error.
        """
        request = self._prepare(account_number, new_order)

        # Leg signature of the original, used to recognize the replacement
        original = self.get_order(account_number, order_id, cancel=cancel)

        response = self.client._request(
            'PUT', f'/accounts/{account_number}/orders/{order_id}',
            body=request.to_payload(), model=OrderResponse, cancel=cancel,
        )
        logger.info(f"Cancel-replace accepted: order={order_id}, account={account_number}")

        replacement = self._reconcile(account_number, original, request, cancel)
        if replacement is None:
            logger.warning(
                f"Cancel-replace of order {order_id}: replacement not found after "
                f"{self.reconcile_attempts} attempts, returning unreconciled response"
            )
            return response

        logger.info(f"Cancel-replace of order {order_id} reconciled to order {replacement.id}")
        return response.model_copy(update={'order': replacement, 'reconciled': True})

    def _reconcile(self, account_number: str, original: Order, request: OrderRequest, cancel) -> Optional[Order]:
        """Poll live orders with increasing delay until the replacement shows up."""
        for attempt in range(1, self.reconcile_attempts + 1):
            try:
                cancellation.sleep(cancel, self.reconcile_base_delay * attempt, "cancel-replace reconciliation")
                live_orders = self.get_live_orders(account_number, cancel=cancel)
            except BrokerCancelledException:
                logger.warning(f"Reconciliation cancelled (attempt {attempt})")
                return None
            except BrokerException as e:
                logger.warning(f"Reconciliation poll failed (attempt {attempt}): {e}")
                continue

            match = self._find_replacement(live_orders, original, request)
            if match is not None:
                return match
        return None

    @staticmethod
    def _find_replacement(live_orders, original: Order, request: OrderRequest) -> Optional[Order]:
        """Pick the live order that most plausibly replaced `original`.

        A candidate must: not be the original; be Received/Working/Live;
        carry the requested price (when one was requested); have exactly
        the original legs (symbols and quantities).

        NOTE: an unrelated order with identical legs and price placed at the
        same moment would also match; the API offers no idempotency key.
        """
        signature = original.leg_signature
        for candidate in live_orders:
            if candidate.id == original.id:
                continue
            if candidate.status not in REPLACEMENT_STATUSES:
                continue
            if request.price is not None and candidate.price != request.price:
                continue
            if candidate.leg_signature != signature:
                continue
            return candidate
        return None

    # ─── Complex orders ─────────────────────────────────────────────

    def place_complex_order(self, account_number: str, complex_order: Union[ComplexOrderRequest, dict],
                            cancel=None) -> ComplexOrderResponse:
        """Submit an OCO / OTO / OTOCO bundle after structural checks."""
        request = validate_complex_order(complex_order)
        response = self.client._request(
            'POST', f'/accounts/{account_number}/complex-orders',
            body=request.to_payload(), model=ComplexOrderResponse, cancel=cancel,
        )
        logger.info(
            f"Complex order placed: id={response.complex_order.id}, "
            f"type={request.type.value}, account={account_number}"
        )
        return response

    def dry_run_complex_order(self, account_number: str, complex_order: Union[ComplexOrderRequest, dict],
                              cancel=None) -> ComplexOrderResponse:
        request = validate_complex_order(complex_order)
        return self.client._request(
            'POST', f'/accounts/{account_number}/complex-orders/dry-run',
            body=request.to_payload(), model=ComplexOrderResponse, cancel=cancel,
        )
