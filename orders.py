"""
Order lifecycle and access scoping.

Orders move NEW -> PAID, or to FAILED when they expire. Every transition
is a single conditional update against the store, so the status an order
had when the filter matched is the status the update was applied to.

What a caller may see is decided by `scope_filter`: administrators see
every order, everyone else only their own.
"""
import logging
from typing import List, Optional

from auth import CallerIdentity
from database import (
    create_document,
    find_one_and_update,
    get_document,
    get_document_by_id,
    get_documents,
    to_object_id,
)
from errors import InvalidRequest, NotFound, Unauthorized, ValidationError
from schemas import Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)

COLLECTION = "order"

# Newest first; _id breaks ties between orders created in the same millisecond
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def scope_filter(caller: CallerIdentity, status: Optional[OrderStatus] = None, **criteria) -> dict:
    """Build the query predicate limiting `caller` to the orders it may observe."""
    filt = dict(criteria)
    if not caller.is_admin:
        filt["user_id"] = caller.id
    if status is not None:
        filt["status"] = OrderStatus(status).value
    return filt


def all_statuses() -> List[str]:
    return [s.value for s in OrderStatus]


def order_total(items: List[OrderItem]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


def create_order(caller: CallerIdentity, items: List[OrderItem], name: Optional[str] = None,
                 address: Optional[str] = None, profile: Optional[dict] = None) -> dict:
    """
    Place a new order for `caller`.

    Name and address fall back to the caller's profile when not given.
    Raises ValidationError when the cart is empty.
    """
    if not items:
        raise ValidationError("Cart Is Empty!")

    profile = profile or {}
    order = Order(
        user_id=caller.id,
        name=name or profile.get("name", ""),
        address=address or profile.get("address", ""),
        items=items,
        total_price=order_total(items),
    )
    order_id = create_document(COLLECTION, order)
    logger.info(f"Order {order_id} created for user {caller.id} ({len(items)} items, total {order.total_price})")
    return get_document_by_id(COLLECTION, order_id)


def pay_order(caller: CallerIdentity, payment_id: str) -> str:
    """
    Record a payment against the caller's most recent NEW order.

    The payment id is stored as given. Returns the paid order's id.
    """
    order = find_one_and_update(
        COLLECTION,
        {"user_id": caller.id, "status": OrderStatus.NEW.value},
        {"payment_id": payment_id, "status": OrderStatus.PAID.value},
        sort=NEWEST_FIRST,
    )
    if not order:
        raise NotFound("Order Not Found!")
    logger.info(f"Order {order['_id']} paid by user {caller.id}")
    return order["_id"]


def next_status(is_paid: bool, is_expired: bool) -> OrderStatus:
    if is_expired:
        return OrderStatus.FAILED
    if is_paid:
        return OrderStatus.PAID
    raise InvalidRequest("Invalid status update. Either isPaid or isExpired must be true.")


def update_status(caller: CallerIdentity, order_id: str, is_paid: bool = False, is_expired: bool = False) -> dict:
    """
    Mark an order FAILED (expired) or PAID. Expiry takes precedence.

    Administrators only; customers reach PAID through `pay_order`.
    """
    if not caller.is_admin:
        raise Unauthorized()
    status = next_status(is_paid, is_expired)

    oid = to_object_id(order_id)
    if oid is None:
        raise NotFound("Order not found")
    order = find_one_and_update(COLLECTION, {"_id": oid}, {"status": status.value})
    if not order:
        raise NotFound("Order not found")
    logger.info(f"Order {order_id} status updated to {status.value} by {caller.id}")
    return order


def get_order(order_id: str) -> dict:
    order = get_document_by_id(COLLECTION, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def list_orders(caller: CallerIdentity, status: Optional[OrderStatus] = None) -> List[dict]:
    return get_documents(COLLECTION, scope_filter(caller, status), sort=NEWEST_FIRST)


def track_order(caller: CallerIdentity, order_id: str) -> dict:
    """
    Fetch an order the caller is allowed to see.

    Ordinary users cannot tell a missing order from someone else's: both
    are Unauthorized. Administrators get NotFound for a missing order.
    """
    oid = to_object_id(order_id)
    order = get_document(COLLECTION, scope_filter(caller, _id=oid)) if oid is not None else None
    if order:
        return order
    if caller.is_admin:
        raise NotFound("Order not found")
    raise Unauthorized()
