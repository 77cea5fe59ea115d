"""
Order lifecycle.

Status transitions and their side effects on inventory and notifications.
Every step is an independent write; nothing here is transactional. Order
updates filter on the status they expect to replace, so when two writers race
the second one finds nothing to update and is reported as a conflict.
"""

import hashlib
import time
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from fastapi import HTTPException, status
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import settings
from database import create_document, parse_object_id, to_object_ids
from logger import logger
from schemas import LivestockStatus, OrderStatus

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.PAYMENT_REJECTED},
    OrderStatus.PROCESSING: {OrderStatus.SOLD, OrderStatus.CANCELLED, OrderStatus.PAYMENT_REJECTED},
    OrderStatus.PAYMENT_REJECTED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.SOLD: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# Orders in these states no longer hold their livestock.
RELEASED_STATUSES = {OrderStatus.CANCELLED, OrderStatus.PAYMENT_REJECTED}

USER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.PROCESSING}
REUPLOADABLE = {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.PAYMENT_REJECTED}


def can_transition(current: str, target: str) -> bool:
    try:
        current_status = OrderStatus(current)
        target_status = OrderStatus(target)
    except ValueError:
        return False
    return target_status in ALLOWED_TRANSITIONS[current_status]


def short_order_ref(order_id) -> str:
    return str(order_id)[-6:]


def item_ids(order: dict) -> List[str]:
    return [item.get("_id") for item in order.get("items", []) if item.get("_id")]


# -----------------------------
# Inventory
# -----------------------------
def _set_livestock_status(db: Database, ids: Iterable[str], new_status: LivestockStatus) -> int:
    oids = to_object_ids(ids)
    if not oids:
        return 0
    result = db["livestock"].update_many(
        {"_id": {"$in": oids}},
        {"$set": {"status": new_status.value, "updated_at": datetime.utcnow()}},
    )
    return result.modified_count


def mark_items_sold(db: Database, ids: Iterable[str]) -> int:
    return _set_livestock_status(db, ids, LivestockStatus.SOLD)


def restock_items(db: Database, ids: Iterable[str]) -> int:
    return _set_livestock_status(db, ids, LivestockStatus.AVAILABLE)


def unavailable_items(db: Database, ids: Iterable[str]) -> List[str]:
    """Return the ids among `ids` that are unknown or not Available."""
    wanted = [str(i) for i in ids]
    found = db["livestock"].find({"_id": {"$in": to_object_ids(wanted)}}, {"status": 1})
    available = {str(d["_id"]) for d in found if d.get("status") == LivestockStatus.AVAILABLE.value}
    return [i for i in wanted if i not in available]


# -----------------------------
# Notifications
# -----------------------------
def notify_user(db: Database, user_id, title: str, message: str, icon: str = "bell", color: str = "blue") -> None:
    oid = user_id if not isinstance(user_id, str) else parse_object_id(user_id)
    if oid is None:
        return
    notification = {
        "id": f"ntf_{uuid.uuid4().hex[:12]}",
        "title": title,
        "message": message,
        "icon": icon,
        "color": color,
        "timestamp": int(time.time() * 1000),
        "seen": False,
    }
    db["user"].update_one({"_id": oid}, {"$push": {"notifications": notification}})


def notify_admin(db: Database, title: str, message: str, kind: str, order_id=None) -> str:
    return create_document(db, "admin_notification", {
        "title": title,
        "message": message,
        "kind": kind,
        "order_id": str(order_id) if order_id is not None else None,
        "seen": False,
    })


# -----------------------------
# Payment proofs
# -----------------------------
def proof_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def claim_payment_proof(db: Database, digest: str, order_id, user_id) -> None:
    """Bind a proof hash to an order.

    Re-claiming a hash for the same order is a no-op. A hash already bound to
    another order raises 409.
    """
    duplicate = HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="This payment proof has already been used for another order",
    )
    existing = db["payment_proof"].find_one({"hash": digest})
    if existing:
        if existing.get("order_id") == str(order_id):
            return
        logger.warning(f"Duplicate payment proof for order {order_id} (already used by {existing.get('order_id')})")
        raise duplicate
    try:
        create_document(db, "payment_proof", {
            "hash": digest,
            "order_id": str(order_id),
            "user_id": str(user_id),
        })
    except DuplicateKeyError:
        # Lost a race against another upload of the same image
        raise duplicate


def release_payment_proof(db: Database, digest: str, order_id) -> None:
    """Undo a claim whose order was never written."""
    db["payment_proof"].delete_one({"hash": digest, "order_id": str(order_id)})


# -----------------------------
# Transitions
# -----------------------------
def check_transition(db: Database, order: dict, target: OrderStatus) -> None:
    """Raise unless `order` may move to `target` right now.

    400 for a move the table does not allow. 409 when the move would take
    back livestock that a released order no longer holds and that has since
    left the Available pool.
    """
    previous = order.get("status")
    if not can_transition(previous, target.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Transition from {previous} to {target.value} is not allowed",
        )
    if OrderStatus(previous) in RELEASED_STATUSES and target not in RELEASED_STATUSES:
        taken = unavailable_items(db, item_ids(order))
        if taken:
            logger.warning(f"Order {order['_id']} cannot move to {target.value}, items taken: {', '.join(taken)}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Some items in this order are no longer available",
            )


def transition_order(db: Database, order: dict, target: OrderStatus, extra: Optional[dict] = None) -> str:
    """Move `order` to `target` and apply inventory side effects.

    Returns the previous status. Raises like `check_transition` before
    writing, and 409 when the order changed underneath us.
    """
    check_transition(db, order, target)
    previous = order.get("status")

    updates = {"status": target.value, "updated_at": datetime.utcnow()}
    if extra:
        updates.update(extra)
    result = db["order"].update_one({"_id": order["_id"], "status": previous}, {"$set": updates})
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order was modified, reload and retry")

    ids = item_ids(order)
    was_released = OrderStatus(previous) in RELEASED_STATUSES
    if target in RELEASED_STATUSES and not was_released:
        restocked = restock_items(db, ids)
        logger.info(f"Order {order['_id']} {previous} -> {target.value}, restocked {restocked} item(s)")
    elif was_released and target not in RELEASED_STATUSES:
        mark_items_sold(db, ids)
        logger.info(f"Order {order['_id']} {previous} -> {target.value}, items reserved again")
    else:
        logger.info(f"Order {order['_id']} {previous} -> {target.value}")
    return previous


def expire_stale_orders(db: Database, now: Optional[datetime] = None) -> int:
    """Cancel Pending orders older than the payment window. Returns how many were expired."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(minutes=settings.PENDING_ORDER_EXPIRY_MINUTES)
    stale = list(db["order"].find(
        {"status": OrderStatus.PENDING.value, "created_at": {"$lt": cutoff}},
        {"payment_proof": 0},
    ))

    expired = 0
    for order in stale:
        result = db["order"].update_one(
            {"_id": order["_id"], "status": OrderStatus.PENDING.value},
            {"$set": {
                "status": OrderStatus.CANCELLED.value,
                "cancellation_reason": "Payment window expired",
                "updated_at": now,
            }},
        )
        if result.modified_count == 0:
            # Paid, cancelled or moderated since we read it
            continue
        restock_items(db, item_ids(order))
        notify_admin(
            db,
            title="Order expired",
            message=f"Order #{short_order_ref(order['_id'])} from {order.get('customer', 'unknown')} "
                    f"was not paid within {settings.PENDING_ORDER_EXPIRY_MINUTES} minutes and was cancelled",
            kind="order_expired",
            order_id=order["_id"],
        )
        expired += 1
        logger.info(f"Expired pending order {order['_id']}")
    return expired
