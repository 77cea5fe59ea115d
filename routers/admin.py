from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from pydantic import ValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import admin_required
from database import create_document, get_db, get_documents, parse_object_id, serialize_document
from lifecycle import notify_user, short_order_ref, transition_order
from logger import logger
from routers.livestock import NO_IMAGE_DATA, list_livestock, serialize_livestock
from routers.orders import NO_PROOF_DATA, serialize_order
from schemas import Livestock, LivestockStatus, OrderStatus, OrderStatusIn, RejectIn
from uploads import read_image_upload

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(admin_required)])


def _require_oid(value: str, what: str):
    oid = parse_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail=f"Invalid {what} id")
    return oid


def parse_price(raw: str) -> float:
    try:
        price = float(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Price must be a number")
    if price < 0:
        raise HTTPException(status_code=400, detail="Price must not be negative")
    return price


def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def parse_status(raw: Optional[str]) -> str:
    if not raw:
        return LivestockStatus.AVAILABLE.value
    try:
        return LivestockStatus(raw.strip()).value
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown livestock status '{raw}'")


async def _read_images(images: Optional[List[UploadFile]], image: Optional[UploadFile]) -> List[dict]:
    uploads = list(images or [])
    if image is not None:
        uploads.insert(0, image)
    return [await read_image_upload(u) for u in uploads]


# -----------------------------
# Inventory
# -----------------------------
@router.get("/livestock")
def admin_list_livestock(db: Database = Depends(get_db)):
    try:
        return {"livestock": list_livestock(db)}
    except PyMongoError as e:
        logger.error(f"Admin Livestock Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load livestock")


@router.post("/livestock", status_code=201)
async def admin_create_livestock(
    name: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    breed: str = Form(""),
    age: str = Form(""),
    weight: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    if not name or not type or not price:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        item = Livestock(
            name=name.strip(),
            type=type.strip(),
            breed=breed,
            age=age,
            weight=weight or "N/A",
            price=parse_price(price),
            tags=parse_tags(tags),
            status=parse_status(status),
            images=await _read_images(images, image),
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid livestock data: {e.errors()[0].get('msg')}")

    try:
        new_id = create_document(db, "livestock", item.model_dump())
    except PyMongoError as e:
        logger.error(f"Admin Add Item Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to add livestock")

    logger.info(f"Livestock {new_id} added: {item.name} ({item.type}) with {len(item.images)} image(s)")
    return serialize_livestock(db["livestock"].find_one({"_id": parse_object_id(new_id)}, NO_IMAGE_DATA))


@router.put("/livestock/{livestock_id}")
async def admin_update_livestock(
    livestock_id: str,
    name: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    breed: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    weight: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    oid = _require_oid(livestock_id, "livestock")

    updates = {k: v for k, v in {"name": name, "type": type, "breed": breed, "age": age, "weight": weight}.items()
               if v is not None}
    if price is not None:
        updates["price"] = parse_price(price)
    if tags is not None:
        updates["tags"] = parse_tags(tags)
    if status is not None:
        updates["status"] = parse_status(status)
    new_images = await _read_images(images, image)
    if new_images:
        updates["images"] = new_images
    updates["updated_at"] = datetime.utcnow()

    try:
        doc = db["livestock"].find_one_and_update(
            {"_id": oid},
            {"$set": updates},
            projection=NO_IMAGE_DATA,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        logger.error(f"Admin Update Item Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Update failed")
    if not doc:
        raise HTTPException(status_code=404, detail="Livestock not found")
    logger.info(f"Livestock {livestock_id} updated: {sorted(k for k in updates if k != 'updated_at')}")
    return serialize_livestock(doc)


@router.delete("/livestock/{livestock_id}", status_code=204)
def admin_delete_livestock(livestock_id: str, db: Database = Depends(get_db)):
    oid = _require_oid(livestock_id, "livestock")
    try:
        result = db["livestock"].delete_one({"_id": oid})
    except PyMongoError as e:
        logger.error(f"Admin Delete Item Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Delete failed")
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Livestock not found")
    logger.info(f"Livestock {livestock_id} deleted")
    return Response(status_code=204)


# -----------------------------
# Orders
# -----------------------------
def _get_order(db: Database, order_id: str) -> dict:
    order = db["order"].find_one({"_id": _require_oid(order_id, "order")}, NO_PROOF_DATA)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.get("/orders")
def admin_list_orders(status: Optional[str] = None, db: Database = Depends(get_db)):
    try:
        docs = get_documents(
            db, "order", {"status": status} if status else {},
            projection=NO_PROOF_DATA, sort=[("created_at", DESCENDING)],
        )
    except PyMongoError as e:
        logger.error(f"Admin Orders Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load orders")
    return {"orders": [serialize_order(d) for d in docs]}


@router.get("/orders/proof/{order_id}")
def admin_get_payment_proof(order_id: str, db: Database = Depends(get_db)):
    oid = parse_object_id(order_id)
    order = db["order"].find_one({"_id": oid}, {"payment_proof": 1}) if oid else None
    proof = (order or {}).get("payment_proof") or {}
    if not proof.get("data"):
        raise HTTPException(status_code=404, detail="No proof found")
    return Response(content=bytes(proof["data"]), media_type=proof.get("content_type") or "application/octet-stream")


@router.put("/orders/{order_id}/reject")
def admin_reject_order(order_id: str, payload: RejectIn, db: Database = Depends(get_db)):
    order = _get_order(db, order_id)
    reason = (payload.reason or "").strip() or "Invalid payment proof."
    try:
        transition_order(db, order, OrderStatus.PAYMENT_REJECTED, {"rejection_reason": reason})
        notify_user(
            db,
            order["user_id"],
            title="Payment Rejected",
            message=f"Order #{short_order_ref(order['_id'])} proof rejected: {reason}",
            icon="alert-circle",
            color="red",
        )
    except PyMongoError as e:
        logger.error(f"Reject Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Reject failed")
    return {"success": True, "message": "Order rejected and user notified"}


@router.put("/orders/{order_id}")
def admin_update_order_status(order_id: str, payload: OrderStatusIn, db: Database = Depends(get_db)):
    order = _get_order(db, order_id)
    extra = {"cancellation_reason": "Cancelled by admin"} if payload.status == OrderStatus.CANCELLED else None
    try:
        transition_order(db, order, payload.status, extra)
        notify_user(
            db,
            order["user_id"],
            title="Order update",
            message=f"Order #{short_order_ref(order['_id'])} is now {payload.status.value}",
            icon="package",
            color="green" if payload.status in (OrderStatus.SOLD, OrderStatus.DELIVERED) else "blue",
        )
    except PyMongoError as e:
        logger.error(f"Admin Order Update Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Update failed")
    return serialize_order(db["order"].find_one({"_id": order["_id"]}, NO_PROOF_DATA))


# -----------------------------
# Users
# -----------------------------
@router.get("/users")
def admin_list_users(db: Database = Depends(get_db)):
    try:
        docs = get_documents(
            db, "user", projection={"name": 1, "email": 1, "role": 1, "created_at": 1},
            sort=[("created_at", DESCENDING)],
        )
    except PyMongoError as e:
        logger.error(f"Admin Users Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load users")
    return {"users": [serialize_document(d) for d in docs]}


# -----------------------------
# Admin notifications
# -----------------------------
@router.get("/notifications")
def admin_list_notifications(unseen: bool = False, db: Database = Depends(get_db)):
    docs = get_documents(
        db, "admin_notification", {"seen": False} if unseen else {},
        sort=[("created_at", DESCENDING)],
    )
    return {"notifications": [serialize_document(d) for d in docs]}


@router.put("/notifications/seen")
def admin_mark_all_seen(db: Database = Depends(get_db)):
    result = db["admin_notification"].update_many({"seen": False}, {"$set": {"seen": True}})
    return {"success": True, "count": result.modified_count}


@router.put("/notifications/{notification_id}/seen")
def admin_mark_seen(notification_id: str, db: Database = Depends(get_db)):
    result = db["admin_notification"].update_one(
        {"_id": _require_oid(notification_id, "notification")},
        {"$set": {"seen": True}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}
