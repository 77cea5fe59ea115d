import json
from datetime import date as date_cls
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import TypeAdapter, ValidationError
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import get_current_user
from database import create_document, get_db, get_documents, parse_object_id, serialize_document, to_object_ids
from lifecycle import (
    REUPLOADABLE,
    USER_CANCELLABLE,
    check_transition,
    claim_payment_proof,
    item_ids,
    mark_items_sold,
    notify_admin,
    proof_digest,
    release_payment_proof,
    short_order_ref,
    transition_order,
)
from logger import logger
from schemas import Address, CurrentUser, LivestockStatus, Order, OrderItem, OrderStatus
from uploads import read_image_upload

router = APIRouter(prefix="/api/orders", tags=["orders"])

# Proof bytes are only served to admins through the proof endpoint
NO_PROOF_DATA = {"payment_proof.data": 0}

_order_items = TypeAdapter(List[OrderItem])


def serialize_order(doc: dict) -> dict:
    out = serialize_document(doc)
    proof = out.pop("payment_proof", None)
    out["has_payment_proof"] = bool(proof)
    if proof:
        out["payment_proof"] = {"content_type": proof.get("content_type"), "sha256": proof.get("sha256")}
    return out


def _parse_json_field(raw: Optional[str], field: str):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail=f"{field} is not valid JSON")


def _user_oid(current_user: CurrentUser) -> ObjectId:
    oid = parse_object_id(current_user.id)
    if oid is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return oid


def _get_own_order(db: Database, order_id: str, user_oid: ObjectId) -> dict:
    oid = parse_object_id(order_id)
    order = db["order"].find_one({"_id": oid, "user_id": user_oid}, NO_PROOF_DATA) if oid else None
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _snapshot_items(db: Database, requested: List[OrderItem]) -> List[dict]:
    """Re-read the requested livestock and snapshot it from the catalog."""
    ids = list(dict.fromkeys(item.id for item in requested))
    docs = {
        str(d["_id"]): d
        for d in db["livestock"].find({"_id": {"$in": to_object_ids(ids)}}, {"images": 0})
    }
    missing = [i for i in ids if i not in docs]
    if missing:
        raise HTTPException(status_code=404, detail=f"Livestock not found: {', '.join(missing)}")
    sold = [docs[i]["name"] for i in ids if docs[i].get("status") != LivestockStatus.AVAILABLE.value]
    if sold:
        raise HTTPException(status_code=409, detail=f"No longer available: {', '.join(sold)}")
    return [
        {
            "_id": i,
            "name": docs[i].get("name", ""),
            "price": float(docs[i].get("price", 0)),
            "breed": docs[i].get("breed"),
            "type": docs[i].get("type"),
            "weight": docs[i].get("weight"),
        }
        for i in ids
    ]


@router.get("")
def list_my_orders(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        docs = get_documents(
            db, "order", {"user_id": _user_oid(current_user)},
            projection=NO_PROOF_DATA, sort=[("created_at", DESCENDING)],
        )
    except PyMongoError as e:
        logger.error(f"User Orders Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load orders")
    return [serialize_order(d) for d in docs]


@router.post("", status_code=201)
async def create_order(
    items: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    paymentProof: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    # Multipart bodies carry items and address as JSON strings
    raw_items = _parse_json_field(items, "items")
    if not raw_items or not isinstance(raw_items, list):
        raise HTTPException(status_code=400, detail="Order must contain at least one item")
    try:
        requested = _order_items.validate_python(raw_items)
        shipping = Address.model_validate(_parse_json_field(address, "address") or {})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid order data: {e.errors()[0].get('msg')}")

    user_oid = _user_oid(current_user)
    order_id = ObjectId()
    try:
        snapshot = _snapshot_items(db, requested)

        proof = None
        if paymentProof is not None:
            image = await read_image_upload(paymentProof)
            proof = {**image, "sha256": proof_digest(image["data"])}

        order = Order(
            customer=current_user.name,
            user_id=current_user.id,
            date=date or date_cls.today().isoformat(),
            items=snapshot,
            address=shipping,
            total=round(sum(i["price"] for i in snapshot), 2),
            status=OrderStatus.PROCESSING if proof else OrderStatus.PENDING,
            payment_proof=proof,
        )
        doc = order.model_dump(by_alias=True)
        doc["_id"] = order_id
        doc["user_id"] = user_oid

        if proof:
            claim_payment_proof(db, proof["sha256"], order_id, user_oid)
        try:
            create_document(db, "order", doc)
        except PyMongoError:
            if proof:
                release_payment_proof(db, proof["sha256"], order_id)
            raise

        mark_items_sold(db, item_ids(doc))
        db["user"].update_one({"_id": user_oid}, {"$set": {"cart": []}})
        notify_admin(
            db,
            title="New order",
            message=f"Order #{short_order_ref(order_id)} from {current_user.name} "
                    f"({len(snapshot)} item(s), total {doc['total']}) is {doc['status']}",
            kind="new_order",
            order_id=order_id,
        )
    except PyMongoError as e:
        logger.error(f"Order Create Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Order creation failed")

    logger.info(f"Order {order_id} created by {current_user.email} with status {doc['status']}")
    return serialize_order(db["order"].find_one({"_id": order_id}, NO_PROOF_DATA))


@router.put("/{order_id}/cancel")
def cancel_order(order_id: str, current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    order = _get_own_order(db, order_id, _user_oid(current_user))
    if order.get("status") not in {s.value for s in USER_CANCELLABLE}:
        raise HTTPException(status_code=400, detail="Cannot cancel order")
    try:
        transition_order(db, order, OrderStatus.CANCELLED, {"cancellation_reason": "Cancelled by customer"})
    except PyMongoError as e:
        logger.error(f"Cancel Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Cancellation failed")
    return {"success": True, "message": "Order cancelled & items restocked"}


@router.put("/{order_id}/reupload")
async def reupload_proof(
    order_id: str,
    paymentProof: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if paymentProof is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    user_oid = _user_oid(current_user)
    order = _get_own_order(db, order_id, user_oid)
    current = order.get("status")
    if current not in {s.value for s in REUPLOADABLE}:
        raise HTTPException(status_code=400, detail=f"Cannot upload a payment proof for a {current} order")

    image = await read_image_upload(paymentProof)
    digest = proof_digest(image["data"])
    proof = {**image, "sha256": digest}
    try:
        if current != OrderStatus.PROCESSING.value:
            # A rejected order's livestock may have been bought since
            check_transition(db, order, OrderStatus.PROCESSING)
        claim_payment_proof(db, digest, order["_id"], user_oid)

        if current == OrderStatus.PROCESSING.value:
            db["order"].update_one(
                {"_id": order["_id"]},
                {"$set": {"payment_proof": proof, "rejection_reason": ""}},
            )
        else:
            transition_order(db, order, OrderStatus.PROCESSING, {"payment_proof": proof, "rejection_reason": ""})

        notify_admin(
            db,
            title="Payment proof uploaded",
            message=f"{current_user.name} uploaded a payment proof for order #{short_order_ref(order['_id'])}",
            kind="proof_uploaded",
            order_id=order["_id"],
        )
    except PyMongoError as e:
        logger.error(f"Re-upload Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Re-upload failed")

    return {"success": True, "message": "Proof re-uploaded successfully"}
