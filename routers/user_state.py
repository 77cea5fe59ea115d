from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import get_current_user
from database import get_db, parse_object_id
from logger import logger
from schemas import CurrentUser, UserStateIn

router = APIRouter(prefix="/api/user", tags=["user state"])

STATE_FIELDS = ("cart", "wishlist", "addresses", "notifications")


def _user_oid(current_user: CurrentUser):
    oid = parse_object_id(current_user.id)
    if oid is None:
        raise HTTPException(status_code=404, detail="User not found")
    return oid


@router.get("/state")
def get_state(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        user = db["user"].find_one({"_id": _user_oid(current_user)}, {f: 1 for f in STATE_FIELDS})
    except PyMongoError as e:
        logger.error(f"Get State Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load state")
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {f: user.get(f) or [] for f in STATE_FIELDS}


@router.put("/state")
def sync_state(
    payload: UserStateIn,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    # Only the keys the client sent are replaced
    dumped = payload.model_dump(by_alias=True)
    updates = {k: dumped[k] for k in payload.model_fields_set if dumped[k] is not None}
    oid = _user_oid(current_user)
    try:
        if updates:
            updates["updated_at"] = datetime.utcnow()
            result = db["user"].update_one({"_id": oid}, {"$set": updates})
            matched = result.matched_count
        else:
            matched = db["user"].count_documents({"_id": oid})
    except PyMongoError as e:
        logger.error(f"Sync State Error: {str(e)}")
        raise HTTPException(status_code=400, detail="Failed to save state")
    if not matched:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "State synchronized", "success": True}


@router.put("/notifications/seen")
def mark_notifications_seen(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    oid = _user_oid(current_user)
    user = db["user"].find_one({"_id": oid}, {"notifications": 1})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    notifications = [{**n, "seen": True} for n in user.get("notifications") or []]
    db["user"].update_one({"_id": oid}, {"$set": {"notifications": notifications}})
    return {"success": True, "count": len(notifications)}
