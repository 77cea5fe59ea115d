from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import get_db, get_documents, parse_object_id, serialize_document
from logger import logger

router = APIRouter(prefix="/api/livestock", tags=["catalog"])

# Image bytes are served by the image endpoints only
NO_IMAGE_DATA = {"images.data": 0}


def serialize_livestock(doc: dict) -> dict:
    out = serialize_document(doc)
    images = out.get("images") or []
    out["images"] = [{"content_type": img.get("content_type")} for img in images]
    out["image_count"] = len(images)
    return out


def list_livestock(db: Database, filters: Optional[dict] = None) -> list:
    docs = get_documents(db, "livestock", filters or {}, projection=NO_IMAGE_DATA, sort=[("created_at", DESCENDING)])
    return [serialize_livestock(d) for d in docs]


@router.get("")
def get_livestock(
    type: Optional[str] = None,
    status: Optional[str] = None,
    db: Database = Depends(get_db),
):
    filters = {}
    if type:
        filters["type"] = type
    if status:
        filters["status"] = status
    try:
        return list_livestock(db, filters)
    except PyMongoError as e:
        logger.error(f"Livestock list error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load livestock")


@router.get("/image/{livestock_id}")
def get_first_image(livestock_id: str, db: Database = Depends(get_db)):
    return get_image(livestock_id, 0, db)


@router.get("/image/{livestock_id}/{index}")
def get_image(livestock_id: str, index: int, db: Database = Depends(get_db)):
    oid = parse_object_id(livestock_id)
    if oid is None:
        raise HTTPException(status_code=404, detail="Invalid ID")
    doc = db["livestock"].find_one({"_id": oid}, {"images": 1})
    images = (doc or {}).get("images") or []
    if index < 0 or index >= len(images) or not images[index].get("data"):
        raise HTTPException(status_code=404, detail="Image not found")
    image = images[index]
    return Response(content=bytes(image["data"]), media_type=image.get("content_type") or "application/octet-stream")


@router.get("/{livestock_id}")
def get_livestock_item(livestock_id: str, db: Database = Depends(get_db)):
    oid = parse_object_id(livestock_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid livestock id")
    doc = db["livestock"].find_one({"_id": oid}, NO_IMAGE_DATA)
    if not doc:
        raise HTTPException(status_code=404, detail="Livestock not found")
    return serialize_livestock(doc)
