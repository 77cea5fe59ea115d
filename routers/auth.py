from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import (
    clear_auth_cookie,
    create_access_token,
    get_current_user,
    hash_password,
    is_admin,
    set_auth_cookie,
    verify_password,
)
from config import settings
from database import create_document, get_db, parse_object_id
from logger import logger
from schemas import CurrentUser, LoginIn, RegisterIn, User, UserRole

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _public_user(doc: dict) -> dict:
    return {"id": str(doc["_id"]), "name": doc["name"], "email": doc["email"]}


@router.post("/register", status_code=201)
def register(payload: RegisterIn, response: Response, db: Database = Depends(get_db)):
    name = (payload.name or "").strip()
    email = (payload.email or "").strip().lower()
    if not name or not email or not payload.password:
        raise HTTPException(status_code=400, detail="All fields required")

    logger.info(f"Registration attempt for email: {email}")
    if db["user"].find_one({"email": email}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Email already exists")

    role = UserRole.ADMIN if email in settings.admin_emails else UserRole.USER
    try:
        user = User(name=name, email=email, password=hash_password(payload.password), role=role)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid email address")

    try:
        new_id = create_document(db, "user", user.model_dump())
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already exists")
    except PyMongoError as e:
        logger.error(f"Registration Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error during registration")

    doc = db["user"].find_one({"_id": parse_object_id(new_id)})
    set_auth_cookie(response, create_access_token(doc))
    logger.info(f"User registered: {email}")
    return {"user": _public_user(doc)}


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Database = Depends(get_db)):
    email = (payload.email or "").strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Credentials required")

    try:
        user = db["user"].find_one({"email": email})
    except PyMongoError as e:
        logger.error(f"Login Error: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error during login")

    if not user or not verify_password(payload.password, user.get("password")):
        logger.warning(f"Authentication failed for {email}")
        raise HTTPException(status_code=400, detail="Invalid credentials")

    set_auth_cookie(response, create_access_token(user))
    logger.info(f"User authenticated successfully: {email}")
    return {"user": _public_user(user)}


@router.get("/me")
def me(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    oid = parse_object_id(current_user.id)
    doc = db["user"].find_one({"_id": oid}, {"email": 1, "role": 1}) if oid else None
    return {"user": {**current_user.model_dump(), "is_admin": is_admin(doc)}}


@router.post("/logout")
def logout(response: Response):
    clear_auth_cookie(response)
    return {"message": "Logged out"}
