"""
Authentication helpers.

Passwords are stored as bcrypt hashes. Sessions are stateless: a signed JWT
holding the user id, email and name travels in an HTTP-only cookie. There is
no refresh token and no revocation list; logging out only clears the cookie.
"""

from datetime import datetime, timedelta

import bcrypt
from fastapi import Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
from pymongo.database import Database

from config import settings
from database import get_db, parse_object_id
from logger import logger
from schemas import CurrentUser, UserRole


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash stored for this account
        return False


def create_access_token(user: dict, expires_delta: timedelta = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(user["_id"]),
        "id": str(user["_id"]),
        "email": user["email"],
        "name": user["name"],
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        max_age=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def get_current_user(request: Request) -> CurrentUser:
    token = request.cookies.get(settings.COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return CurrentUser(id=user_id, email=payload.get("email", ""), name=payload.get("name", ""))


def is_admin(user_doc: dict) -> bool:
    if not user_doc:
        return False
    if user_doc.get("role") == UserRole.ADMIN.value:
        return True
    return (user_doc.get("email") or "").lower() in settings.admin_emails


def admin_required(
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> CurrentUser:
    oid = parse_object_id(current_user.id)
    user_doc = db["user"].find_one({"_id": oid}, {"email": 1, "role": 1}) if oid else None
    if not is_admin(user_doc):
        logger.warning(f"Non-admin user attempted admin action: {current_user.email}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
