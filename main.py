import asyncio
import time
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import settings
from database import ensure_indexes, get_db
from logger import logger
from routers import admin, auth, livestock, orders, payment, user_state
from worker import run_expiry_worker_loop

STARTED_AT = time.time()

app = FastAPI(title="LivestockMart API")

# Cookies need credentials, so "*" is echoed back as the request origin
origins = settings.allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[] if origins == ["*"] else origins,
    allow_origin_regex=".*" if origins == ["*"] else None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logger.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
    except Exception as e:
        logger.exception("Unhandled error rid=%s: %s", rid, str(e))
        resp = JSONResponse({"detail": "Internal server error", "rid": rid}, status_code=500)
    logger.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
    resp.headers["X-Request-ID"] = rid
    return resp


app.include_router(auth.router)
app.include_router(user_state.router)
app.include_router(livestock.router)
app.include_router(orders.router)
app.include_router(payment.router)
app.include_router(admin.router)


@app.on_event("startup")
async def startup_event():
    logger.info("LivestockMart API starting up...")
    try:
        await asyncio.to_thread(ensure_indexes, get_db())
    except PyMongoError as e:
        logger.warning(f"Could not ensure indexes at startup: {str(e)}")

    if settings.EXPIRY_SWEEP_ENABLED:
        asyncio.create_task(run_expiry_worker_loop())


# -----------------------------
# Basic routes
# -----------------------------
@app.get("/")
def read_root():
    return {"message": "LivestockMart backend is running"}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        db.command("ping")
        database = "Connected"
    except PyMongoError:
        database = "Disconnected"
    return {"status": "UP", "uptime": round(time.time() - STARTED_AT, 1), "database": database}


# -----------------------------
# Schema endpoint (for viewers/tools)
# -----------------------------
@app.get("/schema")
def get_schema():
    from schemas import AdminNotification, Livestock, Order, User  # type: ignore
    return {
        "user": User.model_json_schema(),
        "livestock": Livestock.model_json_schema(),
        "order": Order.model_json_schema(),
        "admin_notification": AdminNotification.model_json_schema(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
