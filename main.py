import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import load_settings, mask_uri, validate_settings
from database import MongoStore
from errors import StoreError, SyncError
from logging_config import setup_logging
from schemas import TradeSyncRequest, UserSyncRequest
from service import SyncService

settings = load_settings()
setup_logging(settings.log_level)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Without a database the service is useless: any failure here aborts startup.
    validate_settings(settings)
    logger.info("Connecting to MongoDB: %s", mask_uri(settings.mongodb_uri))
    store = MongoStore(
        settings.mongodb_uri,
        settings.database_name,
        timeout_ms=settings.mongodb_timeout_ms,
        use_transactions=settings.mongodb_use_transactions,
    )
    try:
        store.connect()
    except StoreError as e:
        logger.error("MongoDB connection error: %s", e.message)
        raise
    app.state.store = store
    logger.info("Environment: %s", settings.app_env)
    try:
        yield
    finally:
        app.state.store = None
        store.close()


# FastAPI app
app = FastAPI(title="Trading Journal Sync API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies

def get_store(request: Request):
    return getattr(request.app.state, "store", None)


def get_service(store=Depends(get_store)) -> SyncService:
    return SyncService(store, environment=settings.app_env)


# Error envelope

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    if isinstance(exc, StoreError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:])
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return error_response(400, "; ".join(problems) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # A known path with the wrong verb is an unmatched route too.
    if exc.status_code in (404, 405):
        return error_response(404, "Route not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, str(exc))


# Routes
@app.get("/")
def read_root(service: SyncService = Depends(get_service)):
    return service.health()


@app.get("/api/trades/{telegram_id}")
def get_trades(telegram_id: str, service: SyncService = Depends(get_service)):
    trades, count = service.get_trades(telegram_id)
    return {"success": True, "trades": trades, "count": count}


@app.post("/api/users")
def sync_user(body: UserSyncRequest, service: SyncService = Depends(get_service)):
    user = service.upsert_user(
        body.telegramId,
        first_name=body.firstName,
        username=body.username,
        photo_url=body.photoUrl,
    )
    return {"success": True, "user": user.model_dump()}


@app.post("/api/trades")
def sync_trades(body: TradeSyncRequest, service: SyncService = Depends(get_service)):
    count = service.replace_trades(body.telegramId, body.trades)
    return {"success": True, "message": f"Synced {count} trades", "count": count}


@app.delete("/api/trades/{telegram_id}/{trade_id}")
def delete_trade(telegram_id: str, trade_id: str, service: SyncService = Depends(get_service)):
    service.delete_trade(telegram_id, trade_id)
    return {"success": True, "message": "Trade deleted"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
