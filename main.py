from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import os

import structlog

from common.config import APP_NAME, APP_VER, ALLOWED_ORIGINS, OUTPUT_DIR
from common.errors import AppError
from common.log_config import configure_logging
from controllers.upload_controller import router as upload_router
from controllers.parts_controller import router as parts_router
from controllers.sync_controller import router as sync_router

configure_logging()
logger = structlog.get_logger(__name__)

APP_DESC = "Bulk inventory upload for Flying411: parse, map columns, match parts, review and import listings."

app = FastAPI(title=APP_NAME, description=APP_DESC, version=APP_VER)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):(5173|8501)",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(OUTPUT_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=OUTPUT_DIR), name="static")


@app.get("/health")
def health():
    return {"ok": True, "service": APP_NAME, "version": APP_VER}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning("request_failed", path=request.url.path, code=exc.code, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", []) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=422,
        content={"ok": False, "code": "VALIDATION_ERROR", "error": message,
                 "details": {"errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors]}},
    )


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "code": "UNHANDLED_ERROR", "error": str(exc)},
    )


app.include_router(upload_router, tags=["upload"])
app.include_router(parts_router, tags=["parts"])
app.include_router(sync_router, tags=["sync"])


@app.get("/")
def index():
    return {
        "ok": True,
        "message": f"{APP_NAME} is running.",
        "endpoints": [
            "/upload/session", "/upload/session/{id}/parse", "/upload/session/{id}/map",
            "/upload/session/{id}/mapping", "/upload/session/{id}/match", "/upload/session/{id}/rows",
            "/upload/session/{id}/import", "/upload/session/{id}/export", "/upload/sessions",
            "/parts/search", "/parts", "/sync/stats", "/sync/listings", "/sync/health",
            "/health", "/static/<file>",
        ],
    }
