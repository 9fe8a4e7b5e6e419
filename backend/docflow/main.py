import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

from docflow.config import settings
from docflow.database import engine, get_capabilities, init_db
from docflow.errors import DocflowError
from docflow.routers import auth, documents, goods_receipts, notifications, uploads, work_receipts
from docflow.utils.filesystem import ensure_upload_dirs

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("docflow")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create/migrate the schema, then resolve optional columns once.
    try:
        init_db(engine)
        get_capabilities(engine)
        ensure_upload_dirs()
    except Exception as exc:
        logger.error("Could not run startup migration: %s", exc)
        raise
    yield
    engine.dispose()


app = FastAPI(
    title="Docflow Receipts",
    description="Approval workflow for goods (BAPB) and work (BAPP) receipt documents",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(kind: str, message: str, exc: Exception | None = None, **extra) -> dict:
    body = {"error": kind, "message": message, **extra}
    if settings.debug_errors and exc is not None:
        body["detail"] = str(exc)
    return body


@app.exception_handler(DocflowError)
async def docflow_error_handler(request: Request, exc: DocflowError):
    extra = {}
    if getattr(exc, "current_status", None):
        extra["current_status"] = exc.current_status
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message, **extra))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body("validation_failed", "Invalid input", fields=fields),
    )


@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
async def storage_unavailable_handler(request: Request, exc: Exception):
    logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content=_error_body("unavailable", "The datastore is temporarily unavailable", exc),
    )


app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(goods_receipts.router, prefix=settings.api_prefix)
app.include_router(work_receipts.router, prefix=settings.api_prefix)
app.include_router(documents.router, prefix=settings.api_prefix)
app.include_router(uploads.router, prefix=settings.api_prefix)
app.include_router(notifications.router, prefix=settings.api_prefix)


@app.get(f"{settings.api_prefix}/health")
async def health():
    return {"status": "ok", "version": VERSION}
