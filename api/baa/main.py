
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routers import organization_baa, admin_baa, agreements
from .config import LOG_LEVEL
from .db import init_db
from .errors import BaaError

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="BAA Lifecycle API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
def on_startup():
    init_db()

@app.exception_handler(BaaError)
def handle_baa_error(request: Request, exc: BaaError):
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.payload())

app.include_router(organization_baa.router, prefix="/api/organizations", tags=["baa"])
app.include_router(admin_baa.router, prefix="/api/admin/baa", tags=["baa-admin"])
app.include_router(agreements.router, prefix="/api/agreements", tags=["agreements"])

@app.get("/")
def root():
    return {"ok": True, "service": "baa-api"}
