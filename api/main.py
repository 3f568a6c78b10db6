"""
FastAPI application for the vacant parcel feedback map.

Endpoints:
  GET   /parcels
  GET   /parcels/{parcel_id}/neighbors
  GET   /comments?parcelId=
  POST  /comments
  PATCH /comments/{comment_id}/vote
  GET   /comments/summary?parcelId=&mode=&debug=
  POST  /comments/summary
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import comments, parcels
from api.services import close_services, init_services
from storage.exceptions import NotFoundError, StorageError

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Init the store on startup, release it on shutdown."""
    init_services()
    yield
    close_services()


app = FastAPI(
    title="Parcel Feedback API",
    description="Vacant parcels, resident comments and planner summaries.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(parcels.router)
app.include_router(comments.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
