import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from squashmarker.database import init_db
from squashmarker.routes import tournaments

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Squash Marker Tournament API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])


@app.on_event("startup")
def on_startup():
    """Create tables on startup"""
    init_db()


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    return {"status": "ok"}
