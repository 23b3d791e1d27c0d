# safedrop/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .config import settings
from .db import init_db
from .routers import (
    auth as auth_router,
    driver as driver_router,
    orders as orders_router,
    complaints as complaints_router,
    admin as admin_router,
    pages as pages_router,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="SafeDrop")

# --- CORS ---
allowed_origins = (
    [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
    if settings.ALLOWED_ORIGINS
    else ["*"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Sessions (the cached role lives here) ---
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.JWT_TTL_SEC,
    same_site=settings.COOKIE_SAMESITE,
    https_only=settings.COOKIE_SECURE,
)

# --- Routers ---
app.include_router(auth_router.router)
app.include_router(driver_router.router)
app.include_router(orders_router.router)
app.include_router(complaints_router.router)
app.include_router(admin_router.router)
app.include_router(pages_router.router)


@app.on_event("startup")
def on_startup():
    init_db()
