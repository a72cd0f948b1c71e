"""
App Console API - FastAPI application for starting and following project folder copies.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI

from storage_copy.db import init_db, close_db
from app.console.routers import copy_operations


# Lifecycle for Beanie initialization
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup Beanie connection."""
    await init_db()
    yield
    await close_db()


app = FastAPI(title="App Console - Storage Copy", lifespan=lifespan)

app.include_router(copy_operations.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
