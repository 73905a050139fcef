import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

import config
import realtime
from db import Base, SessionLocal, engine
from dependencies import get_db
from errors import InventoryError, RemoteFailure
from routers import ALL_ROUTERS
from state import AppState

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

Base.metadata.create_all(bind=engine)
realtime.feed.install(SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        app.state.store.refresh(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Zimmet ve Envanter API", lifespan=lifespan)
templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))
app.state.templates = templates
app.state.store = AppState(realtime.feed)

for r in ALL_ROUTERS:
    app.include_router(r)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if not isinstance(exc, RemoteFailure):
        logger.info("rejected path=%s status=%s detail=%s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def root():
    return {"message": "Zimmet ve Envanter API", "docs": "/docs", "ui": "/ui"}
