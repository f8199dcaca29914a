# scholarcast/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
from .db import Base, engine
from . import models  # noqa: F401  (registers tables on Base.metadata)
from .ai.model_cache import ModelWeightsCache
from .errors import install_error_handlers
from .logging_config import log_event
from .services.auto_training import AutoTrainingState
from .routes import events, ops, predictions, training
from .settings import get_settings

settings = get_settings()


def _ensure_db_ready() -> None:
    # guaranteed schema init for pytest + local runs
    Base.metadata.create_all(bind=engine)


# Run schema init at import time so pytest cannot bypass it
_ensure_db_ready()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_db_ready()
    log_event("STARTUP", "scholarcast api ready", {"env": settings.ENV, "version": settings.APP_VERSION})
    yield
    app.state.model_cache.invalidate()


app = FastAPI(title="Scholarcast API", version=settings.APP_VERSION, lifespan=lifespan)
app.state.model_cache = ModelWeightsCache(ttl_seconds=settings.MODEL_CACHE_TTL_SECONDS)
app.state.auto_training = AutoTrainingState.from_settings(settings)

install_error_handlers(app)

app.include_router(predictions.router)
app.include_router(training.router)
app.include_router(ops.router)
app.include_router(events.router)


@app.get("/")
def health():
    return {"status": "ok", "service": "scholarcast"}
