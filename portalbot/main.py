# portalbot/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
from .db import init_db
from .errors import install_error_handlers
from .logging_config import log_failure
from .settings import get_settings
from .ai.model_loader import get_registry
from .routes import chatbot, events, model_files, ops

settings = get_settings()

# Run schema init at import time so pytest cannot bypass it
init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    if settings.PRELOAD_MODEL:
        outcome = get_registry().load()
        if not outcome.ok:
            # keep serving; /chatbot/message apologises until a bundle exists
            log_failure(outcome.error.error_code, {"stage": "preload", "error": str(outcome.error)})

    yield


app = FastAPI(title="Portal Assistant API", version=settings.APP_VERSION, lifespan=lifespan)
install_error_handlers(app)

app.include_router(chatbot.router)
app.include_router(model_files.router)
app.include_router(ops.router)
app.include_router(events.router)


@app.get("/")
def health():
    return {"status": "ok", "service": "portalbot", "env": settings.ENV}
