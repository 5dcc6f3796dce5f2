import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Environment is loaded by Pydantic Settings (see telecare.core.settings).
from telecare.api import register_routes
from telecare.core.dependencies import (
    get_chat_history_store,
    get_conversation_store,
    get_realtime_router,
    get_report_service,
)
from telecare.core.exceptions import register_exception_handlers
from telecare.core.logging import setup_logging
from telecare.core.settings import settings

# Initialize logging early so all modules inherit the handlers/level
setup_logging()

app = FastAPI(title=settings.app_name, debug=settings.debug)
register_exception_handlers(app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routes(app)

logger = logging.getLogger(__name__)
logger.info("Telecare API initialized")


@app.on_event("startup")
def _ensure_indexes_on_startup() -> None:
    """Ensure Mongo indexes exist once at boot.

    Best-effort: logs a warning on failure but does not block app startup.
    """
    stores = {
        "Conversation": get_conversation_store,
        "ChatHistory": get_chat_history_store,
        "Report": get_report_service,
    }
    for label, provider in stores.items():
        try:
            provider().ensure_indexes()
            logger.info("%s indexes ensured", label)
        except Exception as exc:  # pragma: no cover - external dependency
            logger.warning("Failed to ensure %s indexes: %s", label, exc)


@app.on_event("shutdown")
async def _close_realtime_connections() -> None:
    await get_realtime_router().close_all()
    logger.info("Realtime connections closed")
