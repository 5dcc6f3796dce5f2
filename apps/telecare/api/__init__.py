"""API router registration helpers.

Routers are imported lazily inside `register_routes` so that importing a
submodule (or collecting tests) does not build Mongo, Cloudinary or Gemini
clients as a side effect.
"""

from fastapi import FastAPI


def register_routes(app: FastAPI) -> None:
    """Attach all API routers (lazy imports)."""
    from telecare.api.chat.routes import router as chat_router
    from telecare.api.chat.routes import ws_router as chat_ws_router
    from telecare.api.chatbot.routes import router as chatbot_router
    from telecare.api.doctors.routes import router as doctors_router
    from telecare.api.files import router as files_router
    from telecare.api.health import router as health_router
    from telecare.api.reports.routes import router as reports_router

    routers = [
        health_router,
        chat_router,
        chat_ws_router,
        chatbot_router,
        doctors_router,
        reports_router,
        files_router,
    ]
    for router in routers:
        app.include_router(router)
