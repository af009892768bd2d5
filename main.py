from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import chat_websocket, conversations
from app.chat import ChatRouter, SqlConversationStore, SqlMessageStore
from app.core.config import settings
from app.core.logging import configure_logging
from app.middleware.logging import LoggingMiddleware


def create_app(chat_router: Optional[ChatRouter] = None) -> FastAPI:
    """Build the application; ``chat_router`` overrides the database-backed one."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        router = chat_router
        if router is None:
            from app.core.database import SessionLocal

            router = ChatRouter(
                SqlConversationStore(SessionLocal),
                SqlMessageStore(SessionLocal),
                close_superseded=settings.CLOSE_SUPERSEDED_CONNECTIONS,
            )
        app.state.chat_router = router
        try:
            yield
        finally:
            await router.shutdown()

    app = FastAPI(
        title="Upcycle Hub Chat",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware - must be added before other middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware
    app.add_middleware(LoggingMiddleware)

    # API routes
    prefix = settings.API_V1_PREFIX
    app.include_router(conversations.router, prefix=prefix)
    app.include_router(chat_websocket.router, prefix=prefix)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "online_users": len(app.state.chat_router.registry),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.DEBUG,
    )
