from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from linkstation import __version__
from linkstation.config import Settings, settings as default_settings
from linkstation.error_handlers import register_exception_handlers
from linkstation.routers import admin_router, game_router
from linkstation.services import build_services
from linkstation.services.kv_store import create_backend
from linkstation.utils.logging_config import fastapi_logger, setup_logging


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(config)
        fastapi_logger.info(f"Starting {config.APP_NAME}")
        store = await create_backend(config)
        fastapi_logger.info(f"Store backend: {store.name}")
        services = build_services(config, store)
        await services.admin.ensure_password()
        app.state.services = services
        if config.CLEANUP_ENABLED:
            services.cleanup.start()
        yield
        # Shutdown
        fastapi_logger.info("Shutting down application")
        await services.cleanup.stop()
        await store.close()
        fastapi_logger.info("Store backend closed")

    app = FastAPI(
        title=config.APP_NAME,
        description="Mutual-selection matching game for in-person groups",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, config)

    app.include_router(game_router)
    app.include_router(admin_router)

    @app.get("/health")
    @app.get("/api/health")
    async def health_check(request: Request):
        store = request.app.state.services.store
        return {
            "status": "healthy",
            "service": config.APP_NAME,
            "store": {"backend": store.name, "connected": await store.ping()},
        }

    @app.get("/ready")
    async def readiness_check(request: Request):
        store = request.app.state.services.store
        connected = await store.ping()
        return {"status": "ready" if connected else "degraded", "store_connected": connected}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("linkstation.main:app", host="0.0.0.0", port=8000, reload=default_settings.DEBUG)
