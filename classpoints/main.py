import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classpoints.api.router import api_router
from classpoints.core.config import get_settings
from classpoints.core.exception_handlers import register_exception_handlers
from classpoints.core.logging_config import setup_logging
from classpoints.core.middleware import RateLimitMiddleware, RequestContextMiddleware
from classpoints.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)
    services = services or ServiceContainer(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if settings.auto_create_teacher:
            services.accounts.ensure_teacher(
                settings.bootstrap_teacher_login,
                settings.bootstrap_teacher_password,
                settings.bootstrap_teacher_name,
            )
        services.store.warmup()
        services.rankings.warmup()
        heartbeat = asyncio.create_task(services.bus.run_heartbeat(settings.sse_heartbeat_seconds))
        logger.info("%s %s started, data in %s", settings.app_name, settings.app_version, settings.data_path)
        try:
            yield
        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("SSE heartbeat task ended with an error")
            services.bus.close_all()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.services = services

    prefix = settings.api_prefix
    app.add_middleware(
        RateLimitMiddleware,
        limit_per_minute=settings.rate_limit_per_minute,
        exclude_paths=[f"{prefix}/health", f"{prefix}/sse", "/docs", "/openapi.json", "/redoc"],
    )
    app.add_middleware(
        RequestContextMiddleware,
        timeout_seconds=settings.request_timeout_seconds,
        max_body_bytes=settings.max_body_bytes,
        streaming_paths=[f"{prefix}/sse/events"],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix=prefix)

    return app


app = create_app()
