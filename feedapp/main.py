import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from .routes import router
from .core import (
    CORS_ORIGINS,
    UPLOAD_DIR,
    init_metrics,
    redis_startup,
    setup_logging,
    shutdown_connections,
    upload_path,
)
from .errors import register_error_handlers
from .ws_manager import ConnectionManager, FeedPublisher

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="Feed API", version="0.1.0")
    app.state.publisher = FeedPublisher(ConnectionManager())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    register_error_handlers(app)
    app.include_router(router)

    os.makedirs(upload_path(), exist_ok=True)
    app.mount(f"/{UPLOAD_DIR.strip('/')}", StaticFiles(directory=upload_path()), name='images')

    @app.get('/healthz')
    async def healthz():
        return {'status': 'ok'}

    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
        response = await call_next(request)
        logger.info({'msg': 'request_end', 'path': request.url.path, 'status': response.status_code})
        return response

    @app.on_event("startup")
    async def startup():
        # Best-effort init, the feed works without Redis fan-out or metrics
        try:
            await redis_startup()
        except Exception as e:
            logger.warning({'msg': 'redis_start_failed', 'error': str(e)})
        try:
            init_metrics()
        except Exception as e:
            logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})
        app.state.publisher.start()

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.publisher.stop()
        await shutdown_connections()

    return app


app = create_app()
