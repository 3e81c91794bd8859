import os
import asyncio
import logging
from prometheus_client import Counter, start_http_server
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.getenv('BASE_DIR') or os.getcwd())
UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'images')
POSTS_PER_PAGE = int(os.getenv('POSTS_PER_PAGE', '2'))
MAX_IMAGE_SIZE = int(os.getenv('MAX_IMAGE_SIZE', str(5 * 1024 * 1024)))  # 5MB
REDIS_URL = os.getenv('REDIS_URL')
METRICS_PORT = int(os.getenv('METRICS_PORT', '0'))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

REDIS = None

POST_EVENTS = Counter('feed_post_events_total', 'Feed change notifications published', ['action'])


def setup_logging(level: str = LOG_LEVEL):
    """Attach a JSON handler to the 'feedapp' logger once."""
    root = logging.getLogger('feedapp')
    if root.handlers:
        return root
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return root


def upload_path() -> str:
    """Absolute directory where post images are written"""
    return os.path.join(BASE_DIR, UPLOAD_DIR)


def init_metrics(port: int = METRICS_PORT):
    """Initialize Prometheus metrics server"""
    if port <= 0:
        return
    start_http_server(port)
    logger.info({'msg': 'metrics_started', 'port': port})


async def redis_startup():
    """Connect to Redis for cross-instance fan-out; stays None when unconfigured"""
    global REDIS

    if not REDIS_URL:
        logger.info({'msg': 'redis_disabled'})
        return

    import redis.asyncio as aioredis

    max_retries = 3
    retry_delay = 3  # seconds

    for attempt in range(max_retries):
        try:
            logger.info({'msg': 'redis_connect', 'url': REDIS_URL, 'attempt': attempt + 1})
            REDIS = aioredis.from_url(
                REDIS_URL,
                decode_responses=True,
                health_check_interval=30,
                socket_connect_timeout=5,
            )
            await REDIS.ping()
            logger.info({'msg': 'redis_connected'})
            return
        except Exception as e:
            logger.warning({'msg': 'redis_connect_failed', 'attempt': attempt + 1, 'error': str(e)})
            if REDIS is not None:
                await REDIS.aclose()
                REDIS = None
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay)
    logger.error({'msg': 'redis_unavailable', 'detail': 'falling back to local broadcast'})


async def shutdown_connections():
    """Gracefully shutdown all connections"""
    global REDIS
    if REDIS is not None:
        try:
            await REDIS.aclose()
            logger.info({'msg': 'redis_closed'})
        except Exception as e:
            logger.error({'msg': 'redis_close_failed', 'error': str(e)})
        REDIS = None
