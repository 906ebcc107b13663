"""Achieva backend: goals, friends, messaging and notifications over HTTP.

Run (locally):
    uvicorn achieva.main:app --reload
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import redis

from .api import auth, profiles, friends, goals, tags, social, conversations, notifications
from .api import health as health_api
from .models import create_db
from .services.auth import decode_token
from .services.errors import AchievaError
from .settings import settings
from collections import defaultdict, deque
import threading
import time, math, os, uuid

app = FastAPI(title="Achieva Backend", version="0.1.0")

logger.add(settings.LOG_FILE, rotation="5 MB", retention="7 days", enqueue=True, serialize=False)

# Use settings for CORS - only allow specified origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["*"],
)

# tags and social declare static /goals/... paths that must win over /goals/{goal_id}
app.include_router(auth.router, prefix="/api")
app.include_router(profiles.router, prefix="/api")
app.include_router(friends.router, prefix="/api")
app.include_router(tags.router, prefix="/api")
app.include_router(social.router, prefix="/api")
app.include_router(goals.router, prefix="/api")
app.include_router(conversations.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(health_api.router, prefix="/api")


@app.exception_handler(AchievaError)
async def _achieva_error(request: Request, exc: AchievaError):
    if exc.status_code >= 500:
        logger.error({"type": "service_error", "path": request.url.path, "error": exc.detail})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.on_event("startup")
def _startup():  # pragma: no cover - simple init
    create_db()


@app.get("/health")
async def health():
    return {"status": "ok"}


REQUEST_COUNT = Counter('achieva_requests_total', 'Total HTTP requests', ['method', 'path', 'status'])
REQUEST_LATENCY = Histogram('achieva_request_latency_seconds', 'Request latency', ['method', 'path'])


def _route_label(request) -> str:
    # templated path keeps label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@app.middleware("http")
async def _metrics_mw(request, call_next):  # pragma: no cover simple metrics
    start = time.time()
    response = await call_next(request)
    path = _route_label(request)
    REQUEST_COUNT.labels(request.method, path, response.status_code).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(time.time() - start)
    return response


# User/token-aware rate limiter
_RATE_LOCK = threading.Lock()
_WINDOW_SECONDS = 60
_REQUEST_LOG: dict[str, deque[float]] = defaultdict(lambda: deque())
_REDIS_RATE = None
_REDIS_URL = os.getenv('REDIS_URL')
if _REDIS_URL:  # pragma: no cover - integration path
    try:
        _REDIS_RATE = redis.from_url(_REDIS_URL)
    except redis.RedisError as e:
        logger.warning({"type": "rate_limit", "error": f"redis unavailable: {e}"})
        _REDIS_RATE = None


def get_rate_limit_for_path(method: str, path: str) -> int:
    """Get rate limit based on endpoint type."""
    if method == "POST" and (path.endswith('/messages') or path.endswith('/comments')):
        return settings.RATE_LIMIT_WRITE
    return settings.RATE_LIMIT_DEFAULT


def get_user_identifier(request) -> str:
    """Get user identifier for rate limiting - user_id if JWT present, else IP."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            payload = decode_token(auth_header[7:])
            return f"user_{payload.get('sub')}"
        except HTTPException:
            pass
    # Fallback to IP address
    return f"ip_{request.client.host if request.client else 'anon'}"


def _too_many(retry: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "rate_limited", "retry_after": retry},
        headers={"Retry-After": str(retry)},
    )


@app.middleware("http")
async def _rate_limit_mw(request, call_next):  # pragma: no cover - perf side-effect
    max_requests = get_rate_limit_for_path(request.method, request.url.path)
    if max_requests <= 0:
        return await call_next(request)

    ident = get_user_identifier(request)
    key = f"{ident}:{request.method}:{request.url.path}"
    now = time.time()

    if _REDIS_RATE:
        redis_key = f"ratelimit:{key}:{int(now // _WINDOW_SECONDS)}"
        try:
            pipe = _REDIS_RATE.pipeline()
            pipe.incr(redis_key, 1)
            pipe.expire(redis_key, _WINDOW_SECONDS)
            count, _ = pipe.execute()
            if int(count) > max_requests:
                return _too_many(_WINDOW_SECONDS)
        except redis.RedisError as e:
            logger.warning({"type": "rate_limit", "error": str(e)})
    else:
        with _RATE_LOCK:
            dq = _REQUEST_LOG[key]
            cutoff = now - _WINDOW_SECONDS
            while dq and dq[0] < cutoff:
                dq.popleft()
            if len(dq) >= max_requests:
                return _too_many(math.ceil(dq[0] + _WINDOW_SECONDS - now))
            dq.append(now)
    return await call_next(request)


@app.middleware("http")
async def _logging_mw(request, call_next):  # pragma: no cover
    rid = request.headers.get('X-Request-ID') or uuid.uuid4().hex
    start = time.time()
    logger.info({"type": "request", "id": rid, "method": request.method, "path": request.url.path})
    try:
        resp = await call_next(request)
        dur = (time.time() - start) * 1000
        resp.headers['X-Request-ID'] = rid
        logger.info({"type": "response", "id": rid, "status": resp.status_code, "ms": round(dur, 2)})
        return resp
    except Exception as e:
        logger.error({"type": "error", "id": rid, "error": str(e)})
        raise


@app.get('/metrics')
def metrics():  # plaintext Prometheus exposition
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
