import redis
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from animeleak.core.config import settings
from animeleak.db.session import get_db

router = APIRouter()


def _ping_redis() -> None:
    client = redis.Redis.from_url(settings.redis_url, socket_connect_timeout=2)
    try:
        client.ping()
    finally:
        client.close()


@router.get("/health")
def health() -> dict:
    """Liveness: 200 whenever the process serves requests."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness: the database and Redis (leases, Celery broker) must both answer."""
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = str(e)
    try:
        _ping_redis()
        checks["redis"] = "ok"
    except redis.RedisError as e:
        checks["redis"] = str(e)

    if all(v == "ok" for v in checks.values()):
        return {"status": "ready", "checks": checks}
    response.status_code = 503
    return {"status": "not_ready", "checks": checks}
