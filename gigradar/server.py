"""HTTP surface: the authenticated run trigger, profile updates and a read view."""
from __future__ import annotations

import hmac
import time
from typing import Any, Iterator

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.requests import Request

from gigradar.agent import run_once
from gigradar.config import Settings, get_env, get_int_env, load_settings, update_profile
from gigradar.errors import ProfileError
from gigradar.log import get_logger
from gigradar.scraper.bypass import BypassClient
from gigradar.store import SORT_COLUMNS, Store

log = get_logger(__name__)

app = FastAPI(title="gigradar")


class PreferencesUpdate(BaseModel):
    skills: list[str]
    min_budget: float = 0
    preferred_countries: list[str] = Field(default_factory=list)


def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> Iterator[Store]:
    store = Store(settings.database_path)
    try:
        yield store
    finally:
        store.close()


def require_secret(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    if not settings.cron_secret:
        log.warning("CRON_SECRET is not set; rejecting trigger call")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not hmac.compare_digest(token.encode(), settings.cron_secret.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    log.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started_at) * 1000.0,
    )
    return response


@app.api_route("/api/cron/run-pipeline", methods=["GET", "POST"], dependencies=[Depends(require_secret)])
def run_pipeline(
    query: str | None = None,
    max_jobs: int | None = Query(default=None, ge=1, le=200),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    summary = run_once(query, max_jobs, settings=settings)
    code = status.HTTP_200_OK if summary["success"] else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=summary)


@app.post("/api/preferences", dependencies=[Depends(require_secret)])
def update_preferences(body: PreferencesUpdate) -> dict[str, Any]:
    try:
        profile = update_profile(body.skills, body.min_budget, body.preferred_countries)
    except ProfileError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        "success": True,
        "profile": {
            "skills": profile.skills,
            "min_budget": profile.min_budget,
            "preferred_countries": profile.preferred_countries,
        },
    }


@app.get("/api/postings")
def list_postings(
    min_score: float | None = Query(default=None, ge=0, le=100),
    max_score: float | None = Query(default=None, ge=0, le=100),
    job_type: str | None = None,
    experience_level: str | None = None,
    country: list[str] | None = Query(default=None),
    sort_by: str = "relevance",
    limit: int = Query(default=100, ge=1, le=500),
    store: Store = Depends(get_store),
) -> dict[str, Any]:
    if sort_by not in SORT_COLUMNS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort_by must be one of {sorted(SORT_COLUMNS)}",
        )
    postings = store.scored_postings(
        min_score=min_score,
        max_score=max_score,
        job_type=job_type,
        experience_level=experience_level,
        countries=country,
        sort_by=sort_by,
        limit=limit,
    )
    return {"postings": postings, "stats": store.stats()}


@app.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    bypass_ok = BypassClient(settings.flaresolverr_url).health()
    return {"status": "ok", "bypass_service": "ok" if bypass_ok else "unreachable"}


def main() -> None:
    uvicorn.run(
        "gigradar.server:app",
        host=get_env("HOST", "127.0.0.1"),
        port=get_int_env("PORT", 8000),
    )


if __name__ == "__main__":
    main()
