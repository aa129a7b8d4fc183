from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import tzinfo
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import ValidationError

from mond.analyzer import parse_raw_log, resolve_timezone
from mond.config import PASSWORD_ENV, USERNAME_ENV, CollectorSettings
from mond.health_check import HEALTH_PATH, LOGS_PATH
from mond.models import UNHEALTHY, HealthCheck
from mond.store import FileSystemAppsStore, open_store

logger = logging.getLogger(__name__)

RAW_LOGS_PATH = "/rawlogs/"
ANALYTICS_PATH = "/analytics/"
APPS_PATH = "/apps/"

_basic = HTTPBasic(auto_error=False)


def _dashboard_guard(credentials: Tuple[str, str]):
    user, password = credentials

    def check(given: Optional[HTTPBasicCredentials] = Depends(_basic)) -> None:
        ok = given is not None and (
            secrets.compare_digest(given.username.encode("utf-8"), user.encode("utf-8"))
            & secrets.compare_digest(given.password.encode("utf-8"), password.encode("utf-8"))
        )
        if not ok:
            raise HTTPException(401, "unauthorized", headers={"WWW-Authenticate": "Basic"})

    return check


def create_app(
    store: FileSystemAppsStore,
    credentials: Optional[Tuple[str, str]] = None,
    tz: Optional[tzinfo] = None,
) -> FastAPI:
    """
    Build the collector around an already opened store.

    App names are lower-cased here; the store itself is case-sensitive.
    POST routes are for reporting agents and stay open; GET routes are for
    dashboards and sit behind basic auth when ``credentials`` is given.
    """
    app = FastAPI(title="mond")
    app.state.store = store

    reporting = APIRouter()
    guards = [Depends(_dashboard_guard(credentials))] if credentials is not None else []
    dashboard = APIRouter(dependencies=guards)

    # ----------------------------
    # Reporting
    # ----------------------------
    @reporting.post(LOGS_PATH + "{name}", status_code=202)
    async def process_log(name: str, request: Request):
        try:
            body = (await request.body()).decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("error reading body for %s: %s", name, e)
            raise HTTPException(400, "can't read body")

        entry = parse_raw_log(body, tz=tz)
        await _persist(store.record_access_log, name.lower(), entry)
        return Response(status_code=202)

    @reporting.post(HEALTH_PATH + "{name}", status_code=202)
    async def process_health(name: str, request: Request):
        body = await request.body()
        try:
            check = HealthCheck.model_validate_json(body)
        except ValidationError as e:
            logger.warning("bad health report for %s: %s", name, e.errors(include_url=False))
            raise HTTPException(400, "problem parsing health check")

        await _persist(store.record_health, name.lower(), check)
        return Response(status_code=202)

    # ----------------------------
    # Dashboard
    # ----------------------------
    @dashboard.get("/")
    def app_names():
        names = store.get_app_names()
        return JSONResponse(names, status_code=200 if names else 404)

    @dashboard.get(APPS_PATH)
    def apps():
        content = [a.model_dump(mode="json", by_alias=True) for a in store.get_apps()]
        return JSONResponse(content, status_code=200 if content else 404)

    @dashboard.get(LOGS_PATH + "{name}")
    def show_logs(name: str, newest_first: bool = False):
        name = name.lower()
        if newest_first:
            found = store.get_app(name)
            logs = found.logs_sorted() if found is not None else []
        else:
            logs = store.get_access_logs(name)
        content = [l.model_dump(mode="json", by_alias=True) for l in logs]
        return JSONResponse(content, status_code=200 if content else 404)

    @dashboard.get(RAW_LOGS_PATH + "{name}", response_class=PlainTextResponse)
    def show_raw_logs(name: str):
        return "\n".join(l.raw for l in store.get_access_logs(name.lower()))

    @dashboard.get(HEALTH_PATH + "{name}")
    def show_health(name: str):
        check = store.get_reported_health(name.lower())
        if check is None:
            return JSONResponse(UNHEALTHY.model_dump(mode="json"), status_code=404)
        return JSONResponse(check.model_dump(mode="json"))

    @dashboard.get(ANALYTICS_PATH + "{name}")
    def show_analytics(name: str):
        found = store.get_app(name.lower())
        if found is None:
            raise HTTPException(404, "app not found")
        return {
            "app": found.name,
            "logsPerDay": found.log_count_per_day(tz),
            "ipStats": [s.model_dump() for s in found.ip_stats()],
        }

    app.include_router(reporting)
    app.include_router(dashboard)
    return app


async def _persist(record, name: str, value) -> None:
    try:
        await asyncio.to_thread(record, name, value)
    except OSError:
        logger.exception("could not persist %s for %s", type(value).__name__, name)
        raise HTTPException(500, "could not persist")


def create_app_from_env() -> FastAPI:
    """uvicorn factory: settings from MOND_* env. A store that fails to load aborts startup."""
    settings = CollectorSettings.from_env()
    if settings.credentials is None:
        logger.warning("%s/%s not set, dashboard routes are unauthenticated", USERNAME_ENV, PASSWORD_ENV)
    store = open_store(settings.db_file)
    return create_app(store, credentials=settings.credentials, tz=resolve_timezone(settings.timezone))
