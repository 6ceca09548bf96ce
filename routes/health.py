from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response

from db import get_conn
from services.metrics import render_prometheus
from settings import settings

router = APIRouter(tags=["health"])

MIGRATION_HEAD = "0003_add_invitations"


def _uses_database() -> bool:
    return settings.STORE_BACKEND == "postgres"


def _check_db() -> tuple[bool, str | None]:
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, f"{type(exc).__name__}: {exc}"


def _migration_revision() -> str | None:
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version');")
                if not cur.fetchone()[0]:
                    return None
                cur.execute("SELECT version_num FROM public.alembic_version LIMIT 1;")
                row = cur.fetchone()
                return row[0] if row else None
    except Exception:
        return None


def _resolve_git_sha() -> str | None:
    return (
        (os.getenv("GIT_SHA") or "").strip()
        or (os.getenv("FLY_IMAGE_REF") or "").strip()
        or None
    )


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": settings.ENV,
        "store": settings.STORE_BACKEND,
        "timezone": settings.TIMEZONE,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/healthz")
def healthz():
    # the in-memory store has no database to check
    if not _uses_database():
        db_ok, db_error, revision = None, None, None
    else:
        db_ok, db_error = _check_db()
        revision = _migration_revision() if db_ok else None

    return {
        "ok": db_ok is not False,
        "version": settings.APP_VERSION,
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
        "migration_revision": revision,
        "migrations_current": revision == MIGRATION_HEAD if db_ok else None,
    }


@router.get("/metrics")
def metrics():
    return Response(content=render_prometheus(), media_type="text/plain; version=0.0.4")
