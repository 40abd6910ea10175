from __future__ import annotations

from fastapi import APIRouter, Request

from lprewards import __version__

router = APIRouter()


@router.get("/health")
def v1_health(request: Request):
    eng = getattr(request.app.state, "engine", None)
    return {"ok": True, "version": __version__, "engine": eng is not None}
