from __future__ import annotations

import os

from fastapi import FastAPI

from lprewards import __version__
from lprewards.api.errors import ApiError, api_error_handler, rewards_error_handler
from lprewards.api.routes_public import public_router
from lprewards.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from lprewards.runtime.engine_boot import build_engine as _build_engine
from lprewards.runtime.errors import RewardsError


def build_engine():
    """Build the RewardsEngine served by the API.

    Tests monkeypatch `lprewards.api.app.build_engine` instead of reaching
    into runtime modules.
    """
    return _build_engine()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the read-only query API.

    boot_runtime:
      - True (default): load config, open the store, attach app.state.engine
      - False: no engine; routes other than /v1/health answer 500 not_ready
        until a caller sets app.state.engine
    """
    configure_structured_logging()

    docs = (os.environ.get("LPREWARDS_API_DOCS") or "1").strip().lower() not in {"0", "false", "no", "off"}
    if docs:
        app = FastAPI(title="LP Rewards API", version=__version__)
    else:
        app = FastAPI(title="LP Rewards API", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)

    app.state.engine = build_engine() if boot_runtime else None

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RewardsError, rewards_error_handler)
    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)
    return app
