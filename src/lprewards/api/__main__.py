# src/lprewards/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from lprewards.env import load_dotenv_if_present


def main() -> None:
    # .env must be loaded before anything reads LPREWARDS_* vars.
    load_dotenv_if_present()

    from lprewards.api.app import create_app

    host = os.getenv("LPREWARDS_API_HOST", "127.0.0.1")
    port = int(os.getenv("LPREWARDS_API_PORT", "8080"))

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
