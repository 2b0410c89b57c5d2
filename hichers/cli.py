"""CLI entrypoints for the Hichers console."""

import os

import uvicorn

APP = "hichers.main:app"


def dev() -> None:
    """Run the dev server with reload."""
    uvicorn.run(APP, host="127.0.0.1", port=8000, reload=True, log_level="debug")


def serve() -> None:
    """Run without reload; PORT is honoured for container platforms."""
    uvicorn.run(APP, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")), proxy_headers=True)
