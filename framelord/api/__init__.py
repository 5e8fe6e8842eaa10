"""FrameLord HTTP API."""

from __future__ import annotations


def main() -> None:
    """Console entry point: serve framelord.api.app:app with uvicorn."""
    import uvicorn

    from framelord.config import API_HOST, API_PORT, DEBUG

    uvicorn.run("framelord.api.app:app", host=API_HOST, port=API_PORT, reload=DEBUG)
