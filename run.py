"""Entry point for the Only2U API.

Serves the FastAPI application with Uvicorn.  Configuration (database
path, provider credentials, secret key) is read from environment
variables; see ``only2u_api/app/core/config.py``.

Usage:
    python run.py
"""
import asyncio
import os

from uvicorn import Config, Server

from only2u_api.app.main import app


async def main() -> None:
    """Start the API server.

    Host and port are read from ``API_HOST`` and ``API_PORT``.
    Defaults are ``0.0.0.0`` and ``8000``.
    """
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
