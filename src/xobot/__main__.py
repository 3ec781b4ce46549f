"""Entry point for running the bot webhook via ``python -m xobot``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI webhook server."""

    logging.basicConfig(
        level=os.environ.get("XOBOT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.environ.get("XOBOT_HOST", "0.0.0.0")
    port = int(os.environ.get("XOBOT_PORT", "8000"))
    uvicorn.run("xobot.webhook:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
