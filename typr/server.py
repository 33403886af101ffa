"""HTTP key-event bridge.

Lets an external hotkey daemon (for example a Hammerspoon config on macOS)
drive Typr: it posts ``{"isActive": true|false}`` when its chord toggles and
``{"type": "escape"}`` when Escape is pressed.
"""

from __future__ import annotations

import argparse
import json
import logging
import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from typr.gesture import KeyEvent, KeyIdentity, KeyTransition
from typr.keys import QueueKeySource, now_ms

if TYPE_CHECKING:
    from typr.app import DictationApp
    from typr.types import HealthCheck, KeyBridgeMessage

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3433


def message_to_event(message: "KeyBridgeMessage", timestamp_ms: int | None = None) -> KeyEvent | None:
    """Translate a bridge message into a key event; None if it is not understood."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else now_ms()

    if message.get("type") == "escape":
        return KeyEvent(KeyIdentity.ESCAPE, KeyTransition.DOWN, timestamp_ms)

    active = message.get("isActive")
    if isinstance(active, bool):
        transition = KeyTransition.DOWN if active else KeyTransition.UP
        return KeyEvent(KeyIdentity.CHORD, transition, timestamp_ms)
    return None


def create_app(
    source: QueueKeySource | None = None,
    dictation: "DictationApp | None" = None,
) -> FastAPI:
    source = source or QueueKeySource()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        worker: threading.Thread | None = None
        if dictation is not None:
            worker = threading.Thread(target=dictation.run, name="typr-listen", daemon=True)
            worker.start()
            print("\n✅ Listening for key events on the bridge")

        yield

        if dictation is not None:
            dictation.shutdown()
        if worker is not None:
            worker.join(timeout=2.0)
        print("\n👋 Shutting down...")

    app = FastAPI(
        title="Typr key bridge",
        description="Receives hotkey events for Typr dictation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.source = source

    @app.get("/health")
    async def health_check():
        body: HealthCheck = {"status": "healthy", "accepting": not source.closed}
        return JSONResponse(body)

    @app.post("/")
    async def receive_event(request: Request):
        try:
            message = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Bridge received invalid JSON")
            return PlainTextResponse("Bad Request", status_code=400)

        if not isinstance(message, dict):
            return PlainTextResponse("Bad Request", status_code=400)

        event = message_to_event(message)
        if event is None:
            logger.warning("Bridge received unknown event: %s", message)
            return PlainTextResponse("Bad Request", status_code=400)

        logger.info("Bridge event: %s %s", event.key.value, event.transition.value)
        source.push(event)
        return PlainTextResponse("OK")

    return app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Typr key-event bridge")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    return serve(args.host, args.port)


def serve(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> int:
    import uvicorn

    from typr.app import DictationApp
    from typr.config import Config, GestureMode

    config = Config.from_env()
    config.gesture.mode = GestureMode.CHORD
    source = QueueKeySource()
    dictation = DictationApp(config, source=source)
    dictation.setup()

    print(f"\n🚀 Starting Typr key bridge at http://{host}:{port}")
    print("   Press Ctrl+C to stop\n")

    uvicorn.run(create_app(source, dictation), host=host, port=port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
