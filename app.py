"""NovelTTS — start the server with: python app.py"""

import asyncio
import logging

import uvicorn
from fastapi import FastAPI

from noveltts.api.routes import router, load_config, init_controller
from noveltts.controller import ReaderController
from noveltts.core.dispatch import AsyncioDispatcher

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("noveltts")

# ── App ──────────────────────────────────────────────────────────────────────


def create_app(controller: ReaderController | None = None, config: dict | None = None) -> FastAPI:
    app = FastAPI(title="NovelTTS", version="0.1.0")
    app.include_router(router)
    app.state.config = config if config is not None else load_config()
    app.state.controller = controller

    @app.on_event("startup")
    async def startup():
        if app.state.controller is None:
            dispatcher = AsyncioDispatcher(asyncio.get_running_loop())
            app.state.controller = init_controller(app.state.config, dispatcher)
        logger.info("NovelTTS is ready")

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.controller is not None:
            app.state.controller.shutdown()

    return app


app = create_app()

# ── Run ──────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    server_cfg = app.state.config.get("server", {})
    uvicorn.run(
        "app:app",
        host=server_cfg.get("host", "127.0.0.1"),
        port=server_cfg.get("port", 8000),
        reload=True,
    )
