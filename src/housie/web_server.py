"""FastAPI web server for the live housie engine."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from housie import __version__
from housie.game.controller import GameController
from housie.game.errors import GameNotFound, HousieError
from housie.game.gateway import GameGateway
from housie.game.models import GameStatus
from housie.game.rooms import RoomHub
from housie.utils.config import get_config_value
from housie.utils.logger import get_logger

logger = get_logger(__name__)


def _cors_origins(config: Dict[str, Any]) -> List[str]:
    raw = get_config_value(config, "server.cors_origins", "*")
    if isinstance(raw, (list, tuple)):
        origins = [str(o).strip() for o in raw]
    else:
        origins = [o.strip() for o in str(raw).split(",")]
    return [o for o in origins if o] or ["*"]


class HousieWebServer:
    """HTTP and WebSocket gateway for live games."""

    def __init__(
        self,
        config: Dict[str, Any],
        controller: GameController,
        hub: RoomHub,
    ) -> None:
        self.config = config
        self.controller = controller
        self.hub = hub
        self.gateway = GameGateway(controller, hub)

        self.app = FastAPI(
            title="Housie Live API",
            description="Real-time game engine for multiplayer Tambola",
            version=__version__,
        )
        self._server = None

        self._setup_middleware()
        self._setup_routes()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        origins = _cors_origins(self.config)
        logger.info("Allowed CORS origins: %s", origins)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    def _setup_routes(self) -> None:
        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            return {
                "status": "ok",
                "timestamp": datetime.utcnow().isoformat(),
                "components": {
                    "web": True,
                    "controller": self.controller.get_status(),
                },
            }

        @self.app.get("/api/status")
        async def system_status() -> Dict[str, Any]:
            return {
                "timestamp": datetime.utcnow().isoformat(),
                "controller": self.controller.get_status(),
                "websocket_connections": self.hub.connection_count,
            }

        @self.app.get("/api/games/{game_id}")
        async def get_game(game_id: str) -> Dict[str, Any]:
            try:
                return await self.controller.snapshot(game_id)
            except GameNotFound:
                raise HTTPException(status_code=404, detail="Game not found")

        @self.app.post("/api/games/{game_id}/start")
        async def start_game(game_id: str) -> Dict[str, Any]:
            try:
                state = await self.controller.snapshot(game_id)
                if state["status"] == GameStatus.LIVE.value:
                    return {"message": "Game is already live", "game": state}
                await self.controller.start(game_id)
            except GameNotFound:
                raise HTTPException(status_code=404, detail="Game not found")
            except HousieError as exc:
                raise HTTPException(status_code=409, detail=exc.message)
            return {
                "message": "Game started successfully",
                "game": await self.controller.snapshot(game_id),
            }

        @self.app.websocket("/ws/game")
        async def websocket_endpoint(websocket: WebSocket) -> None:
            await websocket.accept()
            await self.hub.connect(websocket)
            try:
                while True:
                    frame = await websocket.receive()
                    if frame["type"] == "websocket.disconnect":
                        break
                    raw = frame.get("text")
                    if raw is None:
                        raw = frame.get("bytes") or b""
                    try:
                        message = json.loads(raw)
                    except ValueError:
                        await self.gateway.reply_error(websocket, "Message is not valid JSON")
                        continue
                    await self.gateway.handle(websocket, message)
            finally:
                await self.hub.disconnect(websocket)

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 3001) -> None:
        import uvicorn

        logger.info("Starting housie web server on %s:%s", host, port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        self._server = uvicorn.Server(config)
        try:
            await self._server.serve()
        finally:
            logger.info("Housie web server stopped")

    async def stop(self) -> None:
        logger.info("Stopping housie web server")
        if self._server is not None:
            self._server.should_exit = True
        await self.controller.shutdown()
