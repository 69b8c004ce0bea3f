# gapwatch/server.py
import logging
import time

from aiohttp import web, WSMsgType

from .gateway import BroadcastGateway
from .orchestrator import Orchestrator

ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)
GATEWAY_KEY = web.AppKey("gateway", BroadcastGateway)
LOGGER_KEY = web.AppKey("logger", logging.Logger)

async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "online", "timestamp": time.time()})

async def get_stats(request: web.Request) -> web.Response:
    return web.json_response(request.app[ORCHESTRATOR_KEY].get_stats().to_dict())

async def get_roasts(request: web.Request) -> web.Response:
    roasts = request.app[ORCHESTRATOR_KEY].get_roasts()
    return web.json_response([r.to_dict() for r in roasts])

def ws_observer(ws: web.WebSocketResponse, gateway: BroadcastGateway):
    """Gateway observer bound to one socket. It drops itself once the socket is closed or a send fails."""
    async def push(event: str, data):
        if ws.closed:
            gateway.remove_observer(push)
            return
        try:
            await ws.send_json({"event": event, "data": data})
        except Exception:
            gateway.remove_observer(push)
            raise
    return push

async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """
    Registers the socket as a gateway observer for as long as it stays open.
    Every broadcast is pushed as {"event": ..., "data": ...}.
    """
    gateway = request.app[GATEWAY_KEY]
    logger = request.app[LOGGER_KEY]
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    push = ws_observer(ws, gateway)
    gateway.add_observer(push)
    logger.info(f"[WebSocket] Client connected ({gateway.client_count} total)")
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                break
    finally:
        gateway.remove_observer(push)
        logger.info(f"[WebSocket] Client disconnected ({gateway.client_count} total)")
    return ws

def create_app(orchestrator: Orchestrator, gateway: BroadcastGateway, logger: logging.Logger) -> web.Application:
    app = web.Application()
    app[ORCHESTRATOR_KEY] = orchestrator
    app[GATEWAY_KEY] = gateway
    app[LOGGER_KEY] = logger
    app.router.add_get("/health", health)
    app.router.add_get("/api/stats", get_stats)
    app.router.add_get("/api/roasts", get_roasts)
    app.router.add_get("/ws", websocket_handler)
    return app

async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    return runner
