"""Status and event streaming server for MindCanvas.

Captures from the server's webcam, runs the engine, and pushes every
event (gesture changes, draw points, actions, emotion and attention changes,
interventions) to connected WebSocket clients as JSON. Renderers sync the
drawing from ``/api/drawing`` and then follow the event stream.

Usage:
    mindcanvas serve
    # or
    uvicorn mindcanvas.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from mindcanvas import __version__
from mindcanvas.camera import CameraFrameSource
from mindcanvas.config import EngineConfig
from mindcanvas.engine import MindCanvasEngine
from mindcanvas.pipeline import FaceModelFactory

logger = logging.getLogger("mindcanvas.server")

app = FastAPI(title="MindCanvas", version=__version__)


# --- State ---

class ServerState:
    def __init__(self):
        self.clients: set[WebSocket] = set()
        self.config = EngineConfig()
        self.face_model_factory: Optional[FaceModelFactory] = None
        self.engine = MindCanvasEngine(self.config)
        self.engine.subscribe(self.publish)
        self.source: Optional[CameraFrameSource] = None
        self.autostart = False
        self.queue: Optional[asyncio.Queue] = None
        self.broadcaster: Optional[asyncio.Task] = None

    def configure(
        self,
        config: Optional[EngineConfig] = None,
        face_model_factory: Optional[FaceModelFactory] = None,
    ):
        """Rebuild the engine. Only valid while it isn't running."""
        if self.engine.running:
            raise RuntimeError("cannot reconfigure a running engine")
        self.config = config or EngineConfig()
        self.face_model_factory = face_model_factory
        self.engine = MindCanvasEngine(self.config, face_model_factory=face_model_factory)
        self.engine.subscribe(self.publish)

    def publish(self, event):
        if self.queue is not None:
            enqueue(self.queue, event.to_dict())


def enqueue(queue: asyncio.Queue, message: dict):
    """Queue a message for broadcast without ever blocking the engine.

    When the queue is full the oldest pending draw point is dropped (the
    oldest message of any kind if there are none), so state changes and
    actions survive a slow client.
    """
    try:
        queue.put_nowait(message)
        return
    except asyncio.QueueFull:
        pass

    pending = []
    while not queue.empty():
        pending.append(queue.get_nowait())
    victim = next(
        (i for i, m in enumerate(pending) if m.get("type") == "draw_point"), 0
    )
    dropped = pending.pop(victim)
    logger.debug("Event queue full, dropped %s", dropped.get("type"))
    for m in pending:
        queue.put_nowait(m)
    queue.put_nowait(message)


state = ServerState()


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    return {**state.engine.status(), "clients": len(state.clients)}


@app.get("/api/drawing")
async def api_drawing():
    return state.engine.drawing.snapshot().to_dict()


@app.post("/api/drawing/undo")
async def api_undo():
    state.engine.drawing.undo()
    return state.engine.drawing.snapshot().to_dict()


@app.post("/api/drawing/clear")
async def api_clear():
    state.engine.drawing.clear()
    return state.engine.drawing.snapshot().to_dict()


@app.post("/api/attention/reset")
async def api_attention_reset():
    """Conclude the open intervention (if any) and restart tracking."""
    event = state.engine.reset_attention()
    return {
        "concluded": event.intervention.kind if event else None,
        "attention": state.engine.attention.engine.state.value,
    }


@app.post("/api/interventions/{kind}")
async def api_request_intervention(kind: str):
    try:
        event = state.engine.interventions.request(kind)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    active = state.engine.interventions.active
    return {"opened": event is not None, "active": active.to_dict() if active else None}


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    state.engine.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.engine.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: events ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "status": state.engine.status(),
            "drawing": state.engine.drawing.snapshot().to_dict(),
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
                data = json.loads(msg)
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong", "server_time": time.time()})
                elif data.get("type") == "sync":
                    await ws.send_json({
                        "type": "drawing",
                        "drawing": state.engine.drawing.snapshot().to_dict(),
                    })
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients, dropping the ones that went away."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in state.clients:
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


async def broadcast_loop():
    while True:
        message = await state.queue.get()
        await broadcast(message)


# --- Lifecycle ---

async def start_capture():
    """Open the camera and start the engine on it."""
    cfg = state.config.server
    try:
        state.source = CameraFrameSource(cfg.camera_index, cfg.camera_width, cfg.camera_height)
        state.source.start()
    except (ImportError, RuntimeError) as e:
        logger.error("%s", e)
        state.source = None
        return
    await state.engine.start(state.source)


@app.on_event("startup")
async def startup():
    state.queue = asyncio.Queue(maxsize=state.config.server.event_queue_size)
    state.broadcaster = asyncio.create_task(broadcast_loop())
    if state.autostart:
        await start_capture()


@app.on_event("shutdown")
async def shutdown():
    await state.engine.stop()
    if state.source is not None:
        state.source.stop()
        state.source = None
    if state.broadcaster is not None:
        state.broadcaster.cancel()
        state.broadcaster = None
    state.queue = None
