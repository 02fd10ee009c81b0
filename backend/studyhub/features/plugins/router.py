"""
Plugins feature: WebSocket host for interactive study plugins.

A plugin connects to `/api/plugins/{plugin_id}/session?material_id=..&token=..`
and speaks the bridge protocol (see bridge.py) as JSON text frames. The
connection itself is the plugin's content window, so every frame received on
it is attributed to that endpoint.
"""

import json
import logging
from collections import deque

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from supabase import Client

from studyhub.core.dependencies import get_current_user_id, get_db, user_id_from_token
from studyhub.features.plugins.bridge import (
    EmbeddedDocument,
    HostWindow,
    MessageEvent,
    PluginBridge,
    PluginMode,
)
from studyhub.features.plugins.runtime import get_installed_plugins_summary
from studyhub.features.study.service import StudyService

logger = logging.getLogger(__name__)

router = APIRouter()

CHAPTER_DATA = "CHAPTER_DATA"
MATERIAL_FINISHED = "MATERIAL_FINISHED"


class WebSocketContentWindow:
    """Content window that buffers outbound messages for one connection."""

    def __init__(self) -> None:
        self.outbox: deque[dict] = deque()

    def post_message(self, message: dict, target_origin: str) -> None:
        self.outbox.append(message)

    async def flush(self, websocket: WebSocket) -> None:
        while self.outbox:
            await websocket.send_json(self.outbox.popleft())


@router.websocket("/{plugin_id}/session")
async def plugin_session(
    websocket: WebSocket,
    plugin_id: str,
    material_id: str,
    token: str,
    mode: PluginMode = PluginMode.MANUAL,
    db: Client = Depends(get_db),
):
    """Host one plugin session over a WebSocket."""
    user_id = user_id_from_token(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    service = StudyService(db)
    material = service.get_material(material_id)
    if material is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Material not found")
        return

    await websocket.accept()
    session = service.get_study_session(user_id, material_id) or {}

    window = HostWindow()
    content_window = WebSocketContentWindow()
    document = EmbeddedDocument(content_window=content_window)

    def on_progress(payload):
        service.record_progress(user_id, material_id, payload if isinstance(payload, dict) else {})

    def on_quiz_result(payload):
        written = service.record_quiz_result(user_id, material_id, payload if isinstance(payload, dict) else {})
        logger.info(f"Plugin {plugin_id}: quiz result recorded ({written} concepts)")

    def on_next_chapter():
        section = service.advance_section(user_id, material_id)
        if section is None:
            bridge.send_message(MATERIAL_FINISHED, {"materialId": material_id})
        else:
            bridge.send_message(CHAPTER_DATA, {"section": section})

    bridge = PluginBridge(
        window,
        document,
        material,
        knowledge_profile=session.get("knowledge_profile"),
        mode=mode,
        on_progress=on_progress,
        on_quiz_result=on_quiz_result,
        on_next_chapter=on_next_chapter,
    )
    logger.info(f"Plugin session opened: plugin={plugin_id} material={material_id} user={user_id}")

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            text = frame.get("text")
            if text is None:
                logger.info(f"Plugin {plugin_id}: dropping non-text frame")
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                logger.info(f"Plugin {plugin_id}: dropping non-JSON frame")
                continue
            window.dispatch(MessageEvent(data=data, source=content_window))
            await content_window.flush(websocket)
    except WebSocketDisconnect:
        logger.info(f"Plugin session closed: plugin={plugin_id} user={user_id}")
    finally:
        bridge.close()


@router.get("/installed")
async def list_installed_plugins(
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Installed plugins with the number of AI tools each contributes."""
    return {"data": get_installed_plugins_summary(db, user_id)}
