"""
Plugins feature: message bridge between a host and a sandboxed study plugin.

Protocol (JSON objects `{"type": ..., "payload": ...}`):

  plugin -> host   READY             plugin loaded, wants its data
                   PROGRESS_UPDATE   payload: progress info
                   QUIZ_RESULT       payload: quiz outcome
                   NEXT_CHAPTER      no payload
  host -> plugin   INIT_DATA         payload: {material, mode, knowledgeProfile}
                   <anything else>   ad hoc, via PluginBridge.send_message

The plugin runs in an opaque-origin sandbox, so there is no origin string to
check. Inbound messages are trusted only when their `source` is the exact
content-window object of the bound embedded document.

The channel is untrusted: nothing in here raises on bad input. Malformed or
unknown messages are logged and dropped.
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class PluginMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class BridgeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class MessageType(str, Enum):
    READY = "READY"
    INIT_DATA = "INIT_DATA"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"
    QUIZ_RESULT = "QUIZ_RESULT"
    NEXT_CHAPTER = "NEXT_CHAPTER"


class ContentWindow(Protocol):
    """Endpoint that receives messages for one embedded document."""

    def post_message(self, message: dict, target_origin: str) -> None: ...


@dataclass(eq=False)
class EmbeddedDocument:
    """Reference to an embedded plugin document.

    `content_window` is None while the document is not attached.
    """
    content_window: ContentWindow | None = None


@dataclass(frozen=True)
class MessageEvent:
    data: Any
    source: Any = None


Listener = Callable[[MessageEvent], None]


class HostWindow:
    """In-process message event target for the host side.

    Listeners are called in registration order for every dispatched event.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, event: MessageEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


@dataclass(frozen=True)
class _Bindings:
    document: EmbeddedDocument
    plugin_data: Any
    knowledge_profile: Any
    mode: PluginMode
    on_progress: Callable[[Any], None] | None
    on_quiz_result: Callable[[Any], None] | None
    on_next_chapter: Callable[[], None] | None


_BINDING_NAMES = tuple(f.name for f in fields(_Bindings))


class PluginBridge:
    """One host-side session with an embedded plugin.

    The message listener is installed on construction, re-installed whenever
    a bound input changes identity (`rebind`) and removed by `close`.
    """

    def __init__(
        self,
        window: HostWindow,
        document: EmbeddedDocument,
        plugin_data: Any,
        *,
        knowledge_profile: Any = None,
        mode: PluginMode | str = PluginMode.MANUAL,
        on_progress: Callable[[Any], None] | None = None,
        on_quiz_result: Callable[[Any], None] | None = None,
        on_next_chapter: Callable[[], None] | None = None,
    ):
        self._window = window
        self._bindings = _Bindings(
            document=document,
            plugin_data=plugin_data,
            knowledge_profile=knowledge_profile,
            mode=PluginMode(mode),
            on_progress=on_progress,
            on_quiz_result=on_quiz_result,
            on_next_chapter=on_next_chapter,
        )
        self._listener: Listener | None = None
        self.state = BridgeState.UNINITIALIZED
        self._install()

    # ── Lifecycle ────────────────────────────────────────

    def _install(self) -> None:
        bindings = self._bindings

        def handle_message(event: MessageEvent) -> None:
            self._handle_message(bindings, event)

        self._listener = handle_message
        self._window.add_listener(handle_message)

    def _teardown(self) -> None:
        if self._listener is not None:
            self._window.remove_listener(self._listener)
            self._listener = None

    def rebind(self, **changes: Any) -> None:
        """Replace bound inputs; reinstalls the listener if any changed identity."""
        unknown = set(changes) - set(_BINDING_NAMES)
        if unknown:
            raise TypeError(f"Unknown bridge inputs: {', '.join(sorted(unknown))}")
        if "mode" in changes:
            changes["mode"] = PluginMode(changes["mode"])

        current = self._bindings
        if all(getattr(current, key) is value for key, value in changes.items()):
            return

        values = {name: getattr(current, name) for name in _BINDING_NAMES}
        values.update(changes)
        self._teardown()
        self._bindings = _Bindings(**values)
        self._install()

    def close(self) -> None:
        self._teardown()

    @property
    def is_listening(self) -> bool:
        return self._listener is not None

    def __enter__(self) -> "PluginBridge":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Outbound ─────────────────────────────────────────

    def send_message(self, message_type: str, payload: Any = None) -> bool:
        """Post `{type, payload}` to the plugin if its document is attached.

        Returns False when the message was dropped (no queueing).
        """
        content_window = self._bindings.document.content_window
        if content_window is None:
            logger.debug(f"Plugin not attached, dropping outbound {message_type}")
            return False
        # Opaque sandbox origin: '*' is the only target origin that works.
        content_window.post_message(
            {"type": message_type, "payload": {} if payload is None else payload},
            "*",
        )
        return True

    # ── Inbound ──────────────────────────────────────────

    def _handle_message(self, bindings: _Bindings, event: MessageEvent) -> None:
        content_window = bindings.document.content_window
        if content_window is None or event.source is not content_window:
            return

        data = event.data
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            logger.info(f"Malformed message from plugin dropped: {data!r}")
            return

        message_type = data["type"]
        payload = data.get("payload")
        handler = self._dispatch_table.get(message_type)
        if handler is None:
            logger.info(f"Unknown message type from plugin: {message_type} {payload!r}")
            return

        try:
            handler(self, bindings, payload)
        except Exception:
            logger.exception(f"Plugin bridge handler for {message_type} failed")

    def _on_ready(self, bindings: _Bindings, payload: Any) -> None:
        self.state = BridgeState.INITIALIZED
        self.send_message(MessageType.INIT_DATA.value, {
            "material": bindings.plugin_data,
            "mode": bindings.mode.value,
            "knowledgeProfile": bindings.knowledge_profile,
        })

    def _on_progress(self, bindings: _Bindings, payload: Any) -> None:
        if bindings.on_progress is not None:
            bindings.on_progress(payload)

    def _on_quiz_result(self, bindings: _Bindings, payload: Any) -> None:
        if bindings.on_quiz_result is not None:
            bindings.on_quiz_result(payload)

    def _on_next_chapter(self, bindings: _Bindings, payload: Any) -> None:
        if bindings.on_next_chapter is not None:
            bindings.on_next_chapter()

    _dispatch_table: dict[str, Callable[["PluginBridge", _Bindings, Any], None]] = {
        MessageType.READY.value: _on_ready,
        MessageType.PROGRESS_UPDATE.value: _on_progress,
        MessageType.QUIZ_RESULT.value: _on_quiz_result,
        MessageType.NEXT_CHAPTER.value: _on_next_chapter,
    }
