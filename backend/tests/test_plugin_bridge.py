"""
Tests for the host <-> plugin message bridge.
"""

import pytest

from studyhub.features.plugins.bridge import (
    BridgeState,
    EmbeddedDocument,
    HostWindow,
    MessageEvent,
    PluginBridge,
    PluginMode,
)


class RecordingWindow:
    """Content window that keeps everything posted to it."""

    def __init__(self):
        self.posted = []

    def post_message(self, message, target_origin):
        self.posted.append((message, target_origin))

    @property
    def messages(self):
        return [message for message, _ in self.posted]


MATERIAL = {"id": "m-1", "title": "Cell Biology", "sections": []}


@pytest.fixture
def window():
    return HostWindow()


@pytest.fixture
def plugin_window():
    return RecordingWindow()


@pytest.fixture
def document(plugin_window):
    return EmbeddedDocument(content_window=plugin_window)


@pytest.fixture
def callbacks():
    calls = {"progress": [], "quiz": [], "next": 0}

    def on_progress(payload):
        calls["progress"].append(payload)

    def on_quiz_result(payload):
        calls["quiz"].append(payload)

    def on_next_chapter():
        calls["next"] += 1

    calls["handlers"] = {
        "on_progress": on_progress,
        "on_quiz_result": on_quiz_result,
        "on_next_chapter": on_next_chapter,
    }
    return calls


@pytest.fixture
def bridge(window, document, callbacks):
    bridge = PluginBridge(window, document, MATERIAL, **callbacks["handlers"])
    yield bridge
    bridge.close()


def _from_plugin(window, plugin_window, message_type, payload=None):
    data = {"type": message_type}
    if payload is not None:
        data["payload"] = payload
    window.dispatch(MessageEvent(data=data, source=plugin_window))


# -- READY handshake --

class TestHandshake:
    def test_ready_sends_init_data_once(self, bridge, window, plugin_window):
        assert bridge.state == BridgeState.UNINITIALIZED

        _from_plugin(window, plugin_window, "READY")

        assert bridge.state == BridgeState.INITIALIZED
        assert plugin_window.posted == [(
            {
                "type": "INIT_DATA",
                "payload": {"material": MATERIAL, "mode": "manual", "knowledgeProfile": None},
            },
            "*",
        )]

    def test_init_data_carries_mode_and_profile(self, window, document, plugin_window):
        profile = {"weak": ["mitosis"]}
        with PluginBridge(window, document, MATERIAL, knowledge_profile=profile, mode="auto"):
            _from_plugin(window, plugin_window, "READY")

        payload = plugin_window.messages[0]["payload"]
        assert payload["mode"] == "auto"
        assert payload["knowledgeProfile"] is profile

    def test_repeated_ready_resends_init_data(self, bridge, window, plugin_window):
        _from_plugin(window, plugin_window, "READY")
        _from_plugin(window, plugin_window, "READY")
        assert [m["type"] for m in plugin_window.messages] == ["INIT_DATA", "INIT_DATA"]


# -- source authentication --

class TestSourceCheck:
    def test_foreign_source_ignored(self, bridge, window, plugin_window, callbacks):
        impostor = RecordingWindow()
        for message_type in ("READY", "PROGRESS_UPDATE", "QUIZ_RESULT", "NEXT_CHAPTER"):
            window.dispatch(MessageEvent(data={"type": message_type, "payload": {}}, source=impostor))

        assert plugin_window.posted == []
        assert impostor.posted == []
        assert callbacks["progress"] == []
        assert callbacks["quiz"] == []
        assert callbacks["next"] == 0
        assert bridge.state == BridgeState.UNINITIALIZED

    def test_missing_source_ignored(self, bridge, window, plugin_window):
        window.dispatch(MessageEvent(data={"type": "READY"}))
        assert plugin_window.posted == []

    def test_detached_document_ignores_everything(self, window, callbacks):
        document = EmbeddedDocument()
        with PluginBridge(window, document, MATERIAL, **callbacks["handlers"]):
            window.dispatch(MessageEvent(data={"type": "NEXT_CHAPTER"}, source=None))
        assert callbacks["next"] == 0


# -- inbound dispatch --

class TestDispatch:
    def test_progress_update(self, bridge, window, plugin_window, callbacks):
        _from_plugin(window, plugin_window, "PROGRESS_UPDATE", {"sectionId": "s-2", "percent": 40})
        assert callbacks["progress"] == [{"sectionId": "s-2", "percent": 40}]

    def test_quiz_result(self, bridge, window, plugin_window, callbacks):
        _from_plugin(window, plugin_window, "QUIZ_RESULT", {"correct": True, "concepts": ["osmosis"]})
        assert callbacks["quiz"] == [{"correct": True, "concepts": ["osmosis"]}]

    def test_next_chapter(self, bridge, window, plugin_window, callbacks):
        _from_plugin(window, plugin_window, "NEXT_CHAPTER")
        assert callbacks["next"] == 1

    def test_messages_before_ready_still_dispatched(self, bridge, window, plugin_window, callbacks):
        _from_plugin(window, plugin_window, "PROGRESS_UPDATE", {"percent": 5})
        assert bridge.state == BridgeState.UNINITIALIZED
        assert callbacks["progress"] == [{"percent": 5}]

    def test_missing_callbacks_are_noops(self, window, document, plugin_window):
        with PluginBridge(window, document, MATERIAL):
            _from_plugin(window, plugin_window, "PROGRESS_UPDATE", {"percent": 5})
            _from_plugin(window, plugin_window, "QUIZ_RESULT", {"correct": False})
            _from_plugin(window, plugin_window, "NEXT_CHAPTER")
        assert plugin_window.posted == []

    def test_unknown_type_is_dropped(self, bridge, window, plugin_window, callbacks):
        _from_plugin(window, plugin_window, "SELF_DESTRUCT", {"now": True})
        assert plugin_window.posted == []
        assert callbacks["progress"] == callbacks["quiz"] == []
        assert callbacks["next"] == 0

    @pytest.mark.parametrize("data", [None, "READY", 42, ["READY"], {}, {"type": 7}])
    def test_malformed_data_is_dropped(self, bridge, window, plugin_window, data):
        window.dispatch(MessageEvent(data=data, source=plugin_window))
        assert plugin_window.posted == []
        assert bridge.state == BridgeState.UNINITIALIZED

    def test_callback_failure_does_not_escape(self, window, document, plugin_window):
        def explode(payload):
            raise ValueError("handler bug")

        with PluginBridge(window, document, MATERIAL, on_progress=explode):
            _from_plugin(window, plugin_window, "PROGRESS_UPDATE", {})
            _from_plugin(window, plugin_window, "READY")

        assert [m["type"] for m in plugin_window.messages] == ["INIT_DATA"]


# -- outbound --

class TestSendMessage:
    def test_posts_with_wildcard_origin(self, bridge, plugin_window):
        assert bridge.send_message("CHAPTER_DATA", {"section": {"id": "s-1"}}) is True
        assert plugin_window.posted == [({"type": "CHAPTER_DATA", "payload": {"section": {"id": "s-1"}}}, "*")]

    def test_missing_payload_becomes_empty_object(self, bridge, plugin_window):
        bridge.send_message("PING")
        assert plugin_window.messages == [{"type": "PING", "payload": {}}]

    def test_detached_document_drops_message(self, window):
        with PluginBridge(window, EmbeddedDocument(), MATERIAL) as detached:
            assert detached.send_message("PING") is False

    def test_late_attach_starts_delivering(self, window, plugin_window):
        document = EmbeddedDocument()
        with PluginBridge(window, document, MATERIAL) as bridge:
            assert bridge.send_message("PING") is False
            document.content_window = plugin_window
            assert bridge.send_message("PING") is True
            _from_plugin(window, plugin_window, "READY")
        assert [m["type"] for m in plugin_window.messages] == ["PING", "INIT_DATA"]


# -- lifecycle --

class TestLifecycle:
    def test_single_listener_installed(self, bridge, window):
        assert window.listener_count == 1
        assert bridge.is_listening

    def test_rebind_replaces_listener_and_data(self, bridge, window, plugin_window):
        new_material = {"id": "m-2", "title": "Genetics"}
        bridge.rebind(plugin_data=new_material, mode=PluginMode.AUTO)

        assert window.listener_count == 1
        _from_plugin(window, plugin_window, "READY")
        payload = plugin_window.messages[0]["payload"]
        assert payload["material"] is new_material
        assert payload["mode"] == "auto"

    def test_rebind_with_same_inputs_keeps_listener(self, bridge, window, document):
        listener = bridge._listener
        bridge.rebind(document=document, plugin_data=MATERIAL)
        assert bridge._listener is listener
        assert window.listener_count == 1

    def test_rebind_new_callback_used(self, bridge, window, plugin_window, callbacks):
        seen = []
        bridge.rebind(on_next_chapter=lambda: seen.append("new"))
        _from_plugin(window, plugin_window, "NEXT_CHAPTER")
        assert seen == ["new"]
        assert callbacks["next"] == 0

    def test_rebind_new_document_rejects_old_source(self, bridge, window, plugin_window, callbacks):
        other = RecordingWindow()
        bridge.rebind(document=EmbeddedDocument(content_window=other))

        _from_plugin(window, plugin_window, "READY")
        assert plugin_window.posted == []
        _from_plugin(window, other, "READY")
        assert [m["type"] for m in other.messages] == ["INIT_DATA"]

    def test_rebind_unknown_input(self, bridge):
        with pytest.raises(TypeError):
            bridge.rebind(colour="blue")

    def test_close_removes_listener(self, bridge, window, plugin_window, callbacks):
        bridge.close()
        assert window.listener_count == 0
        assert not bridge.is_listening

        _from_plugin(window, plugin_window, "NEXT_CHAPTER")
        assert callbacks["next"] == 0

    def test_close_is_idempotent(self, bridge, window):
        bridge.close()
        bridge.close()
        assert window.listener_count == 0

    def test_two_bridges_are_isolated(self, window, bridge, plugin_window):
        other_window = RecordingWindow()
        with PluginBridge(window, EmbeddedDocument(content_window=other_window), {"id": "m-9"}):
            assert window.listener_count == 2
            _from_plugin(window, other_window, "READY")

        assert plugin_window.posted == []
        assert other_window.messages[0]["payload"]["material"] == {"id": "m-9"}
