"""Unit tests for tool result unwrapping and the device tool groups."""

from unittest.mock import AsyncMock

import pytest

from anode_mcp_client.tools import (
    AppsAPI,
    DeviceAPI,
    FilesAPI,
    GesturesAPI,
    ImageAPI,
    LayoutAPI,
    UiAPI,
    unwrap_tool_result,
)


def text_result(text):
    return {"content": [{"type": "text", "text": text}]}


class TestUnwrapToolResult:
    """Test the single unwrapping rule applied to every tool result."""

    def test_json_text_is_decoded(self):
        result = unwrap_tool_result(text_result('{"width": 1080, "height": 2400}'))

        assert result == {"width": 1080, "height": 2400}

    def test_scalar_json_text_is_decoded(self):
        assert unwrap_tool_result(text_result("true")) is True
        assert unwrap_tool_result(text_result("42")) == 42

    def test_plain_text_is_returned_raw(self):
        assert unwrap_tool_result(text_result("Tapped at (5, 6)")) == "Tapped at (5, 6)"

    def test_empty_text_passes_through(self):
        envelope = text_result("")

        assert unwrap_tool_result(envelope) is envelope

    def test_empty_content_passes_through(self):
        envelope = {"content": []}

        assert unwrap_tool_result(envelope) is envelope

    def test_non_text_first_item_passes_through(self):
        envelope = {
            "content": [
                {"type": "image", "data": "iVBORw0KGgo=", "mimeType": "image/png"},
                {"type": "text", "text": '{"ignored": true}'},
            ]
        }

        assert unwrap_tool_result(envelope) is envelope

    def test_only_first_item_is_considered(self):
        envelope = {
            "content": [
                {"type": "text", "text": '{"first": 1}'},
                {"type": "text", "text": '{"second": 2}'},
            ]
        }

        assert unwrap_tool_result(envelope) == {"first": 1}

    def test_malformed_later_items_are_ignored(self):
        envelope = {
            "content": [
                {"type": "text", "text": '{"a": 1}'},
                {"text": "missing type"},
                "not an item",
            ]
        }

        assert unwrap_tool_result(envelope) == {"a": 1}

    def test_malformed_first_item_passes_through(self):
        envelope = {"content": [{"text": '{"a": 1}'}]}

        assert unwrap_tool_result(envelope) is envelope

    @pytest.mark.parametrize("result", [None, "text", 7, {"content": "not a list"}])
    def test_non_envelope_passes_through(self, result):
        assert unwrap_tool_result(result) == result


@pytest.fixture
def client():
    mock = AsyncMock()
    mock.call_tool.return_value = {"ok": True}
    return mock


class TestToolGroups:
    """Test that each helper calls the right tool with the right arguments."""

    @pytest.mark.asyncio
    async def test_files(self, client):
        files = FilesAPI(_client=client)

        assert await files.read("/sdcard/a.txt") == {"ok": True}
        await files.write("/sdcard/a.txt", "hello")
        await files.list("/sdcard")
        await files.exists("/sdcard/b")
        await files.delete("/sdcard/b")

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("file_read", {"path": "/sdcard/a.txt"}),
            ("file_write", {"path": "/sdcard/a.txt", "content": "hello"}),
            ("file_list", {"path": "/sdcard"}),
            ("file_exists", {"path": "/sdcard/b"}),
            ("file_delete", {"path": "/sdcard/b"}),
        ]

    @pytest.mark.asyncio
    async def test_apps(self, client):
        apps = AppsAPI(_client=client)

        await apps.list_installed()
        await apps.launch("com.android.settings")
        await apps.get_info("com.android.settings")

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("app_list_installed",),
            ("app_launch", {"packageName": "com.android.settings"}),
            ("app_get_info", {"packageName": "com.android.settings"}),
        ]

    @pytest.mark.asyncio
    async def test_ui(self, client):
        ui = UiAPI(_client=client)

        await ui.click("text=OK")
        await ui.long_click("id=item")
        await ui.set_text("id=search", "anode")
        await ui.scroll("down")
        await ui.find_node("desc=Back")

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("ui_click", {"selector": "text=OK"}),
            ("ui_long_click", {"selector": "id=item"}),
            ("ui_set_text", {"selector": "id=search", "text": "anode"}),
            ("ui_scroll", {"direction": "down"}),
            ("ui_find_node", {"selector": "desc=Back"}),
        ]

    @pytest.mark.asyncio
    async def test_gestures_drop_unset_duration(self, client):
        gestures = GesturesAPI(_client=client)

        await gestures.tap(5, 6)
        await gestures.swipe(0, 100, 0, 900)
        await gestures.swipe(0, 100, 0, 900, duration=250)
        await gestures.long_press(10, 20)
        await gestures.pinch(540, 1200, 0.5, duration=300)
        await gestures.drag(1, 2, 3, 4)

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("gesture_tap", {"x": 5, "y": 6}),
            ("gesture_swipe", {"startX": 0, "startY": 100, "endX": 0, "endY": 900}),
            (
                "gesture_swipe",
                {"startX": 0, "startY": 100, "endX": 0, "endY": 900, "duration": 250},
            ),
            ("gesture_long_press", {"x": 10, "y": 20}),
            ("gesture_pinch", {"centerX": 540, "centerY": 1200, "scale": 0.5, "duration": 300}),
            ("gesture_drag", {"startX": 1, "startY": 2, "endX": 3, "endY": 4}),
        ]

    @pytest.mark.asyncio
    async def test_layout(self, client):
        layout = LayoutAPI(_client=client)

        await layout.get_root()
        await layout.find_by_id("com.app:id/title")
        await layout.find_by_text("Settings")
        await layout.find_by_text("Settings", exact=False)
        await layout.find_clickable()

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("layout_get_root",),
            ("layout_find_by_id", {"id": "com.app:id/title"}),
            ("layout_find_by_text", {"text": "Settings"}),
            ("layout_find_by_text", {"text": "Settings", "exact": False}),
            ("layout_find_clickable",),
        ]

    @pytest.mark.asyncio
    async def test_image(self, client):
        image = ImageAPI(_client=client)

        await image.capture_screen()
        await image.capture_screen(format="jpeg", quality=80)
        await image.find_color("#FF0000", region={"x": 0, "y": 0, "width": 10, "height": 10})
        await image.find_image("aGVsbG8=", threshold=0.9)

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("image_capture_screen", {}),
            ("image_capture_screen", {"format": "jpeg", "quality": 80}),
            (
                "image_find_color",
                {"color": "#FF0000", "region": {"x": 0, "y": 0, "width": 10, "height": 10}},
            ),
            ("image_find_image", {"template": "aGVsbG8=", "threshold": 0.9}),
        ]

    @pytest.mark.asyncio
    async def test_device(self, client):
        device = DeviceAPI(_client=client)

        await device.get_screen_size()
        await device.get_current_app()
        await device.get_screen_state()

        assert [c.args for c in client.call_tool.await_args_list] == [
            ("device_get_screen_size",),
            ("device_get_current_app",),
            ("device_get_screen_state",),
        ]
