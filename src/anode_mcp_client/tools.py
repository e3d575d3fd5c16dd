"""Tool-call facade.

Every device operation is a remote tool called through ``tools/call``.
The groups below map a Python method onto a tool name and an argument
record; arguments left as None are not sent.

unwrap_tool_result() is the one rule applied to every tool result: text
content is opportunistically JSON-decoded, everything else passes through
untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from pydantic import ValidationError

from .protocol import ContentItem

if TYPE_CHECKING:
    from .client import McpClient

logger = logging.getLogger(__name__)

ScrollDirection = Literal["up", "down", "left", "right"]
ImageFormat = Literal["png", "jpeg"]


def unwrap_tool_result(result: Any) -> Any:
    """Unwrap a tools/call result envelope.

    - first content item is text with a non-empty body: its JSON value, or
      the text itself if it is not valid JSON
    - anything else: ``result`` unchanged
    """
    content = result.get("content") if isinstance(result, dict) else None
    if not isinstance(content, list) or not content:
        return result

    # Only the first item decides; the rest of the envelope is not inspected
    try:
        first = ContentItem.model_validate(content[0])
    except ValidationError:
        logger.debug("First content item is malformed, passing result through")
        return result

    if first.type == "text" and first.text:
        try:
            return json.loads(first.text)
        except json.JSONDecodeError:
            return first.text
    return result


def _args(**kwargs: Any) -> dict[str, Any]:
    """Build an argument record, leaving out unset values."""
    return {key: value for key, value in kwargs.items() if value is not None}


@dataclass
class FilesAPI:
    """File operations on the device."""

    _client: McpClient

    async def read(self, path: str) -> Any:
        """Read a file. Returns {content, size}."""
        return await self._client.call_tool("file_read", _args(path=path))

    async def write(self, path: str, content: str) -> Any:
        return await self._client.call_tool("file_write", _args(path=path, content=content))

    async def list(self, path: str) -> Any:
        """List a directory. Returns {files: [{name, isDirectory, size}]}."""
        return await self._client.call_tool("file_list", _args(path=path))

    async def exists(self, path: str) -> Any:
        return await self._client.call_tool("file_exists", _args(path=path))

    async def delete(self, path: str) -> Any:
        return await self._client.call_tool("file_delete", _args(path=path))


@dataclass
class AppsAPI:
    """Installed application operations."""

    _client: McpClient

    async def list_installed(self) -> Any:
        """List installed apps. Returns {apps: [{packageName, appName}]}."""
        return await self._client.call_tool("app_list_installed")

    async def launch(self, package_name: str) -> Any:
        return await self._client.call_tool("app_launch", _args(packageName=package_name))

    async def get_info(self, package_name: str) -> Any:
        """Returns {packageName, appName, versionName}."""
        return await self._client.call_tool("app_get_info", _args(packageName=package_name))


@dataclass
class UiAPI:
    """Selector-based UI automation."""

    _client: McpClient

    async def click(self, selector: str) -> Any:
        return await self._client.call_tool("ui_click", _args(selector=selector))

    async def long_click(self, selector: str) -> Any:
        return await self._client.call_tool("ui_long_click", _args(selector=selector))

    async def set_text(self, selector: str, text: str) -> Any:
        return await self._client.call_tool("ui_set_text", _args(selector=selector, text=text))

    async def scroll(self, direction: ScrollDirection) -> Any:
        return await self._client.call_tool("ui_scroll", _args(direction=direction))

    async def find_node(self, selector: str) -> Any:
        """Returns {found, node?}."""
        return await self._client.call_tool("ui_find_node", _args(selector=selector))


@dataclass
class GesturesAPI:
    """Coordinate-based gestures. Durations are in milliseconds."""

    _client: McpClient

    async def tap(self, x: int, y: int) -> Any:
        return await self._client.call_tool("gesture_tap", _args(x=x, y=y))

    async def swipe(
        self,
        start_x: int,
        start_y: int,
        end_x: int,
        end_y: int,
        duration: int | None = None,
    ) -> Any:
        return await self._client.call_tool(
            "gesture_swipe",
            _args(startX=start_x, startY=start_y, endX=end_x, endY=end_y, duration=duration),
        )

    async def long_press(self, x: int, y: int, duration: int | None = None) -> Any:
        return await self._client.call_tool(
            "gesture_long_press", _args(x=x, y=y, duration=duration)
        )

    async def pinch(
        self,
        center_x: int,
        center_y: int,
        scale: float,
        duration: int | None = None,
    ) -> Any:
        return await self._client.call_tool(
            "gesture_pinch",
            _args(centerX=center_x, centerY=center_y, scale=scale, duration=duration),
        )

    async def drag(
        self,
        start_x: int,
        start_y: int,
        end_x: int,
        end_y: int,
        duration: int | None = None,
    ) -> Any:
        return await self._client.call_tool(
            "gesture_drag",
            _args(startX=start_x, startY=start_y, endX=end_x, endY=end_y, duration=duration),
        )


@dataclass
class LayoutAPI:
    """Layout tree inspection."""

    _client: McpClient

    async def get_root(self) -> Any:
        return await self._client.call_tool("layout_get_root")

    async def find_by_id(self, id: str) -> Any:
        return await self._client.call_tool("layout_find_by_id", _args(id=id))

    async def find_by_text(self, text: str, exact: bool | None = None) -> Any:
        return await self._client.call_tool("layout_find_by_text", _args(text=text, exact=exact))

    async def find_clickable(self) -> Any:
        return await self._client.call_tool("layout_find_clickable")


@dataclass
class ImageAPI:
    """Screen capture and image search."""

    _client: McpClient

    async def capture_screen(
        self,
        format: ImageFormat | None = None,
        quality: int | None = None,
    ) -> Any:
        """Capture the screen. Returns {image (base64), width, height}."""
        return await self._client.call_tool(
            "image_capture_screen", _args(format=format, quality=quality)
        )

    async def find_color(self, color: str, region: dict[str, int] | None = None) -> Any:
        """Find a pixel of ``color``; ``region`` is {x, y, width, height}."""
        return await self._client.call_tool("image_find_color", _args(color=color, region=region))

    async def find_image(self, template: str, threshold: float | None = None) -> Any:
        return await self._client.call_tool(
            "image_find_image", _args(template=template, threshold=threshold)
        )


@dataclass
class DeviceAPI:
    """Device information."""

    _client: McpClient

    async def get_screen_size(self) -> Any:
        """Returns {width, height, density}."""
        return await self._client.call_tool("device_get_screen_size")

    async def get_current_app(self) -> Any:
        """Returns {packageName, activityName}."""
        return await self._client.call_tool("device_get_current_app")

    async def get_screen_state(self) -> Any:
        """Returns {isOn, isLocked}."""
        return await self._client.call_tool("device_get_screen_state")
