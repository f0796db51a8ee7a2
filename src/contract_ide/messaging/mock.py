from __future__ import annotations

from typing import Any

DEFAULT_SOURCE = "default"


class MockSurface:
    """In-memory UI surface for tests and headless embedding.

    Records every delivered wire message and mimics the UI's list views: one
    rendered list per ``source``, each replaced wholesale by a ``refreshList``
    for that source, the same way the web view resets its collection.
    Pushes without a source land in the ``"default"`` list. Helpers taking
    ``source=None`` read the most recently refreshed list.

    Usage::

        surface = MockSurface()
        channel.attach(surface)
        channel.send(refresh_list([ListItem(id="x")], source="sessions"))
        await channel.drain()
        assert surface.rendered_ids("sessions") == ["x"]
    """

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.lists: dict[str, list[dict[str, Any]]] = {}
        self.fail_with: Exception | None = None
        self._last_source: str | None = None

    def __repr__(self) -> str:
        return f"MockSurface(messages={len(self.messages)}, lists={sorted(self.lists)})"

    async def post_message(self, message: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.messages.append(message)
        if message.get("type") == "refreshList":
            value = message.get("value", {})
            source = value.get("source") or DEFAULT_SOURCE
            self.lists[source] = list(value.get("items", []))
            self._last_source = source

    # ------------------------------------------------------------------ #
    # Test helpers
    # ------------------------------------------------------------------ #

    @property
    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]

    def items(self, source: str | None = None) -> list[dict[str, Any]]:
        key = source if source is not None else self._last_source
        if key is None:
            return []
        return self.lists.get(key, [])

    def rendered_ids(self, source: str | None = None) -> list[str]:
        return [item["id"] for item in self.items(source)]

    def selected_id(self, source: str | None = None) -> str | None:
        for item in self.items(source):
            if item.get("selected"):
                return str(item["id"])
        return None

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["type"] == kind]

    def texts(self, kind: str) -> list[str]:
        return [m["value"]["text"] for m in self.of_type(kind)]

    def reset(self) -> None:
        self.messages.clear()
        self.lists.clear()
        self._last_source = None
