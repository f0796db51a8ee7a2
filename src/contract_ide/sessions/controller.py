from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog

from contract_ide.core.constants import ListSource
from contract_ide.core.exceptions import StateError
from contract_ide.core.types import CodingSession, ListItem
from contract_ide.messaging.channel import MessageChannel
from contract_ide.messaging.messages import refresh_list
from contract_ide.storage.store import KeyValueStore

logger = structlog.get_logger(__name__)

SESSIONS_KEY = "codingSessions"
SELECTED_SESSION_KEY = "selectedCodingSession"

SessionCreator = Callable[[], Awaitable[str]]
SelectionListener = Callable[[], Awaitable[None]]


async def _new_identifier() -> str:
    return uuid.uuid4().hex


class SessionRepository:
    """Coding sessions persisted as a list under ``codingSessions``."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_all(self) -> list[CodingSession]:
        return [CodingSession(**raw) for raw in self._store.get(SESSIONS_KEY, [])]

    def get(self, identifier: str) -> CodingSession | None:
        for session in self.get_all():
            if session.identifier == identifier:
                return session
        return None

    async def add(self, session: CodingSession) -> None:
        sessions = [s for s in self.get_all() if s.identifier != session.identifier]
        sessions.append(session)
        await self._save(sessions)

    async def remove(self, identifier: str) -> None:
        await self._save([s for s in self.get_all() if s.identifier != identifier])

    async def _save(self, sessions: list[CodingSession]) -> None:
        await self._store.update(SESSIONS_KEY, [s.model_dump() for s in sessions])


class SessionController:
    """Coding-session list shown in the UI, with a persisted selection.

    Args:
        channel: Where the session list is pushed.
        repository: Session persistence.
        store: Holds the selected session id.
        creator: Returns the identifier for a new session; defaults to a
            random hex id.
        on_selection_changed: Awaited after the selection changes (the host
            uses it to refresh the assistant view).
    """

    def __init__(
        self,
        channel: MessageChannel,
        repository: SessionRepository,
        store: KeyValueStore,
        *,
        creator: SessionCreator | None = None,
        on_selection_changed: SelectionListener | None = None,
    ) -> None:
        self._channel = channel
        self._repository = repository
        self._store = store
        self._creator = creator or _new_identifier
        self.on_selection_changed = on_selection_changed

    @property
    def selected_id(self) -> str | None:
        value = self._store.get(SELECTED_SESSION_KEY)
        return str(value) if value is not None else None

    def is_any_open(self) -> bool:
        selected = self.selected_id
        return selected is not None and self._repository.get(selected) is not None

    def items(self) -> list[ListItem]:
        selected = self.selected_id
        return [
            ListItem(id=s.identifier, label=s.name, selected=s.identifier == selected)
            for s in self._repository.get_all()
        ]

    async def refresh(self) -> None:
        self._channel.send(refresh_list(self.items(), source=ListSource.SESSIONS))

    async def select(self, identifier: str) -> None:
        if self._repository.get(identifier) is None:
            raise StateError(f"Unknown coding session {identifier!r}.", code="ERR_UNKNOWN_ITEM")
        await self._set_selected(identifier)
        await self.refresh()

    async def create(self, name: str) -> CodingSession | None:
        """Create a session named *name* and select it; blank names are ignored."""
        name = name.strip()
        if not name:
            return None
        identifier = await self._creator()
        session = CodingSession(identifier=identifier, name=name)
        await self._repository.add(session)
        logger.info("session_created", identifier=identifier)
        await self._set_selected(identifier)
        await self.refresh()
        return session

    async def remove(self, identifier: str) -> None:
        if self.selected_id == identifier:
            await self._set_selected(None)
        await self._repository.remove(identifier)
        logger.info("session_removed", identifier=identifier)
        await self.refresh()

    async def _set_selected(self, identifier: str | None) -> None:
        await self._store.update(SELECTED_SESSION_KEY, identifier)
        if self.on_selection_changed is not None:
            await self.on_selection_changed()
