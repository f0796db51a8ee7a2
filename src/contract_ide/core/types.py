from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from contract_ide.core.constants import ServerStatus


class ProcessResult(BaseModel):
    """Captured outcome of a finished external process."""

    command: list[str]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Standard output followed by standard error.

        Tools that report failures as diagnostic text (e.g. a debugger printing
        an error trace) put the useful part on stderr.
        """
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class ServerHandle(BaseModel):
    port: int
    process_id: int | None = None
    status: ServerStatus = ServerStatus.STOPPED


class ListItem(BaseModel):
    """One row of a list rendered by the UI (coding session, answer header)."""

    id: str
    label: str = ""
    selected: bool = False
    details: dict[str, Any] = Field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnswerHeader(BaseModel):
    stream_id: str = Field(alias="streamId")
    question: str
    session_id: str | None = Field(default=None, alias="sessionId")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")

    model_config = {"populate_by_name": True}

    def to_list_item(self) -> ListItem:
        return ListItem(
            id=self.stream_id,
            label=self.question,
            details={"createdAt": self.created_at.isoformat()},
        )


class Answer(BaseModel):
    header: AnswerHeader
    content: str = ""
    failed: bool = False


class TermsAcceptance(BaseModel):
    accept_terms_of_service: bool = Field(default=False, alias="acceptTermsOfService")
    accept_privacy_statement: bool = Field(default=False, alias="acceptPrivacyStatement")

    model_config = {"populate_by_name": True}

    @property
    def all_accepted(self) -> bool:
        return self.accept_terms_of_service and self.accept_privacy_statement


class CodingSession(BaseModel):
    identifier: str
    name: str
