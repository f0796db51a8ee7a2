from __future__ import annotations

import structlog

from contract_ide.core.types import TermsAcceptance
from contract_ide.storage.store import KeyValueStore

logger = structlog.get_logger(__name__)

TERMS_KEY = "assistant.acceptTerms"


class AssistantFacade:
    """Persisted assistant preferences (terms of service / privacy acceptance)."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def accept_terms(self, terms: TermsAcceptance) -> None:
        logger.info(
            "assistant_terms_updated",
            terms_of_service=terms.accept_terms_of_service,
            privacy_statement=terms.accept_privacy_statement,
        )
        await self._store.update(TERMS_KEY, terms.model_dump(by_alias=True))

    def are_terms_accepted(self) -> TermsAcceptance:
        raw = self._store.get(TERMS_KEY)
        if raw is None:
            return TermsAcceptance()
        return TermsAcceptance.model_validate(raw)
