"""
contracts_kernel.services.subcontractor_declaration_service -- Declaration reads.

Responsibility:
    Looks up a provider's full subcontractor declaration by id and returns
    it as an immutable DTO.

Architecture position:
    Kernel > Services.  SubcontractorDeclarationRepository runs one short
    ``session_scope`` per call; SubcontractorDeclarationService calls it
    through ``asyncio.to_thread`` like ContractService does.

Failure modes:
    - An unknown id is not an error: the service returns None and the
      outer layer answers "not found".
"""

from __future__ import annotations

import asyncio

from sqlalchemy.orm import Session, sessionmaker

from contracts_kernel.db.engine import session_scope
from contracts_kernel.domain.dtos import FullSubcontractorDeclarationInfo
from contracts_kernel.logging_config import get_logger
from contracts_kernel.models.subcontractor_declaration import (
    FullSubcontractorDeclaration,
)

logger = get_logger("services.subcontractor_declaration_service")


class SubcontractorDeclarationRepository:
    """Read-only store for full subcontractor declarations."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_full_subcontractor_declaration_by_id(
        self, declaration_id: int
    ) -> FullSubcontractorDeclaration | None:
        with session_scope(self._session_factory) as session:
            return session.get(FullSubcontractorDeclaration, declaration_id)


class SubcontractorDeclarationService:

    def __init__(self, repository: SubcontractorDeclarationRepository):
        self._repository = repository

    async def get_full_subcontractor_declaration(
        self, declaration_id: int
    ) -> FullSubcontractorDeclarationInfo | None:
        """Return the declaration with ``declaration_id``, or None if unknown."""
        logger.info(
            "subcontractor_declaration_requested",
            extra={"declaration_id": declaration_id},
        )
        declaration = await asyncio.to_thread(
            self._repository.get_full_subcontractor_declaration_by_id,
            declaration_id,
        )
        if declaration is None:
            logger.info(
                "subcontractor_declaration_not_found",
                extra={"declaration_id": declaration_id},
            )
            return None
        return FullSubcontractorDeclarationInfo.from_model(declaration)
