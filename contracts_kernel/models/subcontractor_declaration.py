"""
Module: contracts_kernel.models.subcontractor_declaration
Responsibility: ORM persistence for a provider's full subcontractor
    declaration: who it is for, whether the provider subcontracts funded
    provision and who submitted it.
Architecture position: Kernel > Models.  May import from db/ and domain/
    enums only.  MUST NOT import from services/ or outer layers.

This service only reads declarations; they are written by the declaration
submission service that shares the database.
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from contracts_kernel.db.base import Base
from contracts_kernel.db.types import IntEnumType, ShortText
from contracts_kernel.domain.contract_status import (
    SubcontractorDeclarationStatus,
    SubcontractorDeclarationType,
)


class FullSubcontractorDeclaration(Base):
    """
    One version of a provider's subcontractor declaration.

    Guarantees:
        - status and declaration_type are stored as their integer codes and
          loaded as enum members.
        - submitted_at, submitted_by and submitted_by_display_name are only
          set once the provider has submitted the declaration.
    """

    __tablename__ = "subcontractor_declarations"

    __table_args__ = (
        Index("idx_subcontractor_declaration_ukprn", "ukprn"),
    )

    ukprn: Mapped[int] = mapped_column(Integer, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    charity_registration_number: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )

    organisation_name: Mapped[ShortText | None] = mapped_column(nullable=True)

    sub_contract_funded_provision: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Provider subcontracts any of its funded provision",
    )

    second_level_sub_contract_funded_provision: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    web_link: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[SubcontractorDeclarationStatus] = mapped_column(
        IntEnumType(SubcontractorDeclarationStatus),
        nullable=False,
        default=SubcontractorDeclarationStatus.DRAFT,
    )

    period: Mapped[str | None] = mapped_column(String(20), nullable=True)

    declaration_type: Mapped[SubcontractorDeclarationType] = mapped_column(
        IntEnumType(SubcontractorDeclarationType),
        nullable=False,
        default=SubcontractorDeclarationType.NIL,
    )

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    submitted_by: Mapped[ShortText | None] = mapped_column(nullable=True)

    submitted_by_display_name: Mapped[ShortText | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    last_updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<FullSubcontractorDeclaration {self.id} ukprn={self.ukprn} "
            f"v{self.version}>"
        )
