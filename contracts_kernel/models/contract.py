"""
Module: contracts_kernel.models.contract
Responsibility: ORM persistence for grant-funding contract records.  Each
    Contract version carries identification, classification, signing
    details, reminder bookkeeping and three dependent records: the PDF
    content, the original XML data and the funding stream period codes.
Architecture position: Kernel > Models.  May import from db/ and domain/
    enums only.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - (contract_number, contract_version) is unique (uq_contract_number_version).
    - last_updated_at is the optimistic concurrency token: it is the mapper's
      version_id_col with version_id_generator=False, so every UPDATE carries
      ``WHERE last_updated_at = <value when loaded>`` and the application
      stamps the new value.  A zero-row UPDATE raises StaleDataError.

Failure modes:
    - IntegrityError on duplicate (contract_number, contract_version).
    - StaleDataError when another writer changed the row since it was loaded
      (translated to ContractUpdateConcurrencyError by the repository).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contracts_kernel.db.base import Base, IdType
from contracts_kernel.db.types import (
    ContractNumber,
    Document,
    IntEnumType,
    Money,
    ShortText,
    XmlText,
    Year,
)
from contracts_kernel.domain.contract_status import (
    ContractAmendmentType,
    ContractFundingType,
    ContractStatus,
    ContractType,
)


class Contract(Base):
    """
    One version of a funding contract.

    Guarantees:
        - (contract_number, contract_version) is unique.
        - status, funding_type, contract_type and amendment_type are stored
          as their integer codes and loaded as enum members.
        - created_at and last_updated_at are always set (NOT NULL).

    Non-goals:
        - This model does NOT enforce status transitions; that is
          ContractValidator.validate_status_change().
        - This model does NOT enforce version ordering on create; that is
          ContractValidator.validate_for_new_contract() under the entity lock.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint(
            "contract_number", "contract_version", name="uq_contract_number_version"
        ),
        Index("idx_contract_number", "contract_number"),
        Index("idx_contract_status", "status"),
        Index("idx_contract_ukprn", "ukprn"),
    )

    # =========================================================================
    # Identification
    # =========================================================================

    ukprn: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="UK provider reference number (8 digits)",
    )

    title: Mapped[ShortText] = mapped_column(nullable=False, default="")

    contract_number: Mapped[ContractNumber] = mapped_column(nullable=False)

    contract_version: Mapped[int] = mapped_column(Integer, nullable=False)

    parent_contract_number: Mapped[ContractNumber | None] = mapped_column(
        nullable=True,
        doc="Contract number this amendment belongs to",
    )

    contract_allocation_number: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )

    # =========================================================================
    # Classification
    # =========================================================================

    value: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    funding_type: Mapped[ContractFundingType] = mapped_column(
        IntEnumType(ContractFundingType),
        nullable=False,
        default=ContractFundingType.UNKNOWN,
    )

    contract_type: Mapped[ContractType] = mapped_column(
        IntEnumType(ContractType),
        nullable=False,
    )

    status: Mapped[ContractStatus] = mapped_column(
        IntEnumType(ContractStatus),
        nullable=False,
        default=ContractStatus.PUBLISHED_TO_PROVIDER,
    )

    amendment_type: Mapped[ContractAmendmentType] = mapped_column(
        IntEnumType(ContractAmendmentType),
        nullable=False,
        default=ContractAmendmentType.NONE,
    )

    year: Mapped[Year] = mapped_column(nullable=False, default="")

    page_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    start_date: Mapped[datetime | None] = mapped_column(nullable=True)

    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    first_census_date_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    second_census_date_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # =========================================================================
    # Signing
    # =========================================================================

    signed_by: Mapped[ShortText | None] = mapped_column(nullable=True)

    signed_by_display_name: Mapped[ShortText | None] = mapped_column(nullable=True)

    signed_on: Mapped[datetime | None] = mapped_column(nullable=True)

    was_manually_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    created_by: Mapped[ShortText | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    last_updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        doc="Optimistic concurrency token",
    )

    last_email_reminder_sent: Mapped[datetime | None] = mapped_column(nullable=True)

    # =========================================================================
    # Dependent records
    # =========================================================================

    content: Mapped["ContractContent | None"] = relationship(
        back_populates="contract",
        uselist=False,
        cascade="all, delete-orphan",
    )

    data: Mapped["ContractData | None"] = relationship(
        back_populates="contract",
        uselist=False,
        cascade="all, delete-orphan",
    )

    funding_stream_period_codes: Mapped[list["ContractFundingStreamPeriodCode"]] = (
        relationship(
            back_populates="contract",
            cascade="all, delete-orphan",
            lazy="selectin",
        )
    )

    __mapper_args__ = {
        "version_id_col": last_updated_at,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return (
            f"<Contract {self.id} {self.contract_number} "
            f"v{self.contract_version} {self.status.name if self.status is not None else None}>"
        )


class ContractContent(Base):
    """Signed/unsigned PDF document for a contract version (1:1)."""

    __tablename__ = "contract_contents"

    id: Mapped[int] = mapped_column(
        IdType, ForeignKey("contracts.id"), primary_key=True
    )

    file_name: Mapped[ShortText] = mapped_column(nullable=False)

    content: Mapped[Document] = mapped_column(nullable=False)

    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    contract: Mapped[Contract] = relationship(back_populates="content")


class ContractData(Base):
    """Original contract XML for a contract version (1:1)."""

    __tablename__ = "contract_data"

    id: Mapped[int] = mapped_column(
        IdType, ForeignKey("contracts.id"), primary_key=True
    )

    original_contract_xml: Mapped[XmlText | None] = mapped_column(nullable=True)

    contract: Mapped[Contract] = relationship(back_populates="data")


class ContractFundingStreamPeriodCode(Base):
    """Funding stream period code attached to a contract version (1:many)."""

    __tablename__ = "contract_funding_stream_period_codes"

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    contract_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("contracts.id"), nullable=True
    )

    contract: Mapped[Contract | None] = relationship(
        back_populates="funding_stream_period_codes"
    )
