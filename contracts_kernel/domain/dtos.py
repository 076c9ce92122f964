"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the service boundary:
    inbound workflow requests, the ContractInfo read model, status-change
    events, audit records, bus notifications and reminder pages.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of database access and external services.  from_model() class
    methods exist as boundary converters but are only invoked from the
    service layer.

Invariants enforced:
    - Requests reject structurally invalid input at construction
      (empty or over-long contract numbers, non-positive versions,
      UKPRNs that are not 8 digits).
    - Workflows accept DTOs and return DTOs, never ORM entities.

Failure modes:
    - ValueError from __post_init__ on structurally invalid requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from contracts_kernel.db.types import CONTRACT_NUMBER_MAX_LENGTH
from contracts_kernel.domain.contract_status import (
    ActionType,
    ContractAmendmentType,
    ContractFundingType,
    ContractStatus,
    ContractType,
    SubcontractorDeclarationStatus,
    SubcontractorDeclarationType,
    wire_name,
)

if TYPE_CHECKING:
    from contracts_kernel.models.contract import Contract as ContractModel
    from contracts_kernel.models.subcontractor_declaration import (
        FullSubcontractorDeclaration as FullSubcontractorDeclarationModel,
    )

T = TypeVar("T")


def _check_contract_key(contract_number: str, contract_version: int) -> None:
    if not contract_number or len(contract_number) > CONTRACT_NUMBER_MAX_LENGTH:
        raise ValueError(
            "Contract number must be between 1 and "
            f"{CONTRACT_NUMBER_MAX_LENGTH} characters: {contract_number!r}"
        )
    if contract_version < 1:
        raise ValueError(
            f"Contract version must be greater than zero: {contract_version}"
        )


# =========================================================================
# Requests
# =========================================================================


@dataclass(frozen=True)
class ContractRequest:
    """
    Identifies one contract version and the blob holding its original XML.

    ``id`` of 0 means "not supplied"; it is then not checked against the
    loaded record.
    """

    contract_number: str
    contract_version: int
    file_name: str
    id: int = 0

    def __post_init__(self) -> None:
        _check_contract_key(self.contract_number, self.contract_version)


@dataclass(frozen=True)
class UpdateConfirmApprovalRequest(ContractRequest):
    """Provider confirmed an approval that was waiting for confirmation."""


@dataclass(frozen=True)
class ManualApprovalRequest(ContractRequest):
    """Agency approves a published contract on the provider's behalf."""

    principal_id: str | None = None


@dataclass(frozen=True)
class UpdateContractWithdrawalRequest(ContractRequest):
    """Withdraw a published contract.  ``withdrawal_type`` is the target status."""

    withdrawal_type: ContractStatus = ContractStatus.WITHDRAWN_BY_AGENCY


@dataclass(frozen=True)
class UpdateLastEmailReminderSentRequest:
    """Marks the reminder e-mail as sent for the contract with ``id``."""

    id: int


@dataclass(frozen=True)
class CreateContractRequestDocument:
    """PDF document supplied with a create request."""

    file_name: str
    content: bytes


@dataclass(frozen=True)
class CreateContractRequest:
    """A new contract version published by the agency."""

    ukprn: int
    title: str
    contract_number: str
    contract_version: int
    value: Decimal
    funding_type: ContractFundingType
    year: str
    contract_type: ContractType
    amendment_type: ContractAmendmentType
    created_by: str
    contract_content: CreateContractRequestDocument
    contract_data: str  # blob name of the original XML
    page_count: int = 0
    parent_contract_number: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    signed_on: datetime | None = None
    contract_allocation_number: str | None = None
    first_census_date_id: int | None = None
    second_census_date_id: int | None = None
    funding_stream_period_codes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_contract_key(self.contract_number, self.contract_version)
        if not 10_000_000 <= self.ukprn <= 99_999_999:
            raise ValueError(f"UKPRN should consist of 8 digits: {self.ukprn}")
        if self.value < Decimal("0"):
            raise ValueError(f"Contract value must be non-negative: {self.value}")

    def as_contract_request(self) -> ContractRequest:
        """Request used to fetch the original XML named by ``contract_data``."""
        return ContractRequest(
            contract_number=self.contract_number,
            contract_version=self.contract_version,
            file_name=self.contract_data,
        )


# =========================================================================
# Read models
# =========================================================================


@dataclass(frozen=True)
class ContractInfo:
    """
    Immutable DTO for contract data.

    Excludes the PDF and XML payloads; those are only loaded by workflows
    that need them.
    """

    id: int
    ukprn: int
    title: str
    contract_number: str
    contract_version: int
    value: Decimal
    funding_type: ContractFundingType
    contract_type: ContractType
    status: ContractStatus
    amendment_type: ContractAmendmentType
    year: str
    parent_contract_number: str | None
    start_date: datetime | None
    end_date: datetime | None
    signed_by: str | None
    signed_by_display_name: str | None
    signed_on: datetime | None
    was_manually_approved: bool
    created_at: datetime
    last_updated_at: datetime
    last_email_reminder_sent: datetime | None
    contract_allocation_number: str | None
    funding_stream_period_codes: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractInfo:
        return cls(
            id=model.id,
            ukprn=model.ukprn,
            title=model.title,
            contract_number=model.contract_number,
            contract_version=model.contract_version,
            value=model.value,
            funding_type=model.funding_type,
            contract_type=model.contract_type,
            status=model.status,
            amendment_type=model.amendment_type,
            year=model.year,
            parent_contract_number=model.parent_contract_number,
            start_date=model.start_date,
            end_date=model.end_date,
            signed_by=model.signed_by,
            signed_by_display_name=model.signed_by_display_name,
            signed_on=model.signed_on,
            was_manually_approved=model.was_manually_approved,
            created_at=model.created_at,
            last_updated_at=model.last_updated_at,
            last_email_reminder_sent=model.last_email_reminder_sent,
            contract_allocation_number=model.contract_allocation_number,
            funding_stream_period_codes=tuple(
                c.code for c in model.funding_stream_period_codes
            ),
        )


@dataclass(frozen=True)
class ContractReminderItem:
    """One row of the reminder listing."""

    id: int
    ukprn: int
    title: str
    contract_number: str
    contract_version: int
    status: ContractStatus
    funding_type: ContractFundingType

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractReminderItem:
        return cls(
            id=model.id,
            ukprn=model.ukprn,
            title=model.title,
            contract_number=model.contract_number,
            contract_version=model.contract_version,
            status=model.status,
            funding_type=model.funding_type,
        )


@dataclass(frozen=True)
class FullSubcontractorDeclarationInfo:
    """Immutable DTO for a full subcontractor declaration."""

    id: int
    ukprn: int
    version: int
    charity_registration_number: str | None
    organisation_name: str | None
    sub_contract_funded_provision: bool
    second_level_sub_contract_funded_provision: bool
    web_link: str | None
    status: SubcontractorDeclarationStatus
    period: str | None
    declaration_type: SubcontractorDeclarationType
    submitted_at: datetime | None
    submitted_by: str | None
    submitted_by_display_name: str | None
    created_at: datetime
    last_updated_at: datetime

    @classmethod
    def from_model(
        cls, model: FullSubcontractorDeclarationModel
    ) -> FullSubcontractorDeclarationInfo:
        return cls(
            id=model.id,
            ukprn=model.ukprn,
            version=model.version,
            charity_registration_number=model.charity_registration_number,
            organisation_name=model.organisation_name,
            sub_contract_funded_provision=model.sub_contract_funded_provision,
            second_level_sub_contract_funded_provision=(
                model.second_level_sub_contract_funded_provision
            ),
            web_link=model.web_link,
            status=model.status,
            period=model.period,
            declaration_type=model.declaration_type,
            submitted_at=model.submitted_at,
            submitted_by=model.submitted_by,
            submitted_by_display_name=model.submitted_by_display_name,
            created_at=model.created_at,
            last_updated_at=model.last_updated_at,
        )


@dataclass(frozen=True)
class PagingMetadata:
    """Paging block returned with a page of results.  URLs are '' when absent."""

    total_count: int
    page_size: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool
    next_page_url: str = ""
    previous_page_url: str = ""


@dataclass(frozen=True)
class ContractReminders(Generic[T]):
    """A page of reminder items with its paging metadata."""

    contracts: tuple[T, ...]
    paging: PagingMetadata


# =========================================================================
# Events and messages
# =========================================================================


@dataclass(frozen=True)
class ContractStatusChange:
    """
    Status change of one contract version.

    Produced by every mutating workflow and by the repository's
    ``update_status``.  ``status`` is the status before the change (None
    for newly created contracts).
    """

    id: int
    ukprn: int
    contract_number: str
    contract_version: int
    new_status: ContractStatus
    status: ContractStatus | None = None
    action: ActionType | None = None
    amendment_type: ContractAmendmentType = ContractAmendmentType.NONE


class SeverityLevel(str, Enum):
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass(frozen=True)
class Audit:
    """Audit record handed to the audit sink."""

    action: ActionType
    severity: SeverityLevel
    ukprn: int
    message: str
    user: str


@dataclass(frozen=True)
class ContractNotification:
    """Body of the status-change message published to the bus."""

    id: int
    contract_number: str
    contract_version: int
    status: ContractStatus
    ukprn: int

    @classmethod
    def from_status_change(cls, change: ContractStatusChange) -> ContractNotification:
        return cls(
            id=change.id,
            contract_number=change.contract_number,
            contract_version=change.contract_version,
            status=change.new_status,
            ukprn=change.ukprn,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready body; the status is sent by name."""
        return {
            "Id": self.id,
            "ContractNumber": self.contract_number,
            "ContractVersion": self.contract_version,
            "Status": wire_name(self.status),
            "UKPRN": self.ukprn,
        }


@dataclass(frozen=True)
class BusMessage:
    """Envelope sent to the topic client."""

    message_id: str
    body: bytes
    user_properties: dict[str, str] = field(default_factory=dict)


# Before/after record returned by ContractRepository.update_status.
UpdatedContractStatus = ContractStatusChange
