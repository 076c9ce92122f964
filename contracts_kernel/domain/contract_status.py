"""
Contract lifecycle types (``contracts_kernel.domain.contract_status``).

Responsibility
--------------
Enumerations for contract records and subcontractor declarations, and the
fixed contract status transition table.  Values are the integer codes
persisted in the ``contracts`` and ``subcontractor_declarations`` tables.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/`` or ``services/``.

Invariants enforced
-------------------
* Lifecycle state machine -- ``allowed_current_statuses`` is the only
  definition of which current statuses a target status may be reached from.
* ``AUTO_WITHDRAWN`` is deprecated: no transition reaches it.
"""

from __future__ import annotations

from enum import Enum, IntEnum


# =========================================================================
# Contract status lifecycle
# =========================================================================


class ContractStatus(IntEnum):
    """Contract lifecycle states."""

    PUBLISHED_TO_PROVIDER = 0
    WITHDRAWN_BY_AGENCY = 1
    WITHDRAWN_BY_PROVIDER = 2
    AUTO_WITHDRAWN = 3  # deprecated, use WITHDRAWN_BY_AGENCY / _PROVIDER
    APPROVED = 4
    APPROVED_WAITING_CONFIRMATION = 5
    REPLACED = 6


WITHDRAWAL_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.WITHDRAWN_BY_AGENCY,
    ContractStatus.WITHDRAWN_BY_PROVIDER,
})

# Targets that carry no current-status guard.
UNGUARDED_TARGET_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.PUBLISHED_TO_PROVIDER,
    ContractStatus.REPLACED,
    ContractStatus.APPROVED_WAITING_CONFIRMATION,
})


def allowed_current_statuses(
    new_status: ContractStatus,
    is_manual_approval: bool = False,
) -> tuple[ContractStatus, ...] | None:
    """Current statuses from which ``new_status`` may be reached.

    Returns ``None`` when the target has no guard (any current status is
    accepted) and an empty tuple when the target is never reachable.
    """
    if new_status == ContractStatus.APPROVED:
        if is_manual_approval:
            return (ContractStatus.PUBLISHED_TO_PROVIDER,)
        return (ContractStatus.APPROVED_WAITING_CONFIRMATION,)
    if new_status in WITHDRAWAL_STATUSES:
        return (ContractStatus.PUBLISHED_TO_PROVIDER,)
    if new_status in UNGUARDED_TARGET_STATUSES:
        return None
    return ()


# =========================================================================
# Classification enums
# =========================================================================


class ContractAmendmentType(IntEnum):
    """How a contract version came to exist."""

    NONE = 0
    NOTIFICATION = 1
    VARIATION = 2


# Statuses of earlier versions replaced when a new version is created.
REPLACEABLE_ON_CREATE: dict[ContractAmendmentType, frozenset[ContractStatus]] = {
    ContractAmendmentType.NONE: frozenset({ContractStatus.PUBLISHED_TO_PROVIDER}),
    ContractAmendmentType.VARIATION: frozenset({ContractStatus.PUBLISHED_TO_PROVIDER}),
    ContractAmendmentType.NOTIFICATION: frozenset({
        ContractStatus.APPROVED,
        ContractStatus.APPROVED_WAITING_CONFIRMATION,
        ContractStatus.PUBLISHED_TO_PROVIDER,
    }),
}

# Statuses of other versions replaced when a version is approved manually.
REPLACEABLE_ON_MANUAL_APPROVAL: frozenset[ContractStatus] = frozenset({
    ContractStatus.APPROVED,
    ContractStatus.APPROVED_WAITING_CONFIRMATION,
})


def initial_status_for(amendment_type: ContractAmendmentType) -> ContractStatus:
    """Status assigned to a newly created contract."""
    if amendment_type == ContractAmendmentType.NOTIFICATION:
        return ContractStatus.APPROVED
    return ContractStatus.PUBLISHED_TO_PROVIDER


class ContractType(IntEnum):
    """Legal form of the funding agreement."""

    CONDITIONS_OF_FUNDING_GRANT = 0
    CONDITIONS_OF_FUNDING_GRANT_EMPLOYER = 1
    CONDITIONS_OF_FUNDING_LARGE_EMPLOYERS = 2
    CONDITIONS_OF_FUNDING_LARGE_EMPLOYERS_OUTCOME_PILOT = 3
    CONTRACT_FOR_SERVICES = 4
    FINANCIAL_MEMORANDUM = 5
    FINANCIAL_MEMORANDUM_56F = 6
    TWENTY_FOUR_PLUS_ADVANCED_LEARNING_LOAN_EOI = 7
    TWENTY_FOUR_PLUS_ADVANCED_LEARNING_LOAN_FACILITY_CONDITIONS = 8


class ContractFundingType(IntEnum):
    """Funding stream the contract belongs to."""

    UNKNOWN = 0
    MAINSTREAM = 1
    ESF = 2
    TWENTY_FOUR_PLUS_LOAN = 3
    AGE = 4
    EOP = 5
    EOF = 6
    CITY_DEALS = 7
    LOCAL_GROWTH = 8
    LEVY = 9
    NCS = 10
    NON_LEVY = 11
    SIXTEEN_NINETEEN_FUNDING = 12
    AEBP = 13
    NLA = 14
    ADVANCED_LEARNER_LOANS = 15
    EDUCATION_AND_SKILLS_FUNDING = 16
    NON_LEARNING_GRANT = 17
    SIXTEEN_EIGHTEEN_FORENSIC_UNIT = 18
    DANCE_AND_DRAMA_AWARDS = 19
    COLLEGE_COLLABORATION_FUND = 20
    FURTHER_EDUCATION_CONDITION_ALLOCATION = 21
    PROCURED_NINETEEN_TO_TWENTY_FOUR_TRAINEESHIP = 22


# =========================================================================
# Subcontractor declarations
# =========================================================================


class SubcontractorDeclarationStatus(IntEnum):
    DRAFT = 0
    APPROVED = 1
    CLOSED = 2


class SubcontractorDeclarationType(IntEnum):
    """Nil declaration (no subcontracting) or a full declaration."""

    NIL = 0
    FULL = 1


# =========================================================================
# Notification vocabulary
# =========================================================================


class ActionType(str, Enum):
    """Audited actions on a contract."""

    CONTRACT_CREATED = "ContractCreated"
    CONTRACT_CONFIRM_APPROVAL = "ContractConfirmApproval"
    CONTRACT_MANUAL_APPROVAL = "ContractManualApproval"
    CONTRACT_WITHDRAWAL = "ContractWithdrawal"
    CONTRACT_REPLACED = "ContractReplaced"


class MessageStatus(str, Enum):
    """``Status`` user property on status-change bus messages."""

    APPROVED = "Approved"
    WITHDRAWN = "Withdrawn"
    READY_TO_SIGN = "ReadyToSign"
    READY_TO_REVIEW = "ReadyToReview"


def wire_name(member: Enum) -> str:
    """PascalCase name used in audit messages and bus payloads.

    ``ContractStatus.PUBLISHED_TO_PROVIDER`` -> ``"PublishedToProvider"``.
    """
    return "".join(part.capitalize() for part in member.name.split("_"))
