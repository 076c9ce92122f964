"""
contracts_kernel.services.contract_validation -- Request and transition checks.

Responsibility:
    Checks that a loaded contract matches the request that names it, that a
    status transition is permitted from the contract's current status, and
    that a new version may be created next to the versions already stored.

Architecture position:
    Kernel > Services.  Pure checks over already-loaded entities; performs
    no I/O.  Every mutating workflow calls into this module before it
    writes anything.

Invariants enforced:
    - Transitions follow ``allowed_current_statuses``; targets without a
      guard are always permitted.
    - A request id of 0 is "not supplied" and is never compared.
    - A new version must be strictly higher than every stored version.

Failure modes:
    - ContractNotFoundError when the contract was not loaded.
    - InvalidContractRequestError on number/version/id mismatch or a
      withdrawal type that is not a withdrawal.
    - ContractExpectationFailedError when a supplementary predicate fails.
    - ContractStatusError on a forbidden transition.
    - ContractWithHigherVersionAlreadyExistsError / DuplicateContractError
      on create.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from contracts_kernel.domain.contract_status import (
    WITHDRAWAL_STATUSES,
    ContractStatus,
    allowed_current_statuses,
)
from contracts_kernel.domain.dtos import (
    ContractRequest,
    CreateContractRequest,
    UpdateContractWithdrawalRequest,
)
from contracts_kernel.exceptions import (
    ContractExpectationFailedError,
    ContractNotFoundError,
    ContractStatusError,
    ContractWithHigherVersionAlreadyExistsError,
    DuplicateContractError,
    InvalidContractRequestError,
)
from contracts_kernel.logging_config import get_logger
from contracts_kernel.models.contract import Contract

logger = get_logger("services.contract_validation")


@dataclass(frozen=True)
class ContractPredicate:
    """Extra precondition on a loaded contract, with a readable description."""

    description: str
    check: Callable[[Contract], bool]

    def __call__(self, contract: Contract) -> bool:
        return bool(self.check(contract))


class ContractValidator:
    """Validation rules shared by the contract workflows."""

    def validate_status_change(
        self,
        contract: Contract,
        new_status: ContractStatus,
        is_manual_approval: bool = False,
    ) -> None:
        allowed = allowed_current_statuses(new_status, is_manual_approval)
        if allowed is None:
            return
        if contract.status in allowed:
            return

        logger.warning(
            "contract_status_change_rejected",
            extra={
                "contract_id": contract.id,
                "current_status": contract.status,
                "new_status": new_status,
                "allowed_statuses": [s.name for s in allowed],
            },
        )
        raise ContractStatusError(
            "Contract status cannot be changed",
            current_status=contract.status,
            new_status=new_status,
            allowed_statuses=allowed,
        )

    def validate(
        self,
        contract: Contract | None,
        request: ContractRequest,
        predicate: ContractPredicate | None = None,
    ) -> Contract:
        """Check ``contract`` against ``request``; returns the contract."""
        if contract is None:
            raise ContractNotFoundError(
                request.contract_number, request.contract_version, request.id
            )

        if (
            contract.contract_number != request.contract_number
            or contract.contract_version != request.contract_version
            or (request.id != 0 and contract.id != request.id)
        ):
            raise InvalidContractRequestError(
                request.contract_number, request.contract_version, request.id
            )

        if predicate is not None and not predicate(contract):
            raise ContractExpectationFailedError(
                request.contract_number,
                request.contract_version,
                contract.id,
                predicate.description,
            )
        return contract

    def validate_withdrawal(
        self,
        contract: Contract | None,
        request: UpdateContractWithdrawalRequest,
    ) -> Contract:
        contract = self.validate(contract, request)
        if request.withdrawal_type not in WITHDRAWAL_STATUSES:
            raise InvalidContractRequestError(
                request.contract_number,
                request.contract_version,
                request.id,
                withdrawal_type=request.withdrawal_type,
            )
        return contract

    def validate_for_new_contract(
        self,
        request: CreateContractRequest,
        existing: Iterable[Contract],
    ) -> None:
        versions = [
            c.contract_version
            for c in existing
            if c.contract_number == request.contract_number
        ]
        if any(v > request.contract_version for v in versions):
            raise ContractWithHigherVersionAlreadyExistsError(
                request.contract_number, request.contract_version
            )
        if request.contract_version in versions:
            raise DuplicateContractError(
                request.contract_number, request.contract_version
            )
