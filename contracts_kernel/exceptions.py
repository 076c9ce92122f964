"""
Typed Exception Hierarchy for the Contracts Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ContractsDataError:

    ContractsDataError (base)
    |
    +-- ContractError
    |   +-- ContractNotFoundError
    |   +-- InvalidContractRequestError
    |   +-- ContractExpectationFailedError
    |   +-- ContractStatusError
    |   +-- DuplicateContractError
    |   +-- ContractWithHigherVersionAlreadyExistsError
    |
    +-- DocumentError
    |   +-- DocumentFetchError
    |   +-- DocumentEmptyError
    |
    +-- ConcurrencyError
    |   +-- ContractUpdateConcurrencyError
    |
    +-- ConfigurationError
        +-- InvalidSortOptionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|----------------------------------------
Contract        | CONTRACT_NOT_FOUND           | No contract for the given key
                | INVALID_CONTRACT_REQUEST     | Request fields don't match the record,
                |                              | or withdrawal type is not a withdrawal
                | CONTRACT_EXPECTATION_FAILED  | Supplementary predicate is false
                | CONTRACT_STATUS_CONFLICT     | Transition not allowed from current
                | DUPLICATE_CONTRACT           | Same number and version already stored
                | HIGHER_VERSION_EXISTS        | A newer version is already stored
----------------|------------------------------|----------------------------------------
Document        | DOCUMENT_FETCH_FAILED        | Blob missing or download failed
                | DOCUMENT_EMPTY               | Blob downloaded but has no content
----------------|------------------------------|----------------------------------------
Concurrency     | CONTRACT_UPDATE_CONCURRENCY  | last_updated_at token mismatch on save
----------------|------------------------------|----------------------------------------
Configuration   | INVALID_SORT_OPTION          | Unknown sort field name

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch by type and read structured attributes, never parse messages:

    try:
        await contract_service.withdraw(request)
    except ContractStatusError as e:
        return conflict(current=e.current_status, allowed=e.allowed_statuses)
    except ContractNotFoundError as e:
        return not_found(e.contract_number, e.contract_version)

Callers at the outer boundary (an HTTP layer, the CLI) translate error kinds
to externally visible codes with ``http_status_for``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class ContractsDataError(Exception):
    """
    Base exception for all contracts kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CONTRACTS_DATA_ERROR"


# Contract-related exceptions


class ContractError(ContractsDataError):
    """Base exception for contract record errors."""

    code: str = "CONTRACT_ERROR"


class ContractNotFoundError(ContractError):
    """No contract was found for the given number, version or id."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(
        self,
        contract_number: str | None = None,
        contract_version: int | None = None,
        contract_id: int | None = None,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        super().__init__(
            f"Contract not found: number={contract_number}, "
            f"version={contract_version}, id={contract_id}"
        )


class InvalidContractRequestError(ContractError):
    """Request does not correspond to the loaded contract."""

    code: str = "INVALID_CONTRACT_REQUEST"

    def __init__(
        self,
        contract_number: str,
        contract_version: int,
        contract_id: int,
        withdrawal_type: Any = None,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        self.withdrawal_type = withdrawal_type
        if withdrawal_type is None:
            message = (
                f"Invalid contract request. The contract number: {contract_number} "
                f"or contract version: {contract_version} does not correspond "
                f"to contract Id: {contract_id}."
            )
        else:
            name = getattr(withdrawal_type, "name", withdrawal_type)
            message = (
                f"Invalid contract status request. The contract withdrawal type "
                f"request: {name}. The contract number: {contract_number}, "
                f"contract version: {contract_version}, contract Id: {contract_id}."
            )
        super().__init__(message)


class ContractExpectationFailedError(ContractError):
    """A supplementary precondition on the loaded contract is not met."""

    code: str = "CONTRACT_EXPECTATION_FAILED"

    def __init__(
        self,
        contract_number: str,
        contract_version: int,
        contract_id: int,
        expectation: str,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        self.expectation = expectation
        super().__init__(
            f"Contract {contract_number} version {contract_version} "
            f"(id {contract_id}) failed expectation: {expectation}"
        )


class ContractStatusError(ContractError):
    """
    Attempted status transition is not permitted from the current status.

    ``allowed_statuses`` lists the current statuses from which the
    transition would have been accepted (empty for unconditional rejection).
    """

    code: str = "CONTRACT_STATUS_CONFLICT"

    def __init__(
        self,
        message: str,
        current_status: Any = None,
        new_status: Any = None,
        allowed_statuses: Iterable[Any] = (),
    ):
        self.current_status = current_status
        self.new_status = new_status
        self.allowed_statuses = tuple(allowed_statuses)
        detail = message
        if current_status is not None or new_status is not None:
            detail = (
                f"{message}, Current status is: {_name(current_status)}, "
                f"trying to set to new status {_name(new_status)}"
            )
            if self.allowed_statuses:
                allowed = ",".join(_name(s) for s in self.allowed_statuses)
                detail = f"{detail} whereas allowed status are {allowed}"
        super().__init__(detail)


class DuplicateContractError(ContractError):
    """A contract with the same number and version already exists."""

    code: str = "DUPLICATE_CONTRACT"

    def __init__(self, contract_number: str, contract_version: int):
        self.contract_number = contract_number
        self.contract_version = contract_version
        super().__init__(
            f"A contract with contract number {contract_number} and "
            f"version {contract_version} already exists."
        )


class ContractWithHigherVersionAlreadyExistsError(ContractError):
    """A contract with the same number and a higher version already exists."""

    code: str = "HIGHER_VERSION_EXISTS"

    def __init__(self, contract_number: str, contract_version: int):
        self.contract_number = contract_number
        self.contract_version = contract_version
        super().__init__(
            f"A contract with contract number {contract_number} and a version "
            f"higher than {contract_version} already exists."
        )


# Document-related exceptions


class DocumentError(ContractsDataError):
    """Base exception for document collaborator failures."""

    code: str = "DOCUMENT_ERROR"


class DocumentFetchError(DocumentError):
    """Named document could not be fetched. The original cause is chained."""

    code: str = "DOCUMENT_FETCH_FAILED"

    def __init__(
        self,
        contract_number: str,
        contract_version: int,
        contract_id: int,
        file_name: str,
        reason: str,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        self.file_name = file_name
        self.reason = reason
        super().__init__(
            f"Exception raised for blob {file_name} for contract with "
            f"ContractId: {contract_id}, ContractNumber: {contract_number}, "
            f"ContractVersion: {contract_version}. Failed with {reason}."
        )


class DocumentEmptyError(DocumentError):
    """Named document was fetched but has no content."""

    code: str = "DOCUMENT_EMPTY"

    def __init__(
        self,
        contract_number: str,
        contract_version: int,
        contract_id: int,
        file_name: str,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        self.file_name = file_name
        super().__init__(
            f"Blob {file_name} for contract with ContractId: {contract_id}, "
            f"ContractNumber: {contract_number}, ContractVersion: "
            f"{contract_version} has no content."
        )


# Concurrency-related exceptions


class ConcurrencyError(ContractsDataError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ContractUpdateConcurrencyError(ConcurrencyError):
    """The contract was modified by another writer since it was loaded."""

    code: str = "CONTRACT_UPDATE_CONCURRENCY"

    def __init__(
        self,
        contract_number: str,
        contract_version: int,
        contract_id: int,
        status: Any,
    ):
        self.contract_number = contract_number
        self.contract_version = contract_version
        self.contract_id = contract_id
        self.status = status
        super().__init__(
            f"Contract {contract_number} version {contract_version} "
            f"(id {contract_id}) with status {_name(status)} was modified "
            "by another transaction"
        )


# Configuration-related exceptions


class ConfigurationError(ContractsDataError):
    """Base exception for misconfiguration detected at call time."""

    code: str = "CONFIGURATION_ERROR"


class InvalidSortOptionError(ConfigurationError):
    """Sort field name is not one of the supported sort options."""

    code: str = "INVALID_SORT_OPTION"

    def __init__(self, sort_name: str, supported: Iterable[str]):
        self.sort_name = sort_name
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported sort option '{sort_name}'. "
            f"Supported options: {', '.join(self.supported)}"
        )


# ---------------------------------------------------------------------------
# Caller-facing translation
# ---------------------------------------------------------------------------

_HTTP_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (ContractNotFoundError, 404),
    (InvalidContractRequestError, 400),
    (ContractExpectationFailedError, 400),
    (InvalidSortOptionError, 400),
    (ContractStatusError, 409),
    (DuplicateContractError, 409),
    (ContractWithHigherVersionAlreadyExistsError, 409),
    (ContractUpdateConcurrencyError, 409),
)


def http_status_for(exc: BaseException) -> int:
    """Map a domain error to the status code an outer HTTP layer returns."""
    for exc_type, status in _HTTP_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


def _name(value: Any) -> str:
    return getattr(value, "name", str(value))
