"""ORM models for the contracts kernel."""

from contracts_kernel.models.contract import (
    Contract,
    ContractContent,
    ContractData,
    ContractFundingStreamPeriodCode,
)
from contracts_kernel.models.subcontractor_declaration import (
    FullSubcontractorDeclaration,
)

__all__ = [
    "Contract",
    "ContractContent",
    "ContractData",
    "ContractFundingStreamPeriodCode",
    "FullSubcontractorDeclaration",
]
