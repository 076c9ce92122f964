"""
contracts_kernel.services.document_service -- Contract documents.

Responsibility:
    Attaches the original contract XML to a contract by fetching the named
    blob, and declares the stamping collaborator that adds a signed
    confirmation page to a contract PDF.

Architecture position:
    Kernel > Services.  Blob access and PDF stamping are external
    collaborators expressed as Protocols; FileSystemBlobStore is the one
    concrete blob store shipped with the kernel.

Failure modes:
    - DocumentFetchError when the blob is missing or the download fails;
      the original exception is chained as ``__cause__``.
    - DocumentEmptyError when the blob holds only whitespace.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from contracts_kernel.domain.contract_status import ContractFundingType
from contracts_kernel.domain.dtos import ContractRequest
from contracts_kernel.exceptions import DocumentEmptyError, DocumentFetchError
from contracts_kernel.logging_config import get_logger
from contracts_kernel.models.contract import Contract, ContractData

logger = get_logger("services.document_service")


@runtime_checkable
class BlobStore(Protocol):
    """Read access to named blobs."""

    def exists(self, name: str) -> bool: ...

    def download(self, name: str) -> bytes: ...


class FileSystemBlobStore:
    """BlobStore over a local directory; blob names are relative paths."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    def _path(self, name: str) -> Path:
        path = (self._root / name).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Blob name escapes the store root: {name!r}")
        return path

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def download(self, name: str) -> bytes:
        return self._path(name).read_bytes()


class DocumentStamper(Protocol):
    """Adds a signed-confirmation page to a contract PDF."""

    def add_signed_document_page(
        self,
        pdf: bytes,
        contract_reference: str,
        signer: str,
        signed_on: datetime,
        manually_approved: bool,
        funding_type: ContractFundingType,
        principal_id: str | None = None,
    ) -> bytes: ...


class ContractDocumentService:
    """Fetches original contract XML from a BlobStore."""

    def __init__(self, blob_store: BlobStore):
        self._blob_store = blob_store

    def _download(self, contract: Contract, request: ContractRequest) -> bytes:
        name = request.file_name
        try:
            if not self._blob_store.exists(name):
                raise FileNotFoundError(f"Blob {name} does not exist")
            return self._blob_store.download(name)
        except Exception as exc:
            logger.error(
                "document_fetch_failed",
                extra={"contract_id": contract.id, "file_name": name},
                exc_info=True,
            )
            raise DocumentFetchError(
                request.contract_number,
                request.contract_version,
                contract.id,
                name,
                str(exc),
            ) from exc

    async def upsert_original_contract_xml(
        self, contract: Contract, request: ContractRequest
    ) -> None:
        """
        Load the XML named by ``request.file_name`` into ``contract.data``.

        Creates the ContractData record when the contract has none.  The
        contract's data relation must already be loaded.
        """
        if contract.data is None:
            contract.data = ContractData()

        raw = await asyncio.to_thread(self._download, contract, request)
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise DocumentFetchError(
                request.contract_number,
                request.contract_version,
                contract.id,
                request.file_name,
                str(exc),
            ) from exc
        if not text.strip():
            raise DocumentEmptyError(
                request.contract_number,
                request.contract_version,
                contract.id,
                request.file_name,
            )

        contract.data.original_contract_xml = text
        logger.info(
            "original_contract_xml_attached",
            extra={"file_name": request.file_name, "size": len(raw)},
        )
