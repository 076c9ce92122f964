"""
contracts_kernel.services.contract_service -- Contract workflows.

Responsibility:
    Composes the entity lock, validator, repository, document service and
    notification fan-out into the contract workflows: create, confirm
    approval, manual approval, withdrawal, reminder listing and the
    reminder-sent stamp.  Owns the cascade that marks superseded versions
    as Replaced.

Architecture position:
    Kernel > Services.  The outermost kernel component; an HTTP layer or the
    CLI calls it.  Workflows are coroutines; repository calls run on worker
    threads via ``asyncio.to_thread``.

Invariants enforced:
    - Create runs under the per-contract-number lock, and the lock is
      released on every exit path before the cascade runs.
    - Nothing is written before validation passes.
    - Approval, withdrawal and confirmation are not locked; a concurrent
      write is detected by the optimistic token at persist time.
    - Cascade failures are logged per record and never propagate.
    - Every public method returns DTOs, never ORM entities.

Failure modes:
    - Validation errors from ContractValidator.
    - DocumentFetchError / DocumentEmptyError from the document service.
    - ContractUpdateConcurrencyError from the repository.
    - Handler errors re-raised by NotificationPublisher after fan-out.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection, Iterable

from contracts_kernel.domain.clock import Clock, SystemClock
from contracts_kernel.domain.contract_status import (
    REPLACEABLE_ON_CREATE,
    REPLACEABLE_ON_MANUAL_APPROVAL,
    ActionType,
    ContractAmendmentType,
    ContractStatus,
    initial_status_for,
)
from contracts_kernel.domain.dtos import (
    Audit,
    ContractInfo,
    ContractReminderItem,
    ContractReminders,
    ContractStatusChange,
    CreateContractRequest,
    ManualApprovalRequest,
    PagingMetadata,
    SeverityLevel,
    UpdateConfirmApprovalRequest,
    UpdateContractWithdrawalRequest,
    UpdateLastEmailReminderSentRequest,
)
from contracts_kernel.domain.paging import SortDirection, SortOption
from contracts_kernel.logging_config import LogContext, get_logger
from contracts_kernel.models.contract import (
    Contract,
    ContractContent,
    ContractFundingStreamPeriodCode,
)
from contracts_kernel.services.contract_repository import (
    ContractInclude,
    ContractRepository,
)
from contracts_kernel.services.contract_validation import (
    ContractPredicate,
    ContractValidator,
)
from contracts_kernel.services.document_service import (
    ContractDocumentService,
    DocumentStamper,
)
from contracts_kernel.services.entity_lock import EntityLock
from contracts_kernel.services.notifications import (
    AuditService,
    NotificationPublisher,
    replaced_message,
    status_change_message,
)
from contracts_kernel.services.uri_service import UriService

logger = get_logger("services.contract_service")

DEFAULT_SYSTEM_SIGNER = "System-ESFA"
DEFAULT_MANUAL_APPROVAL_SIGNER = "hand and approved by ESFA"

CONTENT_ATTACHED = ContractPredicate(
    "contract content is attached",
    lambda contract: contract.content is not None,
)


def _page_url(templated_query_string: str, page: int) -> str:
    return templated_query_string.replace("{page}", str(page))


class ContractService:
    """
    Contract workflows.

    Contract:
        Accepts request DTOs and returns ContractStatusChange events or
        ContractInfo DTOs.  Each repository call commits on its own; a
        workflow is not one transaction.

    Guarantees:
        - At most one create per contract number runs at a time in this
          process (EntityLock).
        - The status-change event of a successful workflow reaches every
          notification handler (confirm approval sends an audit record only).

    Non-goals:
        - Does NOT lock approval, withdrawal or confirmation workflows.
        - Does NOT retry failed notifications.
    """

    def __init__(
        self,
        repository: ContractRepository,
        validator: ContractValidator,
        entity_lock: EntityLock[str],
        document_service: ContractDocumentService,
        document_stamper: DocumentStamper,
        notifications: NotificationPublisher,
        audit_service: AuditService,
        uri_service: UriService,
        clock: Clock | None = None,
        app_name: str = "contracts-data",
        system_signer: str = DEFAULT_SYSTEM_SIGNER,
        manual_approval_signer: str = DEFAULT_MANUAL_APPROVAL_SIGNER,
    ):
        self._repository = repository
        self._validator = validator
        self._entity_lock = entity_lock
        self._documents = document_service
        self._stamper = document_stamper
        self._notifications = notifications
        self._audit_service = audit_service
        self._uri_service = uri_service
        self._clock = clock or SystemClock()
        self._app_name = app_name
        self._system_signer = system_signer
        self._manual_approval_signer = manual_approval_signer

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, contract_id: int) -> ContractInfo | None:
        contract = await asyncio.to_thread(self._repository.get_by_id, contract_id)
        return ContractInfo.from_model(contract) if contract else None

    async def get_by_contract_number(self, contract_number: str) -> list[ContractInfo]:
        contracts = await asyncio.to_thread(
            self._repository.get_by_contract_number, contract_number
        )
        return [ContractInfo.from_model(c) for c in contracts]

    async def get_by_contract_number_and_version(
        self, contract_number: str, contract_version: int
    ) -> ContractInfo | None:
        contract = await asyncio.to_thread(
            self._repository.get_by_contract_number_and_version,
            contract_number,
            contract_version,
        )
        return ContractInfo.from_model(contract) if contract else None

    # =========================================================================
    # Create
    # =========================================================================

    async def create(self, request: CreateContractRequest) -> ContractStatusChange:
        """
        Create a new contract version and supersede earlier versions.

        Raises:
            ContractWithHigherVersionAlreadyExistsError: A newer version exists.
            DuplicateContractError: This version already exists.
            DocumentFetchError / DocumentEmptyError: Original XML unavailable.
        """
        with LogContext.bind(
            contract_number=request.contract_number,
            contract_version=request.contract_version,
        ):
            async with self._entity_lock.hold_async(request.contract_number):
                logger.info("contract_create_started", extra={"ukprn": request.ukprn})

                existing = await asyncio.to_thread(
                    self._repository.get_by_contract_number, request.contract_number
                )
                self._validator.validate_for_new_contract(request, existing)

                contract = self._new_contract(request)
                await self._documents.upsert_original_contract_xml(
                    contract, request.as_contract_request()
                )
                contract = await asyncio.to_thread(self._repository.create, contract)

                change = ContractStatusChange(
                    id=contract.id,
                    ukprn=contract.ukprn,
                    contract_number=contract.contract_number,
                    contract_version=contract.contract_version,
                    new_status=contract.status,
                    action=ActionType.CONTRACT_CREATED,
                    amendment_type=contract.amendment_type,
                )
                logger.info(
                    "contract_created",
                    extra={"contract_id": contract.id, "contract_status": contract.status},
                )

            await self._replace_contracts(
                existing, REPLACEABLE_ON_CREATE[request.amendment_type]
            )
            await self._notifications.publish(change)
            return change

    def _new_contract(self, request: CreateContractRequest) -> Contract:
        now = self._clock.now_utc()
        status = initial_status_for(request.amendment_type)
        contract = Contract(
            ukprn=request.ukprn,
            title=request.title,
            contract_number=request.contract_number,
            contract_version=request.contract_version,
            parent_contract_number=request.parent_contract_number,
            contract_allocation_number=request.contract_allocation_number,
            value=request.value,
            funding_type=request.funding_type,
            contract_type=request.contract_type,
            amendment_type=request.amendment_type,
            status=status,
            year=request.year,
            page_count=request.page_count,
            start_date=request.start_date,
            end_date=request.end_date,
            first_census_date_id=request.first_census_date_id,
            second_census_date_id=request.second_census_date_id,
            created_by=request.created_by,
            created_at=now,
            last_updated_at=now,
            was_manually_approved=False,
            content=ContractContent(
                file_name=request.contract_content.file_name,
                content=request.contract_content.content,
                size=len(request.contract_content.content),
            ),
            funding_stream_period_codes=[
                ContractFundingStreamPeriodCode(code=code)
                for code in request.funding_stream_period_codes
            ],
        )
        if request.amendment_type == ContractAmendmentType.NOTIFICATION:
            contract.signed_by = self._system_signer
            contract.signed_by_display_name = self._system_signer
            contract.signed_on = request.signed_on
        return contract

    # =========================================================================
    # Status workflows
    # =========================================================================

    async def confirm_approval(
        self, request: UpdateConfirmApprovalRequest
    ) -> ContractStatusChange:
        """Provider confirmation of an approval; audited, not broadcast."""
        with LogContext.bind(
            contract_number=request.contract_number,
            contract_version=request.contract_version,
        ):
            contract = await asyncio.to_thread(
                self._repository.get_by_contract_number_and_version_with_includes,
                request.contract_number,
                request.contract_version,
                ContractInclude.DATAS,
            )
            contract = self._validator.validate(contract, request)
            self._validator.validate_status_change(contract, ContractStatus.APPROVED)

            previous = contract.status
            contract.status = ContractStatus.APPROVED
            await self._documents.upsert_original_contract_xml(contract, request)
            await asyncio.to_thread(self._repository.update, contract)

            change = self._status_change(
                contract, previous, ActionType.CONTRACT_CONFIRM_APPROVAL
            )
            await self._audit_service.try_send_audit(
                Audit(
                    action=ActionType.CONTRACT_CONFIRM_APPROVAL,
                    severity=SeverityLevel.INFORMATION,
                    ukprn=change.ukprn,
                    message=status_change_message(change),
                    user=f"[{self._app_name}]",
                )
            )
            logger.info("contract_approval_confirmed", extra={"contract_id": change.id})
            return change

    async def approve_manually(
        self, request: ManualApprovalRequest
    ) -> ContractStatusChange:
        """
        Approve a published contract on the provider's behalf.

        Stamps a signed page onto the PDF, then supersedes other approved
        versions of the same contract number.

        Raises:
            ContractExpectationFailedError: The contract has no PDF content.
            ContractStatusError: The contract is not PublishedToProvider.
        """
        with LogContext.bind(
            contract_number=request.contract_number,
            contract_version=request.contract_version,
            actor_id=request.principal_id,
        ):
            contract = await asyncio.to_thread(
                self._repository.get_by_contract_number_and_version_with_includes,
                request.contract_number,
                request.contract_version,
                ContractInclude.DATAS | ContractInclude.CONTENT,
            )
            same_number = await asyncio.to_thread(
                self._repository.get_by_contract_number, request.contract_number
            )
            contract = self._validator.validate(contract, request, CONTENT_ATTACHED)
            self._validator.validate_status_change(
                contract, ContractStatus.APPROVED, is_manual_approval=True
            )

            previous = contract.status
            signer = self._manual_approval_signer
            signed_on = self._clock.now_utc()
            reference = contract.content.file_name.replace(".pdf", "")
            stamped = await asyncio.to_thread(
                self._stamper.add_signed_document_page,
                contract.content.content,
                reference,
                signer,
                signed_on,
                True,
                contract.funding_type,
                request.principal_id,
            )

            contract.content.content = stamped
            contract.content.size = len(stamped)
            contract.status = ContractStatus.APPROVED
            contract.signed_on = signed_on
            contract.signed_by = signer
            contract.signed_by_display_name = signer
            contract.was_manually_approved = True

            await self._documents.upsert_original_contract_xml(contract, request)
            await asyncio.to_thread(self._repository.update, contract)

            change = self._status_change(
                contract, previous, ActionType.CONTRACT_MANUAL_APPROVAL
            )
            logger.info("contract_manually_approved", extra={"contract_id": change.id})
            await self._notifications.publish(change)

            others = [
                c for c in same_number
                if c.contract_version != contract.contract_version
            ]
            await self._replace_contracts(others, REPLACEABLE_ON_MANUAL_APPROVAL)
            return change

    async def withdraw(
        self, request: UpdateContractWithdrawalRequest
    ) -> ContractStatusChange:
        with LogContext.bind(
            contract_number=request.contract_number,
            contract_version=request.contract_version,
        ):
            contract = await asyncio.to_thread(
                self._repository.get_by_contract_number_and_version_with_includes,
                request.contract_number,
                request.contract_version,
                ContractInclude.DATAS,
            )
            contract = self._validator.validate_withdrawal(contract, request)
            self._validator.validate_status_change(contract, request.withdrawal_type)

            previous = contract.status
            contract.status = request.withdrawal_type
            await self._documents.upsert_original_contract_xml(contract, request)
            await asyncio.to_thread(self._repository.update, contract)

            change = self._status_change(
                contract, previous, ActionType.CONTRACT_WITHDRAWAL
            )
            logger.info(
                "contract_withdrawn",
                extra={"contract_id": change.id, "contract_status": change.new_status},
            )
            await self._notifications.publish(change)
            return change

    @staticmethod
    def _status_change(
        contract: Contract, previous: ContractStatus, action: ActionType
    ) -> ContractStatusChange:
        return ContractStatusChange(
            id=contract.id,
            ukprn=contract.ukprn,
            contract_number=contract.contract_number,
            contract_version=contract.contract_version,
            status=previous,
            new_status=contract.status,
            action=action,
            amendment_type=contract.amendment_type,
        )

    # =========================================================================
    # Superseded-version cascade
    # =========================================================================

    async def _replace_contracts(
        self,
        previous_contracts: Iterable[Contract],
        replaceable: Collection[ContractStatus],
    ) -> int:
        """Mark every record in a replaceable status as Replaced.

        Returns the number of records replaced.  A failure on one record is
        logged and the remaining records are still processed.
        """
        replaced = 0
        for item in previous_contracts:
            if item.status not in replaceable:
                continue
            try:
                change = await asyncio.to_thread(
                    self._repository.update_status,
                    item.id,
                    item.status,
                    ContractStatus.REPLACED,
                )
                await self._audit_service.try_send_audit(
                    Audit(
                        action=ActionType.CONTRACT_REPLACED,
                        severity=SeverityLevel.INFORMATION,
                        ukprn=item.ukprn,
                        message=replaced_message(change),
                        user=self._app_name,
                    )
                )
                replaced += 1
            except Exception:
                logger.error(
                    "contract_replace_failed",
                    extra={
                        "replaced_contract_id": item.id,
                        "replaced_contract_version": item.contract_version,
                        "replaced_status": item.status,
                    },
                    exc_info=True,
                )
        if replaced:
            logger.info("contracts_replaced", extra={"replaced_count": replaced})
        return replaced

    # =========================================================================
    # Reminders
    # =========================================================================

    async def get_contract_reminders(
        self,
        reminder_interval: int,
        page_number: int,
        page_size: int,
        sort: SortOption | str,
        order: SortDirection | str,
        templated_query_string: str,
    ) -> ContractReminders[ContractReminderItem]:
        """
        One page of published contracts due a reminder e-mail.

        ``templated_query_string`` holds a ``{page}`` placeholder that is
        replaced to build the next/previous page links.
        """
        cutoff = self._clock.end_of_day_utc(days_ago=reminder_interval)
        logger.info(
            "contract_reminders_requested",
            extra={"reminder_interval": reminder_interval, "cutoff": cutoff},
        )
        page = await asyncio.to_thread(
            self._repository.query_reminder_candidates,
            cutoff,
            page_number,
            page_size,
            sort,
            order,
        )

        next_url = ""
        if page.has_next_page:
            next_url = self._uri_service.get_uri(
                _page_url(templated_query_string, page_number + 1)
            )
        previous_url = ""
        if page.has_previous_page:
            previous_url = self._uri_service.get_uri(
                _page_url(templated_query_string, page_number - 1)
            )

        return ContractReminders(
            contracts=tuple(ContractReminderItem.from_model(c) for c in page.items),
            paging=PagingMetadata(
                total_count=page.total_count,
                page_size=page.page_size,
                current_page=page.current_page,
                total_pages=page.total_pages,
                has_next_page=page.has_next_page,
                has_previous_page=page.has_previous_page,
                next_page_url=next_url,
                previous_page_url=previous_url,
            ),
        )

    async def update_last_email_reminder_sent(
        self, request: UpdateLastEmailReminderSentRequest
    ) -> ContractInfo | None:
        contract = await asyncio.to_thread(
            self._repository.update_last_email_reminder_sent, request.id
        )
        if contract is None:
            logger.error(
                "contract_reminder_update_not_found",
                extra={"contract_id": request.id},
            )
            return None

        logger.info(
            "contract_reminder_sent_recorded",
            extra={
                "contract_id": contract.id,
                "last_email_reminder_sent": contract.last_email_reminder_sent,
            },
        )
        return ContractInfo.from_model(contract)
