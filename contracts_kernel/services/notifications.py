"""
contracts_kernel.services.notifications -- Status-change fan-out.

Responsibility:
    Delivers every ContractStatusChange produced by a workflow to the
    registered handlers: the audit sink and the bus notification.

Architecture position:
    Kernel > Services.  Handlers depend on the AuditService protocol and on
    MessagePublisher; the concrete audit transport is external.
    LoggingAuditService writes audit records to the structured log and is
    the default sink.

Invariants enforced:
    - Handlers run in registration order and every handler runs, even if an
      earlier one failed.
    - Only created, approval and withdrawal events produce a bus message.

Failure modes:
    - The first handler failure is re-raised after all handlers ran.  The
      publisher does not retry.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from contracts_kernel.domain.contract_status import (
    ActionType,
    ContractStatus,
    MessageStatus,
    wire_name,
)
from contracts_kernel.domain.dtos import (
    Audit,
    ContractNotification,
    ContractStatusChange,
    SeverityLevel,
)
from contracts_kernel.logging_config import get_logger
from contracts_kernel.services.message_publisher import MessagePublisher

logger = get_logger("services.notifications")

Handler = Callable[[ContractStatusChange], Awaitable[None]]


class AuditService(Protocol):
    async def try_send_audit(self, audit: Audit) -> None: ...


class LoggingAuditService:
    """AuditService that records each audit entry as a log event."""

    def __init__(self) -> None:
        self._logger = get_logger("audit")

    async def try_send_audit(self, audit: Audit) -> None:
        self._logger.info(
            "audit_recorded",
            extra={
                "action": audit.action.value,
                "severity": audit.severity.value,
                "ukprn": audit.ukprn,
                "audit_message": audit.message,
                "user": audit.user,
            },
        )


def status_change_message(change: ContractStatusChange) -> str:
    before = wire_name(change.status) if change.status is not None else "None"
    after = wire_name(change.new_status)
    return (
        f"Contract [{change.contract_number}] Version number "
        f"[{change.contract_version}] with Id [{change.id}] has been {after}. "
        f"Additional Information Details: ContractId is: {change.id}. "
        f"Contract Status Before was {before} . Contract Status After is {after}"
    )


def replaced_message(change: ContractStatusChange) -> str:
    before = wire_name(change.status) if change.status is not None else "None"
    return (
        f"Contract [{change.contract_number}-{change.contract_version}] "
        f"with Id [{change.id}] has been replaced. "
        f"The contract status before was {before}. "
        f"The contract status after is {wire_name(change.new_status)}."
    )


class AuditHandler:
    """Sends one audit record per status change."""

    def __init__(self, audit_service: AuditService, app_name: str):
        self._audit_service = audit_service
        self._user = f"[{app_name}]"

    async def __call__(self, change: ContractStatusChange) -> None:
        await self._audit_service.try_send_audit(
            Audit(
                action=change.action,
                severity=SeverityLevel.INFORMATION,
                ukprn=change.ukprn,
                message=status_change_message(change),
                user=self._user,
            )
        )


def message_status_for(change: ContractStatusChange) -> MessageStatus | None:
    """Bus ``Status`` property for ``change``; None means nothing is sent."""
    if change.action in (
        ActionType.CONTRACT_CONFIRM_APPROVAL,
        ActionType.CONTRACT_MANUAL_APPROVAL,
    ):
        return MessageStatus.APPROVED
    if change.action == ActionType.CONTRACT_WITHDRAWAL:
        return MessageStatus.WITHDRAWN
    if change.action == ActionType.CONTRACT_CREATED:
        if change.new_status == ContractStatus.APPROVED:
            return MessageStatus.READY_TO_REVIEW
        if change.new_status == ContractStatus.PUBLISHED_TO_PROVIDER:
            return MessageStatus.READY_TO_SIGN
    return None


class ContractStatusChangeHandler:
    """Publishes a ContractNotification for the changes consumers care about."""

    def __init__(self, message_publisher: MessagePublisher):
        self._message_publisher = message_publisher

    async def __call__(self, change: ContractStatusChange) -> None:
        status = message_status_for(change)
        log_extra = {
            "action": change.action.value if change.action else None,
            "contract_status": change.new_status,
        }
        if status is None:
            logger.info("contract_notification_skipped", extra=log_extra)
            return

        notification = ContractNotification.from_status_change(change)
        await self._message_publisher.publish(
            notification.to_payload(), {"Status": status.value}
        )
        logger.info(
            "contract_notification_sent",
            extra={**log_extra, "message_status": status.value},
        )


class NotificationPublisher:
    """
    In-process fan-out of status-change events.

    Usage:
        publisher = NotificationPublisher()
        publisher.subscribe(AuditHandler(audit_service, "contracts-data"))
        publisher.subscribe(ContractStatusChangeHandler(message_publisher))
        await publisher.publish(change)
    """

    def __init__(self, handlers: list[Handler] | None = None):
        self._handlers: list[Handler] = list(handlers or [])

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    @property
    def handlers(self) -> tuple[Handler, ...]:
        return tuple(self._handlers)

    async def publish(self, change: ContractStatusChange) -> None:
        first_error: Exception | None = None
        for handler in self._handlers:
            try:
                await handler(change)
            except Exception as exc:
                logger.error(
                    "notification_handler_failed",
                    extra={
                        "handler": type(handler).__name__,
                        "contract_id": change.id,
                    },
                    exc_info=True,
                )
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
