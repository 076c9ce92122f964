"""
Administrative command line for the contracts data service.

    contracts-data init-db
    contracts-data reminders --interval 14 --page 1 --size 10 --sort last_email_reminder_sent
    contracts-data declaration 42

This module is a composition root: it reads ``contracts_config`` and wires
the kernel services together.  Kernel services never import configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from collections.abc import Sequence
from datetime import datetime

from contracts_config import Settings, get_settings
from contracts_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from contracts_kernel.domain.clock import SystemClock
from contracts_kernel.domain.contract_status import ContractFundingType
from contracts_kernel.domain.paging import SortDirection, SortOption
from contracts_kernel.exceptions import ContractsDataError, http_status_for
from contracts_kernel.logging_config import configure_logging, get_logger
from contracts_kernel.services.contract_repository import ContractRepository
from contracts_kernel.services.contract_service import ContractService
from contracts_kernel.services.contract_validation import ContractValidator
from contracts_kernel.services.document_service import (
    ContractDocumentService,
    FileSystemBlobStore,
)
from contracts_kernel.services.entity_lock import EntityLock
from contracts_kernel.services.notifications import (
    AuditHandler,
    LoggingAuditService,
    NotificationPublisher,
)
from contracts_kernel.services.subcontractor_declaration_service import (
    SubcontractorDeclarationRepository,
    SubcontractorDeclarationService,
)
from contracts_kernel.services.uri_service import UriService

logger = get_logger("cli")


class _NoStamper:
    """The CLI never approves contracts, so no PDF stamping is wired."""

    def add_signed_document_page(
        self,
        pdf: bytes,
        contract_reference: str,
        signer: str,
        signed_on: datetime,
        manually_approved: bool,
        funding_type: ContractFundingType,
        principal_id: str | None = None,
    ) -> bytes:
        raise RuntimeError("Document stamping is not available from the CLI")


def build_contract_service(settings: Settings) -> ContractService:
    """Wire a ContractService from settings; the engine must be initialized."""
    clock = SystemClock()
    audit_service = LoggingAuditService()
    notifications = NotificationPublisher()
    notifications.subscribe(AuditHandler(audit_service, settings.service.app_name))
    return ContractService(
        repository=ContractRepository(get_session_factory(), clock),
        validator=ContractValidator(),
        entity_lock=EntityLock(),
        document_service=ContractDocumentService(
            FileSystemBlobStore(settings.service.blob_root)
        ),
        document_stamper=_NoStamper(),
        notifications=notifications,
        audit_service=audit_service,
        uri_service=UriService(settings.service.base_uri),
        clock=clock,
        app_name=settings.service.app_name,
        system_signer=settings.service.system_signer,
        manual_approval_signer=settings.service.manual_approval_signer,
    )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="contracts-data", description="Contracts data service administration"
    )
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    r = sub.add_parser("reminders", help="List contracts due a reminder e-mail")
    r.add_argument("--interval", type=int, default=None, help="Reminder interval in days")
    r.add_argument("--page", type=int, default=1)
    r.add_argument("--size", type=int, default=None)
    r.add_argument(
        "--sort",
        default=SortOption.LAST_EMAIL_REMINDER_SENT.value,
        help="Sort field, e.g. contract_number or LastEmailReminderSent",
    )
    r.add_argument(
        "--order",
        choices=[d.value for d in SortDirection],
        default=SortDirection.ASC.value,
    )

    d = sub.add_parser("declaration", help="Show a full subcontractor declaration")
    d.add_argument("id", type=int)
    return p.parse_args(argv)


def _to_json(item: object) -> str:
    return json.dumps(dataclasses.asdict(item), default=str, sort_keys=True)


async def _reminders(service: ContractService, settings: Settings, args) -> int:
    interval = (
        args.interval
        if args.interval is not None
        else settings.service.default_reminder_interval
    )
    size = min(args.size or settings.service.default_page_size, settings.service.max_page_size)
    result = await service.get_contract_reminders(
        interval,
        args.page,
        size,
        args.sort,
        args.order,
        "/api/contractReminders?page={page}",
    )
    for item in result.contracts:
        print(_to_json(item))
    print(_to_json(result.paging), file=sys.stderr)
    return 0


async def _declaration(service: SubcontractorDeclarationService, args) -> int:
    declaration = await service.get_full_subcontractor_declaration(args.id)
    if declaration is None:
        print(f"  ERROR: no subcontractor declaration with id {args.id}", file=sys.stderr)
        return 1
    print(_to_json(declaration))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(level=settings.log_level)

    db = settings.database
    engine = init_engine_from_url(
        db.url, echo=db.echo, pool_size=db.pool_size, max_overflow=db.max_overflow
    )

    if args.command == "init-db":
        create_tables(engine)
        logger.info("tables_created", extra={"dialect": engine.dialect.name})
        return 0

    if args.command == "declaration":
        declarations = SubcontractorDeclarationService(
            SubcontractorDeclarationRepository(get_session_factory())
        )
        return asyncio.run(_declaration(declarations, args))

    service = build_contract_service(settings)
    try:
        return asyncio.run(_reminders(service, settings, args))
    except (ContractsDataError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2 if http_status_for(exc) == 400 or isinstance(exc, ValueError) else 1


if __name__ == "__main__":
    sys.exit(main())
