"""
contracts_kernel.services.contract_repository -- Contract storage.

Responsibility:
    Loads and saves Contract records.  Each call runs in its own short
    transaction (``session_scope``) and returns detached entities with the
    requested dependent records already loaded, so callers on other threads
    or coroutines can keep working with them after the session closes.

Architecture position:
    Kernel > Services.  May import from db/, models/, domain/.
    The orchestration service calls it through ``asyncio.to_thread``.

Invariants enforced:
    - Every UPDATE is guarded by the last_updated_at token read when the
      entity was loaded; the repository stamps the new token.
    - update_status only changes a record whose current status is the one
      the caller expects.

Failure modes:
    - ContractUpdateConcurrencyError when the token no longer matches.
    - ContractNotFoundError / ContractStatusError from update_status.
    - IntegrityError (unwrapped) on a duplicate (number, version) insert
      that slipped past the create guard, e.g. from another process.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from contracts_kernel.db.engine import session_scope
from contracts_kernel.domain.clock import Clock, SystemClock
from contracts_kernel.domain.contract_status import ContractStatus
from contracts_kernel.domain.dtos import UpdatedContractStatus
from contracts_kernel.domain.paging import (
    PagedList,
    SortDirection,
    SortOption,
    order_statement,
    to_paged_list,
)
from contracts_kernel.exceptions import (
    ContractNotFoundError,
    ContractStatusError,
    ContractUpdateConcurrencyError,
)
from contracts_kernel.logging_config import get_logger
from contracts_kernel.models.contract import Contract

logger = get_logger("services.contract_repository")


class ContractInclude(enum.Flag):
    """Dependent records to load alongside a contract."""

    NONE = 0
    DATAS = enum.auto()
    CONTENT = enum.auto()


def _load_options(include: ContractInclude) -> list:
    options = []
    if ContractInclude.DATAS in include:
        options.append(selectinload(Contract.data))
    if ContractInclude.CONTENT in include:
        options.append(selectinload(Contract.content))
    return options


class ContractRepository:
    """
    SQLAlchemy-backed contract store.

    Contract:
        Accepts a session factory (``expire_on_commit=False``) and a Clock.
        All reads return detached ``Contract`` entities or None.

    Non-goals:
        - Does NOT validate transitions or versions (ContractValidator).
        - Does NOT serialize writers (EntityLock, optimistic token).
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, contract_id: int) -> Contract | None:
        with session_scope(self._session_factory) as session:
            return session.get(Contract, contract_id)

    def get_by_contract_number_and_version(
        self, contract_number: str, contract_version: int
    ) -> Contract | None:
        return self.get_by_contract_number_and_version_with_includes(
            contract_number, contract_version, ContractInclude.NONE
        )

    def get_by_contract_number_and_version_with_includes(
        self,
        contract_number: str,
        contract_version: int,
        include: ContractInclude,
    ) -> Contract | None:
        """
        Load one contract version with the dependent records in ``include``.

        Relations not named in ``include`` are left unloaded and must not be
        touched on the returned (detached) entity.
        """
        stmt = (
            select(Contract)
            .where(
                Contract.contract_number == contract_number,
                Contract.contract_version == contract_version,
            )
            .options(*_load_options(include))
        )
        with session_scope(self._session_factory) as session:
            return session.execute(stmt).scalar_one_or_none()

    def get_by_contract_number(self, contract_number: str) -> list[Contract]:
        stmt = (
            select(Contract)
            .where(Contract.contract_number == contract_number)
            .order_by(Contract.contract_version)
        )
        with session_scope(self._session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, contract: Contract) -> Contract:
        with session_scope(self._session_factory) as session:
            session.add(contract)
            session.flush()
            logger.info(
                "contract_inserted",
                extra={
                    "contract_id": contract.id,
                    "contract_number": contract.contract_number,
                    "contract_version": contract.contract_version,
                },
            )
        return contract

    def update(self, contract: Contract) -> Contract:
        """
        Persist changes made to a detached ``contract``.

        Stamps a new last_updated_at; the UPDATE matches on the value the
        entity was loaded with.

        Raises:
            ContractUpdateConcurrencyError: If the row changed since it was
                loaded.
        """
        # A failed flush expires the entity, so capture its identity first.
        identity = (
            contract.contract_number,
            contract.contract_version,
            contract.id,
            contract.status,
        )
        contract.last_updated_at = self._clock.now_utc()
        try:
            with session_scope(self._session_factory) as session:
                session.add(contract)
        except StaleDataError as exc:
            logger.warning(
                "contract_update_conflict",
                extra={"contract_id": identity[2], "status": identity[3]},
            )
            raise ContractUpdateConcurrencyError(*identity) from exc
        return contract

    def update_status(
        self,
        contract_id: int,
        required_status: ContractStatus,
        new_status: ContractStatus,
    ) -> UpdatedContractStatus:
        """
        Move a contract from ``required_status`` to ``new_status``.

        Returns:
            Before/after record of the change.

        Raises:
            ContractNotFoundError: If no contract has ``contract_id``.
            ContractStatusError: If the stored status is not
                ``required_status``.
            ContractUpdateConcurrencyError: If the row changed between the
                read and the write.
        """
        loaded: tuple[str, int] = ("", 0)
        try:
            with session_scope(self._session_factory) as session:
                contract = session.get(Contract, contract_id)
                if contract is None:
                    raise ContractNotFoundError(contract_id=contract_id)
                loaded = (contract.contract_number, contract.contract_version)
                if contract.status != required_status:
                    raise ContractStatusError(
                        "Contract status does not match the expected status",
                        current_status=contract.status,
                        new_status=new_status,
                        allowed_statuses=(required_status,),
                    )
                previous = contract.status
                contract.status = new_status
                contract.last_updated_at = self._clock.now_utc()
                session.flush()
                return UpdatedContractStatus(
                    id=contract.id,
                    ukprn=contract.ukprn,
                    contract_number=contract.contract_number,
                    contract_version=contract.contract_version,
                    status=previous,
                    new_status=contract.status,
                    amendment_type=contract.amendment_type,
                )
        except StaleDataError as exc:
            raise ContractUpdateConcurrencyError(
                loaded[0], loaded[1], contract_id, required_status
            ) from exc

    def update_last_email_reminder_sent(self, contract_id: int) -> Contract | None:
        """Stamp the reminder timestamp; returns None when the id is unknown."""
        with session_scope(self._session_factory) as session:
            contract = session.get(Contract, contract_id)
            if contract is None:
                return None
            now = self._clock.now_utc()
            contract.last_email_reminder_sent = now
            contract.last_updated_at = now
            return contract

    # =========================================================================
    # Reminder query
    # =========================================================================

    def query_reminder_candidates(
        self,
        cutoff: datetime,
        page_number: int,
        page_size: int,
        sort: SortOption | str = SortOption.LAST_EMAIL_REMINDER_SENT,
        order: SortDirection | str = SortDirection.ASC,
    ) -> PagedList[Contract]:
        """
        Published contracts due a reminder at ``cutoff``.

        A contract is due when it has never been reminded and was created at
        or before the cutoff, or when its last reminder is at or before the
        cutoff.
        """
        option = SortOption.parse(sort)
        stmt = select(Contract).where(
            Contract.status == ContractStatus.PUBLISHED_TO_PROVIDER,
            or_(
                and_(
                    Contract.last_email_reminder_sent.is_(None),
                    Contract.created_at <= cutoff,
                ),
                and_(
                    Contract.last_email_reminder_sent.is_not(None),
                    Contract.last_email_reminder_sent <= cutoff,
                ),
            ),
        )
        stmt = order_statement(stmt, getattr(Contract, option.attribute), order)
        # Stable order across pages for rows with equal sort values.
        stmt = stmt.order_by(Contract.id)
        with session_scope(self._session_factory) as session:
            return to_paged_list(session, stmt, page_number, page_size)

