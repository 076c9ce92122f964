"""
Tests for ContractRepository against a real database.

Invariants tested:
- Reads return detached entities with the requested relations loaded.
- Timestamps round-trip as aware UTC datetimes.
- (contract_number, contract_version) is unique at the storage level.
- update_status only moves a record from the expected status.
- The reminder query selects published contracts due at the cut-off and
  pages them with a stable order.
"""

from datetime import timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import DetachedInstanceError

from contracts_kernel.domain.contract_status import ContractStatus
from contracts_kernel.domain.paging import SortDirection, SortOption
from contracts_kernel.exceptions import (
    ContractNotFoundError,
    ContractStatusError,
    InvalidSortOptionError,
)
from contracts_kernel.services.contract_repository import ContractInclude


# =========================================================================
# Reads
# =========================================================================


class TestReads:

    def test_get_by_id(self, repository, make_contract):
        created = make_contract()
        loaded = repository.get_by_id(created.id)
        assert loaded.contract_number == "C-001"
        assert loaded.status is ContractStatus.PUBLISHED_TO_PROVIDER

    def test_get_by_id_missing(self, repository):
        assert repository.get_by_id(999) is None

    def test_get_by_number_and_version(self, repository, make_contract):
        make_contract(contract_version=1)
        second = make_contract(contract_version=2)
        loaded = repository.get_by_contract_number_and_version("C-001", 2)
        assert loaded.id == second.id
        assert repository.get_by_contract_number_and_version("C-001", 3) is None

    def test_get_by_number_ordered_by_version(self, repository, make_contract):
        for version in (3, 1, 2):
            make_contract(contract_version=version)
        make_contract(contract_number="C-002")
        versions = [c.contract_version for c in repository.get_by_contract_number("C-001")]
        assert versions == [1, 2, 3]

    def test_get_by_number_unknown(self, repository):
        assert repository.get_by_contract_number("none") == []

    def test_includes_load_relations(self, repository, make_contract):
        make_contract(with_content=True, with_data=True)
        loaded = repository.get_by_contract_number_and_version_with_includes(
            "C-001", 1, ContractInclude.DATAS | ContractInclude.CONTENT
        )
        assert loaded.content.content == b"%PDF-1.4 contract"
        assert loaded.data.original_contract_xml == "<old/>"

    def test_relation_outside_includes_is_not_loaded(self, repository, make_contract):
        make_contract(with_content=True)
        loaded = repository.get_by_contract_number_and_version_with_includes(
            "C-001", 1, ContractInclude.DATAS
        )
        assert loaded.data is None
        with pytest.raises(DetachedInstanceError):
            loaded.content

    def test_timestamps_are_aware_utc(self, repository, make_contract, deterministic_clock):
        created = make_contract(
            last_email_reminder_sent=deterministic_clock.now_utc() - timedelta(days=2)
        )
        loaded = repository.get_by_id(created.id)
        assert loaded.created_at == deterministic_clock.now_utc()
        assert loaded.created_at.tzinfo == timezone.utc
        assert loaded.last_email_reminder_sent.tzinfo == timezone.utc


# =========================================================================
# Writes
# =========================================================================


class TestWrites:

    def test_duplicate_number_and_version_rejected(self, make_contract):
        make_contract(contract_version=1)
        with pytest.raises(IntegrityError):
            make_contract(contract_version=1)

    def test_same_version_under_other_number(self, make_contract):
        make_contract(contract_number="C-001", contract_version=1)
        make_contract(contract_number="C-002", contract_version=1)

    def test_update_stamps_last_updated_at(
        self, repository, make_contract, deterministic_clock
    ):
        created = make_contract()
        deterministic_clock.advance(60)
        loaded = repository.get_by_id(created.id)
        loaded.status = ContractStatus.WITHDRAWN_BY_AGENCY
        repository.update(loaded)

        reloaded = repository.get_by_id(created.id)
        assert reloaded.status is ContractStatus.WITHDRAWN_BY_AGENCY
        assert reloaded.last_updated_at == deterministic_clock.now_utc()

    def test_update_status(self, repository, make_contract, deterministic_clock):
        created = make_contract()
        deterministic_clock.advance()
        change = repository.update_status(
            created.id, ContractStatus.PUBLISHED_TO_PROVIDER, ContractStatus.REPLACED
        )
        assert change.id == created.id
        assert change.status is ContractStatus.PUBLISHED_TO_PROVIDER
        assert change.new_status is ContractStatus.REPLACED
        assert change.contract_number == "C-001"
        assert repository.get_by_id(created.id).status is ContractStatus.REPLACED

    def test_update_status_expected_status_mismatch(self, repository, make_contract):
        created = make_contract(status=ContractStatus.APPROVED)
        with pytest.raises(ContractStatusError) as exc_info:
            repository.update_status(
                created.id, ContractStatus.PUBLISHED_TO_PROVIDER, ContractStatus.REPLACED
            )
        assert exc_info.value.current_status is ContractStatus.APPROVED
        assert exc_info.value.allowed_statuses == (ContractStatus.PUBLISHED_TO_PROVIDER,)
        assert repository.get_by_id(created.id).status is ContractStatus.APPROVED

    def test_update_status_missing(self, repository):
        with pytest.raises(ContractNotFoundError) as exc_info:
            repository.update_status(
                404, ContractStatus.PUBLISHED_TO_PROVIDER, ContractStatus.REPLACED
            )
        assert exc_info.value.contract_id == 404

    def test_update_last_email_reminder_sent(
        self, repository, make_contract, deterministic_clock
    ):
        created = make_contract()
        deterministic_clock.advance(3600)
        updated = repository.update_last_email_reminder_sent(created.id)
        assert updated.last_email_reminder_sent == deterministic_clock.now_utc()
        assert updated.last_updated_at == deterministic_clock.now_utc()

    def test_update_last_email_reminder_sent_missing(self, repository):
        assert repository.update_last_email_reminder_sent(12345) is None


# =========================================================================
# Reminder query
# =========================================================================


class TestReminderCandidates:

    @pytest.fixture
    def cutoff(self, deterministic_clock):
        return deterministic_clock.end_of_day_utc(days_ago=14)

    def test_cutoff_examples(self, repository, make_contract, deterministic_clock, cutoff):
        now = deterministic_clock.now_utc()
        old = make_contract(contract_number="OLD", created_at=now - timedelta(days=30))
        reminded = make_contract(
            contract_number="REMINDED",
            created_at=now - timedelta(days=60),
            last_email_reminder_sent=now - timedelta(days=15),
        )
        make_contract(
            contract_number="TODAY",
            created_at=now - timedelta(days=60),
            last_email_reminder_sent=now,
        )
        make_contract(contract_number="NEW", created_at=now - timedelta(days=2))
        make_contract(
            contract_number="APPROVED",
            status=ContractStatus.APPROVED,
            created_at=now - timedelta(days=30),
        )

        page = repository.query_reminder_candidates(
            cutoff, 1, 10, SortOption.CONTRACT_NUMBER, SortDirection.ASC
        )
        assert [c.id for c in page.items] == [old.id, reminded.id]
        assert page.total_count == 2

    def test_cutoff_boundary_is_inclusive(self, repository, make_contract, cutoff):
        on_cutoff = make_contract(created_at=cutoff)
        make_contract(contract_number="AFTER", created_at=cutoff + timedelta(minutes=1))
        page = repository.query_reminder_candidates(cutoff, 1, 10)
        assert [c.id for c in page.items] == [on_cutoff.id]

    def test_paging(self, repository, make_contract, deterministic_clock, cutoff):
        now = deterministic_clock.now_utc()
        ids = [
            make_contract(
                contract_number=f"C-{i:03d}", created_at=now - timedelta(days=20 + i)
            ).id
            for i in range(5)
        ]

        first = repository.query_reminder_candidates(
            cutoff, 1, 2, "contractNumber", "asc"
        )
        third = repository.query_reminder_candidates(
            cutoff, 3, 2, "contractNumber", "asc"
        )
        assert [c.id for c in first.items] == ids[:2]
        assert [c.id for c in third.items] == ids[4:]
        assert first.total_count == 5
        assert first.total_pages == 3
        assert first.has_next_page and not first.has_previous_page
        assert third.has_previous_page and not third.has_next_page

    def test_page_past_end_is_empty(self, repository, make_contract, deterministic_clock, cutoff):
        make_contract(created_at=deterministic_clock.now_utc() - timedelta(days=20))
        page = repository.query_reminder_candidates(cutoff, 5, 10)
        assert page.items == ()
        assert page.total_count == 1

    def test_descending_sort(self, repository, make_contract, deterministic_clock, cutoff):
        now = deterministic_clock.now_utc()
        for i in range(3):
            make_contract(contract_number=f"C-{i}", created_at=now - timedelta(days=20))
        page = repository.query_reminder_candidates(
            cutoff, 1, 10, SortOption.CONTRACT_NUMBER, SortDirection.DESC
        )
        assert [c.contract_number for c in page.items] == ["C-2", "C-1", "C-0"]

    def test_default_sort_puts_never_reminded_first(
        self, repository, make_contract, deterministic_clock, cutoff
    ):
        now = deterministic_clock.now_utc()
        reminded = make_contract(
            contract_number="R",
            created_at=now - timedelta(days=60),
            last_email_reminder_sent=now - timedelta(days=20),
        )
        never = make_contract(contract_number="N", created_at=now - timedelta(days=30))
        page = repository.query_reminder_candidates(cutoff, 1, 10)
        assert [c.id for c in page.items] == [never.id, reminded.id]

    def test_unknown_sort_option(self, repository, cutoff):
        with pytest.raises(InvalidSortOptionError):
            repository.query_reminder_candidates(cutoff, 1, 10, "favouriteColour")

    def test_invalid_page_number(self, repository, cutoff):
        with pytest.raises(ValueError):
            repository.query_reminder_candidates(cutoff, 0, 10)
