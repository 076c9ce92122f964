"""
Paging -- Sorting and page slicing over record collections.

Responsibility:
    Turns an ordered collection (an in-memory sequence or a SQLAlchemy
    ``Select``) into one page of results plus the totals a caller needs to
    render paging links.

Architecture position:
    Kernel > Domain.  ``sort_records`` and ``paginate`` are pure;
    ``order_statement`` and ``to_paged_list`` build and run statements on a
    session supplied by the caller and never open one themselves.

Invariants enforced:
    - Sort fields come from the closed ``SortOption`` set; an unknown name is
      a configuration error, never a silent fallback.
    - ``total_pages == ceil(total_count / page_size)``; an empty collection
      has zero pages.
    - A page past the end yields no items but keeps the real totals.

Failure modes:
    - InvalidSortOptionError from SortOption.parse for unknown names.
    - ValueError when page_number or page_size is below 1.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from contracts_kernel.exceptions import InvalidSortOptionError

T = TypeVar("T")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: SortDirection | str) -> SortDirection:
        if isinstance(value, SortDirection):
            return value
        lowered = str(value).strip().lower()
        if lowered in ("asc", "ascending"):
            return cls.ASC
        if lowered in ("desc", "descending"):
            return cls.DESC
        raise ValueError(f"Unknown sort direction: {value!r}")


class SortOption(str, Enum):
    """
    Fields a contract listing may be ordered by.

    The value is the attribute name on the record type, so the same option
    drives both in-memory sorting and SQL ordering.
    """

    UKPRN = "ukprn"
    TITLE = "title"
    CONTRACT_NUMBER = "contract_number"
    PARENT_CONTRACT_NUMBER = "parent_contract_number"
    CONTRACT_VERSION = "contract_version"
    VALUE = "value"
    STATUS = "status"
    FUNDING_TYPE = "funding_type"
    START_DATE = "start_date"
    END_DATE = "end_date"
    AMENDMENT_TYPE = "amendment_type"
    LAST_EMAIL_REMINDER_SENT = "last_email_reminder_sent"
    CONTRACT_ALLOCATION_NUMBER = "contract_allocation_number"
    CREATED_AT = "created_at"
    LAST_UPDATED_AT = "last_updated_at"

    @property
    def attribute(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: SortOption | str) -> SortOption:
        """
        Resolve ``name`` to an option.

        Accepts the member name ("CONTRACT_NUMBER"), the attribute name
        ("contract_number") or the camel-cased field name ("ContractNumber"),
        all case-insensitively.
        """
        if isinstance(name, SortOption):
            return name
        wanted = str(name).strip().replace("_", "").lower()
        for option in cls:
            if wanted in (option.name.replace("_", "").lower(),
                          option.value.replace("_", "").lower()):
                return option
        raise InvalidSortOptionError(str(name), [o.name for o in cls])

    def accessor(self) -> Callable[[Any], Any]:
        attribute = self.attribute
        return lambda record: getattr(record, attribute)


@dataclass(frozen=True)
class PagedList(Generic[T]):
    """
    One page of an ordered collection.

    ``items`` holds at most ``page_size`` records; the totals describe the
    whole collection.
    """

    items: tuple[T, ...]
    total_count: int
    current_page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @property
    def next_page_number(self) -> int | None:
        return self.current_page + 1 if self.has_next_page else None

    @property
    def previous_page_number(self) -> int | None:
        return self.current_page - 1 if self.has_previous_page else None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def _check_page(page_number: int, page_size: int) -> None:
    if page_number < 1:
        raise ValueError(f"page_number must be at least 1, got {page_number}")
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")


def sort_records(
    records: Iterable[T],
    option: SortOption | str,
    direction: SortDirection | str = SortDirection.ASC,
) -> list[T]:
    """
    Stable sort of ``records`` by ``option``.

    None values sort first when ascending and last when descending.
    """
    option = SortOption.parse(option)
    direction = SortDirection.parse(direction)
    key = option.accessor()
    descending = direction is SortDirection.DESC

    def sort_key(record: T) -> tuple[bool, Any]:
        value = key(record)
        # (False, None) sorts before (True, value); reverse flips that.
        return (value is not None, value)

    return sorted(records, key=sort_key, reverse=descending)


def paginate(records: Sequence[T], page_number: int, page_size: int) -> PagedList[T]:
    """Slice an already ordered sequence into one page."""
    _check_page(page_number, page_size)
    start = (page_number - 1) * page_size
    return PagedList(
        items=tuple(records[start:start + page_size]),
        total_count=len(records),
        current_page=page_number,
        page_size=page_size,
    )


def order_statement(
    stmt: Select,
    column: Any,
    direction: SortDirection | str = SortDirection.ASC,
) -> Select:
    """Apply ``ORDER BY column``; NULLs order as in ``sort_records``."""
    if SortDirection.parse(direction) is SortDirection.DESC:
        return stmt.order_by(column.desc().nulls_last())
    return stmt.order_by(column.asc().nulls_first())


def to_paged_list(
    session: Session,
    stmt: Select,
    page_number: int,
    page_size: int,
) -> PagedList:
    """
    Run ``stmt`` as one page.

    The total is a COUNT over the filtered statement without its ordering;
    the page itself is fetched with OFFSET/LIMIT.
    """
    _check_page(page_number, page_size)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = session.execute(count_stmt).scalar_one()
    page_stmt = stmt.offset((page_number - 1) * page_size).limit(page_size)
    items = tuple(session.execute(page_stmt).scalars().all())
    return PagedList(
        items=items,
        total_count=total,
        current_page=page_number,
        page_size=page_size,
    )
