"""
Module: contracts_kernel.db.types
Responsibility: Annotated type aliases for contract columns.  Centralizes
    lengths and precision so that models and services use identical type
    definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/ and
    services/.  MUST NOT import from any of those layers.
"""

from decimal import Decimal
from enum import IntEnum
from typing import Annotated

from sqlalchemy import Integer, LargeBinary, Numeric, String, Text
from sqlalchemy.types import TypeDecorator

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Contract number / parent contract number
ContractNumber = Annotated[str, String(20)]

# Free-form short strings (titles, signer names, file names)
ShortText = Annotated[str, String(255)]

# Funding year, e.g. "2021/22"
Year = Annotated[str, String(12)]

# Original contract XML
XmlText = Annotated[str, Text()]

# PDF bytes
Document = Annotated[bytes, LargeBinary()]

CONTRACT_NUMBER_MAX_LENGTH = 20


class IntEnumType(TypeDecorator):
    """
    ``IntEnum`` member stored as its integer code.

    Guarantees:
        - process_bind_param: member (or plain int) -> int.
        - process_result_value: int -> member of ``enum_class``.
    """

    impl = Integer
    cache_ok = True

    def __init__(self, enum_class: type[IntEnum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
