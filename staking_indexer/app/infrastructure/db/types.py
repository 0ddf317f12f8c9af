from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import BigInteger, Integer, JSON, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

# uint256 max has 78 decimal digits
UINT256_DIGITS = 78

# Surrogate keys: BIGINT on PostgreSQL, INTEGER on SQLite so that rowid aliasing
# (and therefore autoincrement) works.
SurrogateId = BigInteger().with_variant(Integer, "sqlite")

JsonPayload = JSON().with_variant(JSONB(), "postgresql")


class Uint256(TypeDecorator):
    """
    Exact storage for on-chain token amounts.

    Python side is always `int`. PostgreSQL stores NUMERIC(78, 0); SQLite
    (which would coerce NUMERIC through float) stores the decimal string.
    """

    impl = Numeric(UINT256_DIGITS, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(UINT256_DIGITS))
        return dialect.type_descriptor(Numeric(UINT256_DIGITS, 0, asdecimal=True))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("Token amounts must not be floats")
        as_int = int(value)
        if as_int < 0:
            raise ValueError(f"Token amount must be non-negative, got {as_int}")
        if dialect.name == "sqlite":
            return str(as_int)
        return Decimal(as_int)

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        if isinstance(value, str):
            return int(value)
        return int(Decimal(value))
