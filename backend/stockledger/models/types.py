from __future__ import annotations

from decimal import Decimal

from sqlalchemy.types import BigInteger, TypeDecorator

from ..money import quantum, to_money


class Money(TypeDecorator):
    """
    Exact decimal stored as integer minor units (cents at scale 2).

    Values never pass through float on any backend; binding a value with more
    fractional digits than the scale raises ValidationError.
    """

    impl = BigInteger
    cache_ok = True

    def __init__(self, scale: int = 2, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scale = scale

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = to_money(value, scale=self.scale)
        return int(amount.scaleb(self.scale))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-self.scale).quantize(quantum(self.scale))
