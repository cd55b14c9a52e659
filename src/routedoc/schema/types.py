"""Fixed-width integer types.

Python's ``int`` is unbounded, so its schema carries no bounds. Wire formats
that store fixed-width integers use these aliases instead; their schemas get
the natural ``minimum``/``maximum`` of the width. Bounds declared on top
(``Annotated[Int64, Field(ge=0)]``) take precedence.
"""

from typing import Annotated

from annotated_types import Interval


def _signed(bits: int):
    return Annotated[int, Interval(ge=-(2 ** (bits - 1)), le=2 ** (bits - 1) - 1)]


def _unsigned(bits: int):
    return Annotated[int, Interval(ge=0, le=2**bits - 1)]


Int8 = _signed(8)
Int16 = _signed(16)
Int32 = _signed(32)
Int64 = _signed(64)

Word8 = _unsigned(8)
Word16 = _unsigned(16)
Word32 = _unsigned(32)
Word64 = _unsigned(64)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
