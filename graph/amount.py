"""graph/amount.py — Tagged amounts tracked per node.

Every node and token carries an ``Amount``: either a presence ``Flag``
(achievements, items) or a numeric ``Quantity`` (currencies, tokens).
All arithmetic and comparisons dispatch on the variant; mixing the two
for the same node id raises ``TypeError``.

    from graph.amount import Flag, Quantity, negate
    negate(Flag(True))        # Flag(False)
    negate(Quantity(5))       # Quantity(-5.0)
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Flag:
    """Presence flag — the node is held or not."""
    value: bool = True

    def __bool__(self) -> bool:
        return self.value


@dataclass(frozen=True)
class Quantity:
    """Numeric amount of a token."""
    value: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    def __bool__(self) -> bool:
        return self.value != 0.0


Amount = Union[Flag, Quantity]


def from_raw(value) -> Amount:
    """Wrap a raw config value (bool / int / float) into an Amount.

    ``bool`` is checked first since it subclasses ``int``.
    """
    if isinstance(value, (Flag, Quantity)):
        return value
    if isinstance(value, bool):
        return Flag(value)
    if isinstance(value, (int, float)):
        return Quantity(value)
    raise TypeError(f"cannot build an Amount from {value!r}")


def negate(amount: Amount) -> Amount:
    """Turn a produced amount into the matching consumed one."""
    if isinstance(amount, Flag):
        return Flag(not amount.value)
    return Quantity(-amount.value)


def is_truthy(amount: Amount | None) -> bool:
    """Held flag or a non-zero quantity.  Missing counts as false."""
    return amount is not None and bool(amount)


def as_number(amount: Amount | None) -> float:
    """Numeric view used by the aggregator (Flag → 0/1, missing → 0)."""
    if amount is None:
        return 0.0
    if isinstance(amount, Flag):
        return 1.0 if amount.value else 0.0
    return amount.value


def js_round(value: float) -> float:
    """Round to nearest integer, halves towards +inf."""
    return float(math.floor(value + 0.5))


def same_kind(a: Amount, b: Amount) -> None:
    if type(a) is not type(b):
        raise TypeError(f"mixed amount kinds: {a!r} vs {b!r}")


def format_amount(amount: Amount) -> str:
    if isinstance(amount, Flag):
        return "true" if amount.value else "false"
    return format_number(amount.value)


def format_number(value: float) -> str:
    """Print integral floats without the trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.10g}"
