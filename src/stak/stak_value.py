"""Stak Value hierarchy - immutable runtime value types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class StakValue(ABC):
    """
    Abstract base class for all Stak runtime values.

    All Stak values are immutable.  Integers are the only concrete type today;
    new types slot in here without changing the opcode set.
    """

    @abstractmethod
    def to_python(self) -> Any:
        """Convert to Python value for operations."""

    @abstractmethod
    def describe(self) -> str:
        """Describe the value as it is printed."""


@dataclass(frozen=True)
class StakInteger(StakValue):
    """Represents signed integer values."""
    value: int

    def to_python(self) -> int:
        return self.value

    def describe(self) -> str:
        return str(self.value)

    def is_false(self) -> bool:
        """Integers stand in for booleans: zero is false, everything else is true."""
        return self.value == 0


STAK_TRUE = StakInteger(1)
STAK_FALSE = StakInteger(0)
