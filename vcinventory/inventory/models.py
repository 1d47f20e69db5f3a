"""
Inventory data models.

Rows produced by the shaper and consumed by filters and the exporter.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional


# Placeholder for any property that could not be read
SENTINEL = "N/A"


class PowerState(Enum):
    """VM runtime power state."""
    POWERED_ON = "PoweredOn"
    POWERED_OFF = "PoweredOff"
    SUSPENDED = "Suspended"

    @classmethod
    def parse(cls, value: Any) -> Optional["PowerState"]:
        """
        Parse a power state from any casing.

        Accepts both the display form ("PoweredOn") and the vSphere API
        form ("poweredOn"). Returns None for anything unrecognized.
        """
        if isinstance(value, PowerState):
            return value
        if value is None:
            return None
        text = str(value).strip().lower()
        for state in cls:
            if state.value.lower() == text:
                return state
        return None


class VMRecord(Mapping):
    """
    One inventory row: property name -> value.

    Read-only once built. Unavailable values hold SENTINEL so that every
    row built from the same property list has the same keys.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VMRecord(name={self.name!r}, fields={len(self._values)})"

    @property
    def name(self) -> str:
        value = self._values.get("Name", SENTINEL)
        return SENTINEL if value is None else str(value)

    @property
    def power_state(self) -> Optional[PowerState]:
        return PowerState.parse(self._values.get("PowerState"))

    def project(self, properties: Iterable[str]) -> Dict[str, Any]:
        """Return a flat dict in the given property order."""
        return {prop: self._values.get(prop, SENTINEL) for prop in properties}
