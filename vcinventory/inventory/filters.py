"""
VM filter chain.

Path: vcinventory/inventory/filters.py

Filters always apply in this order:
    1. PowerState   - keep records whose state is in the allowed set
    2. Exclude      - each pattern removes matches from what is left
    3. Include      - keep the union of records matching any pattern

Usage:
    spec = FilterSpec.from_lists(
        power_states=["PoweredOn"],
        exclude_names=["tpl-*"],
    )
    kept = apply_filters(records, spec)
"""

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Pattern, Sequence, Tuple

from vcinventory.errors import ConfigError
from vcinventory.inventory.models import PowerState, VMRecord


logger = logging.getLogger(__name__)


def compile_glob(pattern: str) -> Pattern:
    """
    Compile a case-insensitive fnmatch glob into a regex.

    Supported wildcards: '*' (any run), '?' (one character), '[seq]' and
    '[!seq]'. Everything else matches literally.

    Raises:
        ConfigError: Empty pattern or unclosed '['.
    """
    if not isinstance(pattern, str) or not pattern.strip():
        raise ConfigError(f"Invalid name pattern: {pattern!r}")

    # fnmatch would read an unclosed '[' as a literal; reject it instead
    i = pattern.find("[")
    while i != -1:
        j = i + 1
        if pattern[j:j + 1] == "!":
            j += 1
        if pattern[j:j + 1] == "]":
            j += 1
        end = pattern.find("]", j)
        if end == -1:
            raise ConfigError(f"Unclosed '[' in name pattern {pattern!r}")
        i = pattern.find("[", end + 1)

    try:
        return re.compile(fnmatch.translate(pattern), re.IGNORECASE)
    except re.error as e:
        raise ConfigError(f"Invalid name pattern {pattern!r}: {e}")


def glob_match(regex: Pattern, value: str) -> bool:
    return regex.fullmatch(value) is not None


@dataclass(frozen=True)
class FilterSpec:
    """Immutable filter definition, validated on construction."""

    power_states: FrozenSet[PowerState] = frozenset()
    exclude_name_patterns: Tuple[str, ...] = ()
    include_name_patterns: Tuple[str, ...] = ()

    _exclude_regexes: Tuple[Pattern, ...] = field(default=(), init=False, repr=False, compare=False)
    _include_regexes: Tuple[Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "power_states", frozenset(self.power_states))
        object.__setattr__(self, "exclude_name_patterns", tuple(self.exclude_name_patterns))
        object.__setattr__(self, "include_name_patterns", tuple(self.include_name_patterns))
        object.__setattr__(
            self, "_exclude_regexes",
            tuple(compile_glob(p) for p in self.exclude_name_patterns),
        )
        object.__setattr__(
            self, "_include_regexes",
            tuple(compile_glob(p) for p in self.include_name_patterns),
        )

    @classmethod
    def from_lists(
        cls,
        power_states: Optional[Iterable[str]] = None,
        exclude_names: Optional[Iterable[str]] = None,
        include_names: Optional[Iterable[str]] = None,
    ) -> "FilterSpec":
        """
        Build a spec from raw config values.

        Raises:
            ConfigError: Unknown power state or malformed pattern.
        """
        states = set()
        for raw in _as_list(power_states, "power_states"):
            state = PowerState.parse(raw)
            if state is None:
                valid = ", ".join(s.value for s in PowerState)
                raise ConfigError(f"Unknown power state {raw!r} (expected one of: {valid})")
            states.add(state)

        return cls(
            power_states=frozenset(states),
            exclude_name_patterns=tuple(_as_list(exclude_names, "exclude_names")),
            include_name_patterns=tuple(_as_list(include_names, "include_names")),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.power_states or self.exclude_name_patterns or self.include_name_patterns)

    def describe(self) -> List[Tuple[str, str]]:
        """Human-readable summary for report metadata."""
        return [
            ("PowerStates", ", ".join(sorted(s.value for s in self.power_states)) or "(any)"),
            ("ExcludeNames", ", ".join(self.exclude_name_patterns) or "(none)"),
            ("IncludeNames", ", ".join(self.include_name_patterns) or "(all)"),
        ]


def _as_list(value, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigError(f"'{key}' must be a list, got {type(value).__name__}")
    return list(value)


def apply_filters(records: Sequence[VMRecord], spec: FilterSpec) -> List[VMRecord]:
    """
    Apply the filter chain to a list of records.

    Input order is preserved. An empty spec returns the input unchanged.

    Args:
        records: Shaped VM records.
        spec: Filter definition.

    Returns:
        Surviving records.
    """
    result = list(records)

    # 1. PowerState
    if spec.power_states:
        result = [r for r in result if r.power_state in spec.power_states]
        logger.debug(f"PowerState filter kept {len(result)}/{len(records)}")

    # 2. Exclude, cumulative
    for pattern, regex in zip(spec.exclude_name_patterns, spec._exclude_regexes):
        before = len(result)
        result = [r for r in result if not glob_match(regex, r.name)]
        logger.debug(f"Exclude '{pattern}' removed {before - len(result)}")

    # 3. Include, union over the post-exclude set
    if spec.include_name_patterns:
        matched = set()
        for regex in spec._include_regexes:
            for record in result:
                if glob_match(regex, record.name):
                    matched.add(id(record))
        union = []
        for record in result:
            if id(record) in matched:
                union.append(record)
                matched.discard(id(record))
        result = union
        logger.debug(f"Include filter kept {len(result)}")

    return result
