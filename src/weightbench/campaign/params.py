"""Trigger parameter resolution.

The automation trigger hands us two loosely typed flags: ``extra`` (run the
specialised benchmarks too) and a module-subset flag. They are normalised
here, once, into a frozen :class:`RunConfig`; nothing downstream reads raw
trigger input.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from weightbench.config.loader import ConfigError

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}
_MODULE_ID_RE = re.compile(r"^[A-Za-z0-9_.:-]+$")


class SelectionMode(str, Enum):
    ALL = "all"
    SUBSET = "subset"


@dataclass(frozen=True)
class RunConfig:
    """Validated campaign inputs, immutable for the campaign's lifetime."""

    selection_mode: SelectionMode = SelectionMode.ALL
    modules: frozenset = field(default_factory=frozenset)
    run_extra: bool = False

    @classmethod
    def subset(cls, ids: Iterable[str], run_extra: bool = False) -> "RunConfig":
        return cls(SelectionMode.SUBSET, frozenset(ids), run_extra)

    def describe(self) -> str:
        if self.selection_mode == SelectionMode.ALL:
            selection = "all modules"
        else:
            selection = "modules " + ", ".join(sorted(self.modules))
        return f"{selection}, extra={'on' if self.run_extra else 'off'}"


def parse_flag(value: Any, name: str) -> bool | None:
    """Interpret an integer/boolean-like trigger value.

    Returns:
        The boolean value, or None if ``value`` is not boolean-like.
        Absent values (None, empty string) are False.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return _int_flag(value, name)
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text == "":
        return False
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    try:
        return _int_flag(int(text), name)
    except ValueError:
        return None


def _int_flag(value: int, name: str) -> bool:
    if value not in (0, 1):
        # Only the on/off reading is honoured.
        logger.warning(
            f"Flag '{name}' has value {value}; treating any non-zero value as enabled"
        )
    return value != 0


def resolve(
    raw_extra_flag: Any = None,
    raw_subset_flag: Any = None,
    own_modules: Iterable[str] = (),
) -> RunConfig:
    """Build a RunConfig from raw trigger parameters.

    Args:
        raw_extra_flag: Boolean-like; enables extra-kind modules.
        raw_subset_flag: ``all``, a boolean-like value (true selects
            ``own_modules``), or a comma-separated list of module ids.
        own_modules: The configured "our modules" group.

    Raises:
        ConfigError: If either flag is malformed.
    """
    run_extra = parse_flag(raw_extra_flag, "extra")
    if run_extra is None:
        raise ConfigError(f"Invalid value for 'extra': {raw_extra_flag!r} (expected a boolean)")

    if isinstance(raw_subset_flag, str) and raw_subset_flag.strip().lower() == "all":
        return RunConfig(SelectionMode.ALL, frozenset(), run_extra)

    subset_flag = parse_flag(raw_subset_flag, "modules")
    if subset_flag is False:
        return RunConfig(SelectionMode.ALL, frozenset(), run_extra)
    if subset_flag is True:
        own = list(own_modules)
        if not own:
            raise ConfigError(
                "Module subset flag is set but no 'own_modules' are configured"
            )
        return RunConfig.subset(own, run_extra)

    if isinstance(raw_subset_flag, (list, tuple, set, frozenset)):
        names = [str(n).strip() for n in raw_subset_flag]
    elif isinstance(raw_subset_flag, str):
        names = [n.strip() for n in raw_subset_flag.split(",")]
    else:
        raise ConfigError(f"Invalid value for 'modules': {raw_subset_flag!r}")

    bad = [n for n in names if not _MODULE_ID_RE.match(n)]
    if bad or not names:
        raise ConfigError(
            f"Invalid module list {raw_subset_flag!r}: "
            f"expected 'all' or comma-separated module names"
        )
    return RunConfig.subset(names, run_extra)
