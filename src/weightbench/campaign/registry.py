"""Module registry, the authority on which modules can be benchmarked."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from weightbench.config.loader import ConfigError
from weightbench.config.models import CampaignConfig

from .params import RunConfig, SelectionMode

logger = logging.getLogger(__name__)


class UnknownModuleError(Exception):
    """Raised when a requested module is not registered."""

    def __init__(self, unknown: Iterable[str], available: Iterable[str] = ()) -> None:
        self.unknown = sorted(unknown)
        self.available = sorted(available)
        message = f"Unknown module(s): {', '.join(self.unknown)}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class ModuleKind(str, Enum):
    STANDARD = "standard"
    EXTRA = "extra"


@dataclass(frozen=True)
class ModuleDescriptor:
    """A registered module and how to invoke its benchmark."""

    id: str
    kind: ModuleKind = ModuleKind.STANDARD
    entry_point: Tuple[str, ...] = ()
    timeout_s: float = 3600.0
    skip_with_features: frozenset = field(default_factory=frozenset)


class ModuleRegistry:
    """Ordered, read-only collection of module descriptors.

    Enumeration order is lexicographic by id so repeated campaigns produce
    comparable output.
    """

    def __init__(self, descriptors: Iterable[ModuleDescriptor]) -> None:
        self._modules: dict[str, ModuleDescriptor] = {}
        for desc in descriptors:
            if desc.id in self._modules:
                raise ConfigError(f"Module '{desc.id}' is registered more than once")
            self._modules[desc.id] = desc

    @classmethod
    def from_config(
        cls,
        config: CampaignConfig,
        discovered: Iterable[str] = (),
    ) -> "ModuleRegistry":
        """Build a registry from the campaign config plus discovered module ids.

        Configured modules win over discovered ones with the same id.
        """
        default_command = tuple(config.benchmark.command)
        descriptors: List[ModuleDescriptor] = []
        configured = set()

        for spec in config.modules:
            command = tuple(spec.command) or default_command
            if not command:
                raise ConfigError(
                    f"Module '{spec.id}' has no command and no default benchmark.command is set"
                )
            descriptors.append(
                ModuleDescriptor(
                    id=spec.id,
                    kind=ModuleKind(spec.kind),
                    entry_point=command,
                    timeout_s=spec.timeout_s or config.benchmark.timeout_s,
                    skip_with_features=frozenset(spec.skip_with_features),
                )
            )
            configured.add(spec.id)

        extra_found = sorted(set(discovered) - configured)
        if extra_found and not default_command:
            raise ConfigError(
                "Modules were discovered but no default benchmark.command is set"
            )
        for module_id in extra_found:
            descriptors.append(
                ModuleDescriptor(
                    id=module_id,
                    entry_point=default_command,
                    timeout_s=config.benchmark.timeout_s,
                )
            )

        return cls(descriptors)

    def list(self) -> List[ModuleDescriptor]:
        """All registered modules in deterministic (lexicographic) order."""
        return [self._modules[k] for k in sorted(self._modules)]

    def get(self, module_id: str) -> Optional[ModuleDescriptor]:
        return self._modules.get(module_id)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def filter(self, run_config: RunConfig) -> List[ModuleDescriptor]:
        """Select the modules a campaign should run.

        ``All`` yields standard modules, plus extra ones when
        ``run_extra`` is set. ``Subset`` yields exactly the requested
        modules, whatever their kind.

        Raises:
            UnknownModuleError: If a requested id is not registered.
        """
        if run_config.selection_mode == SelectionMode.ALL:
            return [
                m
                for m in self.list()
                if m.kind == ModuleKind.STANDARD or run_config.run_extra
            ]

        unknown = [m for m in run_config.modules if m not in self._modules]
        if unknown:
            raise UnknownModuleError(unknown, self._modules)

        selected = [m for m in self.list() if m.id in run_config.modules]
        extra_requested = [
            m.id for m in selected if m.kind == ModuleKind.EXTRA and not run_config.run_extra
        ]
        if extra_requested:
            logger.info(
                f"Including explicitly requested extra module(s): {', '.join(extra_requested)}"
            )
        return selected
