"""Module discovery from the built artifact's benchmark listing."""

import logging
import re
import subprocess

from weightbench.config.models import DiscoverySpec

from .build import Artifact, BuildError
from .executor import render_command

logger = logging.getLogger(__name__)

# Listing lines look like "pallet_balances, transfer_allow_death".
_LISTING_LINE = re.compile(r"^\s*([A-Za-z0-9_.:-]+)\s*,\s*\S+")


def parse_module_listing(text: str) -> list[str]:
    """Extract unique module ids from a ``pallet, extrinsic`` listing.

    The header row and any non-matching lines are ignored. Order of
    first appearance is preserved.

    Examples:
        "pallet, extrinsic\\nbalances, transfer\\nbalances, burn" -> ["balances"]
    """
    seen: dict[str, None] = {}
    for line in text.splitlines():
        match = _LISTING_LINE.match(line)
        if not match:
            continue
        name = match.group(1)
        if name.lower() == "pallet":
            continue
        seen.setdefault(name, None)
    return list(seen)


def discover_modules(spec: DiscoverySpec, artifact: Artifact, cwd: str | None = None) -> list[str]:
    """Ask the artifact which modules it can benchmark.

    Raises:
        BuildError: If the listing command fails; an artifact that cannot
            list its own benchmarks is not usable.
    """
    args = render_command(spec.command, artifact, "")
    logger.info(f"Discovering modules: {' '.join(args)}")

    try:
        result = subprocess.run(
            args, cwd=cwd, capture_output=True, text=True, timeout=spec.timeout_s
        )
    except subprocess.TimeoutExpired:
        raise BuildError(
            f"Module discovery timed out after {spec.timeout_s:.0f}s"
        ) from None
    except OSError as e:
        raise BuildError(f"Module discovery could not start: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()[-500:]
        raise BuildError(
            f"Module discovery failed (exit {result.returncode}): {detail}"
        )

    modules = parse_module_listing(result.stdout or "")
    logger.info(f"Discovered {len(modules)} module(s)")
    return modules
