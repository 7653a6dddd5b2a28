"""Build stage: produce the artifact every benchmark runs against."""

import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from weightbench.config.models import BuildSpec

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Raised when the artifact cannot be produced."""


@dataclass(frozen=True)
class Artifact:
    """The built, runnable output. Shared read-only by all module runs."""

    path: Path
    features: frozenset = field(default_factory=frozenset)


class BuildStage:
    """Run the build command once and locate the artifact.

    There are no retries: a failed build aborts the campaign.
    """

    def __init__(self, spec: BuildSpec, skip_build: bool = False) -> None:
        self.spec = spec
        self.skip_build = skip_build

    @property
    def artifact_path(self) -> Path:
        path = Path(self.spec.artifact)
        if not path.is_absolute() and self.spec.cwd:
            path = Path(self.spec.cwd) / path
        return path

    def build(self) -> Artifact:
        """Build the artifact.

        Raises:
            BuildError: If the build command fails, times out, cannot be
                started, or does not leave an artifact behind.
        """
        if self.skip_build:
            logger.info("Skipping build, reusing existing artifact")
        elif self.spec.command:
            self._run_build()
        else:
            logger.info("No build command configured")

        path = self.artifact_path
        if not path.exists():
            raise BuildError(f"Artifact not found after build: {path}")

        logger.info(f"Artifact ready: {path}")
        return Artifact(path=path.resolve(), features=frozenset(self.spec.features))

    def _run_build(self) -> None:
        args = list(self.spec.command)
        logger.info(f"Building: {' '.join(args)}")
        start = time.monotonic()

        try:
            result = subprocess.run(
                args,
                cwd=self.spec.cwd,
                capture_output=True,
                text=True,
                timeout=self.spec.timeout_s,
            )
        except FileNotFoundError:
            raise BuildError(f"Build tool not found: {args[0]}") from None
        except subprocess.TimeoutExpired:
            raise BuildError(
                f"Build timed out after {self.spec.timeout_s:.0f}s"
            ) from None
        except OSError as e:
            raise BuildError(f"Failed to start build: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            stdout = (result.stdout or "").strip()
            error_detail = stderr[-500:] if stderr else stdout[-500:]
            if not error_detail:
                error_detail = "no output captured"
            raise BuildError(
                f"Build failed (exit {result.returncode}): {error_detail}"
            )

        logger.info(f"Build finished in {time.monotonic() - start:.1f}s")
