"""Benchmark executor: one isolated entry-point invocation per module."""

import logging
import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .build import Artifact
from .registry import ModuleDescriptor
from .result import ExecutionRecord, FailureReason, RunStatus

logger = logging.getLogger(__name__)

# Seconds between SIGTERM and SIGKILL when a module has to be stopped.
KILL_GRACE_S = 5.0


class ExecutionFailure(Exception):
    """A module's entry point did not complete normally.

    Contained by the executor: it becomes a Failed record, never a
    campaign abort.
    """

    def __init__(
        self, reason: FailureReason, message: str, output: bytes = b""
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.output = output


def render_command(
    template: Sequence[str],
    artifact: Artifact,
    module_id: str,
    module_dir: Optional[Path] = None,
    output_dir: Optional[Path] = None,
) -> List[str]:
    """Substitute the known placeholders in an entry point template.

    Braces that are not a known placeholder are left untouched.
    """
    values = {
        "{artifact}": str(artifact.path),
        "{module}": module_id,
        "{module_dir}": str(module_dir) if module_dir else "",
        "{output_dir}": str(output_dir) if output_dir else "",
    }
    args = []
    for item in template:
        for placeholder, value in values.items():
            item = item.replace(placeholder, value)
        args.append(item)
    return args


class BenchmarkExecutor:
    """Runs module entry points against a built artifact.

    Each invocation gets its own process session so a timeout or
    cancellation can stop the whole process tree. Safe to share between
    worker threads.
    """

    def __init__(self, output_dir: Optional[Path] = None, cwd: Optional[str] = None) -> None:
        self.output_dir = output_dir
        self.cwd = cwd
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen] = set()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def skip_reason(self, artifact: Artifact, descriptor: ModuleDescriptor) -> str | None:
        """Return why a module must not run with this artifact, if it must not."""
        clash = descriptor.skip_with_features & artifact.features
        if clash:
            return (
                f"Incompatible with build feature(s): {', '.join(sorted(clash))}"
            )
        return None

    def run(
        self,
        artifact: Artifact,
        descriptor: ModuleDescriptor,
        module_dir: Optional[Path] = None,
    ) -> ExecutionRecord:
        """Execute one module's benchmark and classify the outcome."""
        skip = self.skip_reason(artifact, descriptor)
        if skip:
            logger.info(f"Skipping {descriptor.id}: {skip}")
            return ExecutionRecord(
                module=descriptor.id, status=RunStatus.SKIPPED, detail=skip
            )

        if self.cancelled:
            return ExecutionRecord(
                module=descriptor.id,
                status=RunStatus.SKIPPED,
                reason=FailureReason.CANCELLED,
                detail="Campaign cancelled before this module started",
            )

        args = render_command(
            descriptor.entry_point, artifact, descriptor.id, module_dir, self.output_dir
        )
        logger.info(f"Starting: {descriptor.id}")
        logger.debug(f"Running: {' '.join(args)}")
        start_time = time.monotonic()

        try:
            output = self._invoke(args, descriptor.timeout_s)
        except ExecutionFailure as e:
            duration = time.monotonic() - start_time
            logger.error(f"Module failed: {descriptor.id} ({e.reason.value}): {e}")
            return ExecutionRecord(
                module=descriptor.id,
                status=RunStatus.FAILED,
                raw_output=e.output,
                duration_s=duration,
                reason=e.reason,
                detail=str(e),
            )

        duration = time.monotonic() - start_time
        logger.info(f"Module succeeded: {descriptor.id} ({duration:.1f}s)")
        return ExecutionRecord(
            module=descriptor.id,
            status=RunStatus.SUCCESS,
            raw_output=output,
            duration_s=duration,
        )

    def _invoke(self, args: List[str], timeout_s: float) -> bytes:
        try:
            proc = subprocess.Popen(
                args,
                cwd=self.cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise ExecutionFailure(
                FailureReason.CRASH, f"Failed to start entry point: {e}"
            ) from e

        with self._lock:
            self._processes.add(proc)
            cancelled = self.cancelled
        try:
            if cancelled:
                # Started after cancel() took its snapshot.
                self._stop(proc)
            try:
                output, _ = proc.communicate(timeout=timeout_s)
            except subprocess.TimeoutExpired:
                self._stop(proc)
                output, _ = proc.communicate()
                raise ExecutionFailure(
                    FailureReason.TIMEOUT,
                    f"Timed out after {timeout_s:.0f}s",
                    output or b"",
                ) from None
        finally:
            with self._lock:
                self._processes.discard(proc)

        output = output or b""
        code = proc.returncode
        if code == 0:
            return output
        if self.cancelled and code < 0:
            raise ExecutionFailure(
                FailureReason.CANCELLED, "Terminated by campaign cancellation", output
            )
        if code < 0:
            try:
                sig_name = signal.Signals(-code).name
            except ValueError:
                sig_name = str(-code)
            raise ExecutionFailure(
                FailureReason.CRASH, f"Killed by signal {sig_name}", output
            )
        raise ExecutionFailure(
            FailureReason.NON_ZERO_EXIT, f"Exited with code {code}", output
        )

    @staticmethod
    def _signal_group(proc: subprocess.Popen, sig: int) -> None:
        try:
            os.killpg(proc.pid, sig)
        except (ProcessLookupError, PermissionError):
            pass

    def _stop(self, proc: subprocess.Popen) -> None:
        """SIGTERM the process group, then SIGKILL if it lingers."""
        if proc.poll() is not None:
            return
        logger.warning(f"Sending SIGTERM to PID {proc.pid}")
        self._signal_group(proc, signal.SIGTERM)
        try:
            proc.wait(timeout=KILL_GRACE_S)
        except subprocess.TimeoutExpired:
            logger.warning(f"SIGTERM timeout, sending SIGKILL to PID {proc.pid}")
            self._signal_group(proc, signal.SIGKILL)
            proc.wait()

    def cancel(self, grace_s: float = 10.0) -> None:
        """Stop accepting work and end in-flight invocations.

        In-flight entry points get ``grace_s`` seconds to finish on their
        own before being terminated.
        """
        self._cancelled.set()
        deadline = time.monotonic() + grace_s
        while time.monotonic() < deadline:
            with self._lock:
                running = [p for p in self._processes if p.poll() is None]
            if not running:
                return
            time.sleep(0.1)

        with self._lock:
            remaining = list(self._processes)
        for proc in remaining:
            self._stop(proc)
