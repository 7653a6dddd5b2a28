"""Shared fixtures: a fake benchmark entry point and campaign configs."""

import sys
import textwrap

import pytest

from weightbench.config.models import (
    BenchmarkSpec,
    BuildSpec,
    CampaignConfig,
    ModuleSpec,
)

# Behaviour is chosen by module name prefix so one script can play every role.
BENCH_SCRIPT = textwrap.dedent(
    """
    import os
    import signal
    import sys
    import time

    module = sys.argv[1]
    if module.startswith("fail"):
        print("partial output for " + module)
        sys.exit(3)
    if module.startswith("hang"):
        print("started " + module, flush=True)
        time.sleep(60)
    if module.startswith("crash"):
        sys.stdout.flush()
        os.kill(os.getpid(), signal.SIGKILL)
    print("weights for " + module)
    """
)


@pytest.fixture
def bench_script(tmp_path):
    path = tmp_path / "bench.py"
    path.write_text(BENCH_SCRIPT)
    return path


@pytest.fixture
def artifact_file(tmp_path):
    path = tmp_path / "node"
    path.write_text("#!/bin/sh\n")
    return path


@pytest.fixture
def make_config(tmp_path, bench_script, artifact_file):
    """Factory for campaign configs that need no real toolchain."""

    def _make(modules, **overrides):
        data = dict(
            campaign_name="test-campaign",
            output_dir=str(tmp_path / "output"),
            build=BuildSpec(command=[], artifact=str(artifact_file)),
            benchmark=BenchmarkSpec(
                command=[sys.executable, str(bench_script), "{module}"],
                timeout_s=30,
            ),
            modules=[m if isinstance(m, ModuleSpec) else ModuleSpec(id=m) for m in modules],
        )
        data.update(overrides)
        return CampaignConfig(**data)

    return _make
