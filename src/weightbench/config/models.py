"""Pydantic models for weightbench campaign configuration."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class BuildSpec(BaseModel):
    """How to produce the runnable artifact benchmarks execute against."""

    command: List[str] = Field(default_factory=list)
    artifact: str
    features: List[str] = Field(default_factory=list)
    cwd: Optional[str] = None
    timeout_s: float = Field(default=7200.0, gt=0.0)


class BenchmarkSpec(BaseModel):
    """Default benchmark entry point, applied to every module.

    Command items may contain ``{artifact}``, ``{module}``,
    ``{module_dir}`` and ``{output_dir}`` placeholders.
    """

    command: List[str] = Field(default_factory=list)
    timeout_s: float = Field(default=3600.0, gt=0.0)


class ModuleSpec(BaseModel):
    """A benchmarkable module (e.g. a runtime pallet)."""

    id: str = Field(min_length=1)
    kind: Literal["standard", "extra"] = "standard"
    command: List[str] = Field(default_factory=list)  # overrides benchmark.command
    timeout_s: Optional[float] = Field(default=None, gt=0.0)
    skip_with_features: List[str] = Field(default_factory=list)


class DiscoverySpec(BaseModel):
    """Command listing the modules the built artifact can benchmark.

    Output is expected as ``pallet, extrinsic`` CSV lines.
    """

    command: List[str]
    timeout_s: float = Field(default=300.0, gt=0.0)


class CampaignConfig(BaseModel):
    """Top-level campaign configuration."""

    campaign_name: str
    description: str = ""
    output_dir: str = "output"
    workers: int = Field(default=1, ge=1)
    cancel_grace_s: float = Field(default=10.0, ge=0.0)
    build: BuildSpec
    benchmark: BenchmarkSpec = Field(default_factory=BenchmarkSpec)
    modules: List[ModuleSpec] = Field(default_factory=list)
    own_modules: List[str] = Field(default_factory=list)
    discovery: Optional[DiscoverySpec] = None
