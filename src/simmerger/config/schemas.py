from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Dict, Any

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    trace_traversal: bool = False  # step-by-step messages of the trimming traversal

    # Execution
    progress: bool = True
    on_error: Literal["raise", "skip"] = "raise"

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    Input tables and output file.

    TOML:

    [io]
    input_path    = "tracks.csv"
    hits_path     = "hits.csv"
    input_format  = "csv"          # "csv" | "parquet" | "hdf5"
    geometry_path = "geometry.csv" # only needed when hits carry det_id instead of x,y,z
    output_path   = "clusters.h5"
    """

    input_path: str
    hits_path: str
    input_format: Literal["csv", "parquet", "hdf5"] = "csv"
    geometry_path: Optional[str] = None
    output_path: str

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)

class TrimCfg(BaseModel):
    enabled: bool = True

class MergeCfg(BaseModel):
    """
    Nearest-neighbour merging of sibling clusters.

    max_radius: clusters whose hit centroids are closer than this [cm] merge.
    max_iterations: optional safety cap on merge passes.
    """

    enabled: bool = True
    max_radius: float = 10.0
    max_iterations: Optional[int] = None

    @field_validator("max_radius")
    def _positive_radius(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("max_radius must be > 0")
        return v

class PipelineCfg(BaseModel):
    """
    Controls how far through the pipeline we run.

    until = "build" | "trim" | "merge"
    """

    until: Literal["build", "trim", "merge"] = "merge"

class VisCfg(BaseModel):
    export_png_on_write: bool = False
    projection: Literal["xy", "xz", "yz"] = "xy"
    # Which event to draw (first processed one when None)
    event: Optional[int] = None


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    trim: TrimCfg = Field(default_factory=TrimCfg)
    merge: MergeCfg = Field(default_factory=MergeCfg)
    pipeline: PipelineCfg = Field(default_factory=PipelineCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
