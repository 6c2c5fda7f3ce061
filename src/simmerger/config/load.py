from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    """
    Load a TOML config. Relative [io] paths are resolved against the config
    file's directory.
    """
    p = Path(path)
    data = tomllib.loads(p.read_text())
    cfg = Config(**data)
    base = p.parent
    for key in ("input_path", "hits_path", "geometry_path", "output_path"):
        val = getattr(cfg.io, key)
        if val is not None and not Path(val).is_absolute():
            setattr(cfg.io, key, str((base / val).resolve()))
    return cfg

def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()
