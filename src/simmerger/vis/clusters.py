import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path

from simmerger.tree.tree import TrackTree

_AXES = {"xy": (0, 1), "xz": (0, 2), "yz": (1, 2)}

def save_cluster_png(tree: TrackTree, out_png: str, projection: str = "xy", title: str | None = None):
    """Scatter all hits in a 2D projection, one colour per cluster (track), centroids marked."""
    if projection not in _AXES:
        raise ValueError(f"Unknown projection {projection!r}; expected one of {sorted(_AXES)}")
    a, b = _AXES[projection]

    plt.figure()
    for node in tree:
        if not node.has_hits():
            continue
        pos = np.array([h.position for h in node.hits])
        plt.scatter(pos[:, a], pos[:, b], s=6, label=str(node.track_id))
        c = node.centroid
        plt.scatter([c[a]], [c[b]], marker="x", c="k", s=30)
    plt.xlabel(f"{projection[0]} [cm]")
    plt.ylabel(f"{projection[1]} [cm]")
    plt.title(title or f"root {tree.root_id} : {projection}")
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()
    return str(Path(out_png))
