from __future__ import annotations
from typing import Optional

class StructureError(ValueError):
    """
    Broken input or tree invariant (orphaned track, centroid of an empty
    cluster, detaching the root, ...). Fatal for the event being processed.
    """

    def __init__(self, message: str, track_id: Optional[int] = None):
        super().__init__(message)
        self.track_id = track_id
