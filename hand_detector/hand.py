"""
Data types for hand detection: input cluster, contour geometry and result.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

import numpy as np

from .exceptions import InvalidClusterError


@dataclass
class Cluster:
    """
    A candidate point cluster inside a depth window.

    ``points_ij`` are full-frame (x, y) pixels; ``xyz_map`` is the depth
    window whose top-left corner sits at ``top_left`` in the full frame.
    """

    points_ij: np.ndarray
    points_xyz: np.ndarray
    xyz_map: np.ndarray
    top_left: Tuple[int, int] = (0, 0)
    full_map_size: Optional[Tuple[int, int]] = None  # (width, height)

    def __post_init__(self):
        self.points_ij = np.asarray(self.points_ij, dtype=np.int32).reshape(-1, 2)
        self.points_xyz = np.asarray(self.points_xyz, dtype=np.float64).reshape(-1, 3)
        self.xyz_map = np.asarray(self.xyz_map, dtype=np.float32)
        self.top_left = (int(self.top_left[0]), int(self.top_left[1]))

        if len(self.points_ij) != len(self.points_xyz):
            raise InvalidClusterError(
                f"Cluster has {len(self.points_ij)} ij points but {len(self.points_xyz)} xyz points"
            )
        if self.xyz_map.ndim != 3 or self.xyz_map.shape[2] != 3:
            raise InvalidClusterError(f"xyz_map must be H x W x 3, got {self.xyz_map.shape}")

        if self.full_map_size is None:
            h, w = self.xyz_map.shape[:2]
            self.full_map_size = (self.top_left[0] + w, self.top_left[1] + h)
        else:
            self.full_map_size = (int(self.full_map_size[0]), int(self.full_map_size[1]))

    @classmethod
    def from_depth_window(
        cls,
        xyz_map: np.ndarray,
        top_left: Tuple[int, int] = (0, 0),
        full_map_size: Optional[Tuple[int, int]] = None
    ) -> "Cluster":
        """Build a cluster from every valid sample of a depth window (row-major order)."""
        xyz_map = np.asarray(xyz_map, dtype=np.float32)
        ys, xs = np.nonzero(xyz_map[:, :, 2])
        points_ij = np.stack([xs + top_left[0], ys + top_left[1]], axis=1)
        points_xyz = xyz_map[ys, xs].astype(np.float64)
        return cls(points_ij, points_xyz, xyz_map, top_left, full_map_size)

    @property
    def num_points(self) -> int:
        return len(self.points_ij)

    def top_point(self) -> Tuple[int, int]:
        """Topmost cluster pixel in full-frame coordinates."""
        idx = int(np.argmin(self.points_ij[:, 1]))
        return int(self.points_ij[idx, 0]), int(self.points_ij[idx, 1])

    def bounding_box(self) -> Tuple[int, int, int, int]:
        """Full-frame (x, y, width, height) box around the cluster."""
        if self.num_points == 0:
            return 0, 0, 0, 0
        x0, y0 = self.points_ij.min(axis=0)
        x1, y1 = self.points_ij.max(axis=0)
        return int(x0), int(y0), int(x1 - x0 + 1), int(y1 - y0 + 1)


@dataclass
class ContourGeometry:
    """Closed contour with its convex hull indices and convexity defects."""

    contour: np.ndarray
    hull_indices: np.ndarray
    defects: np.ndarray

    def __post_init__(self):
        self.contour = np.asarray(self.contour, dtype=np.int32).reshape(-1, 2)
        self.hull_indices = np.asarray(self.hull_indices, dtype=np.int64).reshape(-1)
        self.defects = np.asarray(self.defects, dtype=np.int64).reshape(-1, 4)

    @property
    def hull_points(self) -> np.ndarray:
        return self.contour[self.hull_indices]

    def __len__(self):
        return len(self.contour)


@dataclass
class PalmCircle:
    center_ij: Tuple[int, int]
    center_xyz: np.ndarray
    radius: float


@dataclass
class WristPair:
    """Wrist endpoints found by walking the contour from the edge contacts."""

    left_ij: Tuple[int, int]
    right_ij: Tuple[int, int]
    left_xyz: np.ndarray
    right_xyz: np.ndarray
    left_index: int
    right_index: int
    direction: int
    contact_indices: Tuple[int, int] = (-1, -1)

    @property
    def width(self) -> float:
        return float(np.linalg.norm(self.left_xyz - self.right_xyz))

    @property
    def midpoint(self) -> np.ndarray:
        return self.left_xyz + (self.right_xyz - self.left_xyz) / 2


@dataclass
class Finger:
    """A fingertip and the defect at its base."""

    tip_ij: Tuple[int, int]
    tip_xyz: np.ndarray
    defect_ij: Tuple[int, int]
    defect_xyz: np.ndarray
    tip_index: int
    defect_index: int  # -1 when the palm center stands in for the defect

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.tip_xyz - self.defect_xyz))


class TouchablePlane(Protocol):
    """Anything that can tell whether a point touches it."""

    def touching(self, point_xyz, point_ij, threshold: float, strict: bool) -> bool:
        ...


@dataclass
class HandResult:
    """Outcome of evaluating one cluster."""

    is_hand: bool = False
    confidence: Optional[float] = None
    rejection: Optional[str] = None

    palm: Optional[PalmCircle] = None
    wrist: Optional[WristPair] = None
    fingers: List[Finger] = field(default_factory=list)

    left_edge_connected: bool = False
    right_edge_connected: bool = False
    surface_area: float = 0.0

    cluster: Optional[Cluster] = None
    geometry: Optional[ContourGeometry] = None

    # Accessors

    @property
    def num_fingers(self) -> int:
        return len(self.fingers)

    @property
    def palm_center_ij(self) -> Optional[Tuple[int, int]]:
        return self.palm.center_ij if self.palm else None

    @property
    def palm_center_xyz(self) -> Optional[np.ndarray]:
        return self.palm.center_xyz if self.palm else None

    @property
    def circle_radius(self) -> float:
        return self.palm.radius if self.palm else 0.0

    @property
    def fingers_ij(self) -> List[Tuple[int, int]]:
        return [f.tip_ij for f in self.fingers]

    @property
    def fingers_xyz(self) -> List[np.ndarray]:
        return [f.tip_xyz for f in self.fingers]

    @property
    def defects_ij(self) -> List[Tuple[int, int]]:
        return [f.defect_ij for f in self.fingers]

    @property
    def defects_xyz(self) -> List[np.ndarray]:
        return [f.defect_xyz for f in self.fingers]

    @property
    def wrist_ij(self) -> List[Tuple[int, int]]:
        return [self.wrist.left_ij, self.wrist.right_ij] if self.wrist else []

    @property
    def wrist_xyz(self) -> List[np.ndarray]:
        return [self.wrist.left_xyz, self.wrist.right_xyz] if self.wrist else []

    def touching_edge(self) -> bool:
        return self.left_edge_connected or self.right_edge_connected

    def touching_left_edge(self) -> bool:
        return self.left_edge_connected

    def touching_right_edge(self) -> bool:
        return self.right_edge_connected

    # Plane queries

    def touching_plane(
        self,
        plane: TouchablePlane,
        threshold: float = 0.0001,
        extrapolate: bool = True
    ) -> List[int]:
        """
        Find the fingers touching a plane.

        Args:
            plane: Object exposing touching(point_xyz, point_ij, threshold, strict)
            threshold: Maximum squared distance counted as touching
            extrapolate: Allow touching points beyond the plane's visible region

        Returns:
            Indices of the touching fingers
        """
        return [
            i for i, finger in enumerate(self.fingers)
            if plane.touching(finger.tip_xyz, finger.tip_ij, threshold, not extrapolate)
        ]

    def touching_planes(
        self,
        planes: List[TouchablePlane],
        threshold: float = 0.0001,
        extrapolate: bool = True
    ) -> List[Tuple[int, List[int]]]:
        """
        Find, for every finger, the planes it touches.

        Returns:
            List of (finger_index, plane_indices) for fingers touching at least one plane
        """
        output = []
        for i, finger in enumerate(self.fingers):
            touched = [
                j for j, plane in enumerate(planes)
                if plane.touching(finger.tip_xyz, finger.tip_ij, threshold, not extrapolate)
            ]
            if touched:
                output.append((i, touched))
        return output
