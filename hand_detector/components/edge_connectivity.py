"""
Detects whether a cluster touches the bottom / side edges of the frame.
"""

import math
from typing import Tuple

import numpy as np

from ..config import HandDetectionConfig


class EdgeConnectivityAnalyzer:
    """
    Sweeps the depth window near the frame borders looking for valid samples.

    Each side is checked with a horizontal sweep just above the bottom edge
    (left half / right half of the frame); if that finds nothing, a vertical
    sweep near the side border covers the lower part of the frame up to
    ``hand_edge_connect_max_y``.
    """

    def __init__(self, config: HandDetectionConfig):
        self.config = config

    def analyze(
        self,
        xyz_map: np.ndarray,
        top_left: Tuple[int, int],
        full_map_size: Tuple[int, int]
    ) -> Tuple[bool, bool]:
        """
        Returns:
            Tuple of (left_edge_connected, right_edge_connected)
        """
        cols, rows = full_map_size
        tlx, tly = top_left
        depth = xyz_map[:, :, 2]

        bottom_row = rows - self.config.bottom_edge_thresh - tly
        half = cols // 2 - tlx

        left = self._sweep_row(depth, bottom_row, 0, half)
        if not left:
            left = self._sweep_column(depth, self.config.side_edge_thresh - tlx, rows, tly)

        right = self._sweep_row(depth, bottom_row, half, cols - tlx)
        if not right:
            right = self._sweep_column(depth, cols - self.config.side_edge_thresh - tlx, rows, tly)

        return left, right

    @staticmethod
    def _sweep_row(depth: np.ndarray, row: int, col_start: int, col_end: int) -> bool:
        h, w = depth.shape
        if not 0 <= row < h:
            return False
        col_start, col_end = max(0, col_start), min(w, col_end)
        if col_start >= col_end:
            return False
        return bool(np.any(depth[row, col_start:col_end] != 0))

    def _sweep_column(self, depth: np.ndarray, col: int, rows: int, tly: int) -> bool:
        h, w = depth.shape
        if not 0 <= col < w:
            return False

        # rows from the bottom of the frame up to the connect limit
        row_end = min(rows - 1 - tly, h - 1)
        row_start = max(int(math.ceil(rows * self.config.hand_edge_connect_max_y - tly)), 0)
        if row_start > row_end:
            return False
        return bool(np.any(depth[row_start:row_end + 1, col] != 0))
