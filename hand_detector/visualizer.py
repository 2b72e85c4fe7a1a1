"""
Debug observer that draws the intermediate geometry of a hand detection run.
"""

from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np


class HandDebugVisualizer:
    """
    Observer for HandDetector that renders contour, palm, wrist, defects and
    fingers onto a full-frame canvas.

    Usage:
        visualizer = HandDebugVisualizer((640, 480))
        detector = HandDetector(observer=visualizer)
        detector.detect(cluster)
        cv2.imshow("Hand Debug", visualizer.render())
    """

    def __init__(self, frame_size: Tuple[int, int]):
        """
        Args:
            frame_size: Full frame (width, height)
        """
        self.frame_size = frame_size
        self.canvas = None
        self.reset()

    def reset(self) -> None:
        width, height = self.frame_size
        self.canvas = np.zeros((height, width, 3), dtype=np.uint8)

    def render(self) -> np.ndarray:
        return self.canvas.copy()

    def __call__(self, stage: str, data: Dict[str, Any]) -> None:
        handler = getattr(self, f"_draw_{stage}", None)
        if handler is not None:
            handler(**data)

    @staticmethod
    def _pt(p) -> Tuple[int, int]:
        return int(p[0]), int(p[1])

    def _draw_contour(self, geometry) -> None:
        self.reset()
        contour = geometry.contour.reshape(-1, 1, 2).astype(np.int32)
        cv2.polylines(self.canvas, [contour], True, (0, 200, 0))

    def _draw_palm(self, palm) -> None:
        cv2.circle(self.canvas, self._pt(palm.center_ij), int(palm.radius), (255, 0, 255), 2)

    def _draw_wrist(self, wrist, contour) -> None:
        for idx in wrist.contact_indices:
            if idx >= 0:
                self._box(contour[idx], (0, 0, 255))
        self._box(wrist.left_ij, (0, 255, 255))
        self._box(wrist.right_ij, (0, 255, 255))

    def _draw_candidates(self, candidates, contour) -> None:
        for defect in candidates.good_defects:
            start, end, far = contour[int(defect[0])], contour[int(defect[1])], contour[int(defect[2])]
            cv2.circle(self.canvas, self._pt(far), 10, (255, 255, 0), 2)
            cv2.line(self.canvas, self._pt(start), self._pt(far), (255, 100, 0), 2)
            cv2.line(self.canvas, self._pt(end), self._pt(far), (0, 0, 255), 2)
        for idx in candidates.defect_indices:
            cv2.circle(self.canvas, self._pt(contour[idx]), 8, (255, 255, 255), 2)

    def _draw_fingers(self, fingers) -> None:
        for finger in fingers:
            cv2.line(self.canvas, self._pt(finger.tip_ij), self._pt(finger.defect_ij), (0, 255, 0), 2)
            cv2.circle(self.canvas, self._pt(finger.tip_ij), 6, (0, 255, 0), -1)

    def _draw_rejected(self, reason: str, result=None) -> None:
        self._text(reason.upper().replace("_", " "), (10, 30))

    def _draw_result(self, result) -> None:
        label = f"HAND ({result.num_fingers} fingers)"
        if result.confidence is not None:
            label += f" conf={result.confidence:.2f}"
        self._text(label, (10, 30))

    def _box(self, center, color: Tuple[int, int, int], half: int = 10) -> None:
        x, y = self._pt(center)
        cv2.rectangle(self.canvas, (x - half, y - half), (x + half, y + half), color, 2)

    def _text(self, text: str, origin: Tuple[int, int], color: Optional[Tuple[int, int, int]] = None) -> None:
        cv2.putText(self.canvas, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.5,
                    color or (255, 255, 255), 1)
