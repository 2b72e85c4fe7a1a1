import math
import unittest

import cv2
import numpy as np

from hand_detector import Cluster, ContourGeometry, Finger, HandDetectionConfig, PalmCircle, WristPair
from hand_detector.components import (
    EdgeConnectivityAnalyzer,
    FingerCandidateGenerator,
    FingerCandidates,
    FingerFilter,
    PalmLocator,
    SingleFingerDetector,
    WristLocator,
    compare_far_points,
    drop_close_fingers,
    far_point_angle_table,
    on_wrist_arc,
    order_defects,
)
from hand_detector.components.finger_filter import curvature_samples
from hand_detector.contour import compute_contour_geometry

from .synthetic import arm_mask, cluster_from_mask, plane_xyz_map, rect_mask, to_xyz


def nearest_index(contour, pt):
    return int(np.argmin(np.linalg.norm(contour - np.array(pt), axis=1)))


def one_finger_mask():
    """Palm resting on the bottom edge with one raised finger."""
    mask = rect_mask((200, 200), 60, 100, 139, 199)
    return rect_mask((200, 200), 92, 30, 107, 99, mask)


class TestEdgeConnectivity(unittest.TestCase):
    def setUp(self):
        self.analyzer = EdgeConnectivityAnalyzer(HandDetectionConfig())

    def window(self, *pixels, shape=(80, 100)):
        xyz_map = np.zeros(shape + (3,), dtype=np.float32)
        for x, y in pixels:
            xyz_map[y, x] = (0.1, 0.1, 0.5)
        return xyz_map

    def test_bottom_sweep(self):
        self.assertEqual(self.analyzer.analyze(self.window((10, 70)), (0, 0), (100, 80)), (True, False))

    def test_side_sweep(self):
        self.assertEqual(self.analyzer.analyze(self.window((90, 50)), (0, 0), (100, 80)), (False, True))

    def test_side_sweep_limited_to_lower_part(self):
        self.assertEqual(self.analyzer.analyze(self.window((90, 20)), (0, 0), (100, 80)), (False, False))

    def test_window_offset(self):
        xyz_map = self.window((20, 40), shape=(50, 60))
        self.assertEqual(self.analyzer.analyze(xyz_map, (40, 30), (100, 80)), (False, True))

    def test_empty_window(self):
        self.assertEqual(self.analyzer.analyze(self.window(), (0, 0), (100, 80)), (False, False))


class TestPalmLocator(unittest.TestCase):
    def setUp(self):
        mask = np.zeros((100, 100), dtype=np.uint8)
        cv2.circle(mask, (50, 50), 20, 255, -1)
        self.cluster = cluster_from_mask(mask)
        self.contour = compute_contour_geometry(self.cluster.xyz_map, scaling_factor=1).contour

    def test_largest_inscribed_circle(self):
        palm = PalmLocator(HandDetectionConfig()).locate(self.contour, self.cluster)

        self.assertLessEqual(math.hypot(palm.center_ij[0] - 50, palm.center_ij[1] - 50), 3)
        self.assertTrue(17 <= palm.radius <= 22)
        np.testing.assert_allclose(palm.center_xyz, [0.05, 0.05, 0.5], atol=0.004)

    def test_center_limited_by_distance_from_top(self):
        config = HandDetectionConfig(center_max_dist_from_top=0.005)
        palm = PalmLocator(config).locate(self.contour, self.cluster)

        top = self.cluster.top_point()
        self.assertLessEqual(math.hypot(palm.center_ij[0] - top[0], palm.center_ij[1] - top[1]), 10)
        self.assertLess(palm.radius, 12)

    def test_center_depth_read_per_pixel(self):
        xyz_map = plane_xyz_map(rect_mask((100, 100), 20, 20, 60, 60))
        contour = compute_contour_geometry(xyz_map, scaling_factor=1).contour
        locator = PalmLocator(HandDetectionConfig())

        palm = locator.locate(contour, Cluster.from_depth_window(xyz_map))
        self.assertEqual(palm.center_ij, (40, 40))

        # a single bad depth sample disqualifies its own pixel, not its neighbours
        xyz_map[40, 40, 2] = 5.0
        palm = locator.locate(contour, Cluster.from_depth_window(xyz_map))
        self.assertNotEqual(palm.center_ij, (40, 40))
        self.assertLessEqual(max(abs(palm.center_ij[0] - 40), abs(palm.center_ij[1] - 40)), 1)
        self.assertAlmostEqual(palm.radius, 20.0, places=3)

    def test_invalid_mask_size_falls_back(self):
        self.assertEqual(PalmLocator(HandDetectionConfig(), mask_size=7).mask_size, 5)


class TestWristLocator(unittest.TestCase):
    def setUp(self):
        self.cluster = cluster_from_mask(arm_mask())
        self.contour = compute_contour_geometry(self.cluster.xyz_map, scaling_factor=1).contour
        self.palm_xyz = to_xyz(50, 20)

    def test_traversal_direction(self):
        self.assertEqual(WristLocator.traversal_direction(10, 20, 100), -1)
        self.assertEqual(WristLocator.traversal_direction(20, 10, 100), 1)
        self.assertEqual(WristLocator.traversal_direction(10, 80, 100), 1)
        self.assertEqual(WristLocator.traversal_direction(80, 10, 100), -1)

    def test_contacts_on_bottom_edge(self):
        locator = WristLocator(HandDetectionConfig())
        left, right = locator.find_contacts(self.contour, self.cluster.full_map_size, True)
        self.assertEqual(self.contour[left][0], 30)
        self.assertEqual(self.contour[right][0], 69)

    def test_walk_reaches_palm(self):
        locator = WristLocator(HandDetectionConfig())
        wrist = locator.locate(self.contour, self.palm_xyz, self.cluster, True)

        self.assertIsNotNone(wrist)
        self.assertEqual(wrist.left_ij[0], 30)
        self.assertEqual(wrist.right_ij[0], 69)
        self.assertTrue(88 <= wrist.left_ij[1] <= 95)
        self.assertTrue(88 <= wrist.right_ij[1] <= 95)
        self.assertAlmostEqual(wrist.width, 0.035, delta=0.003)
        self.assertTrue(locator.valid_width(wrist))

    def test_walk_around_whole_contour_fails(self):
        locator = WristLocator(HandDetectionConfig(wrist_center_dist_thresh=1e-6))
        self.assertIsNone(locator.locate(self.contour, self.palm_xyz, self.cluster, True))

    def test_lowest_point_used_without_edge_contact(self):
        locator = WristLocator(HandDetectionConfig())
        left, right = locator.find_contacts(self.contour, self.cluster.full_map_size, False)
        self.assertEqual(left, right)
        self.assertEqual(self.contour[left][1], self.contour[:, 1].max())

    def test_no_contour(self):
        locator = WristLocator(HandDetectionConfig())
        self.assertIsNone(locator.locate(np.zeros((0, 2), np.int32), self.palm_xyz, self.cluster, True))


class TestDefectOrdering(unittest.TestCase):
    def setUp(self):
        self.contour = np.array([(50, 60), (60, 50), (50, 40), (40, 50)])
        self.defects = np.array([[0, 0, 2, 0], [0, 0, 3, 0], [0, 0, 0, 0], [0, 0, 1, 0]])

    def test_angle_table(self):
        table = far_point_angle_table(self.contour, self.defects, (50, 50))
        np.testing.assert_allclose(table, [0.0, math.pi / 2, math.pi, 3 * math.pi / 2], atol=1e-9)

    def test_comparator(self):
        table = far_point_angle_table(self.contour, self.defects, (50, 50))
        self.assertEqual(compare_far_points(0, 1, table), -1)
        self.assertEqual(compare_far_points(3, 2, table), 1)
        self.assertEqual(compare_far_points(2, 2, table), 0)

    def test_ordered_counter_clockwise_from_bottom(self):
        ordered = order_defects(self.contour, self.defects, (50, 50))
        self.assertEqual([int(d[2]) for d in ordered], [0, 1, 2, 3])

    def test_wrist_arc(self):
        self.assertTrue(on_wrist_arc(15, 10, 20, -1))
        self.assertFalse(on_wrist_arc(5, 10, 20, -1))
        self.assertTrue(on_wrist_arc(95, 90, 10, -1))
        self.assertTrue(on_wrist_arc(5, 90, 10, -1))
        self.assertFalse(on_wrist_arc(50, 90, 10, -1))

        self.assertTrue(on_wrist_arc(5, 10, 20, 1))
        self.assertTrue(on_wrist_arc(25, 10, 20, 1))
        self.assertFalse(on_wrist_arc(15, 10, 20, 1))
        self.assertTrue(on_wrist_arc(15, 20, 10, 1))
        self.assertFalse(on_wrist_arc(5, 20, 10, 1))


class TestFingerCandidateGenerator(unittest.TestCase):
    def setUp(self):
        self.cluster = cluster_from_mask(np.full((200, 200), 255, dtype=np.uint8))
        self.palm = PalmCircle(center_ij=(100, 120), center_xyz=to_xyz(100, 120), radius=30.0)
        self.wrist = WristPair(
            left_ij=(80, 190), right_ij=(120, 190),
            left_xyz=to_xyz(80, 190), right_xyz=to_xyz(120, 190),
            left_index=0, right_index=1, direction=-1,
        )
        contour = np.array([
            (80, 190), (120, 190),               # wrist
            (80, 40), (100, 40), (90, 90),       # narrow defect between two tips
            (105, 40), (110, 90), (125, 40),     # its neighbour, start shared with the previous end
            (30, 110), (60, 111), (90, 110),     # wide defect
            (95, 60), (100, 118), (105, 60),     # far point too close to the palm
        ])
        defects = np.array([
            [2, 3, 4, 0],
            [5, 7, 6, 0],
            [8, 10, 9, 0],
            [11, 13, 12, 0],
        ])
        self.geometry = ContourGeometry(contour, np.arange(len(contour)), defects)

    def test_generate(self):
        candidates = FingerCandidateGenerator(HandDetectionConfig()).generate(
            self.geometry, self.palm, self.wrist, self.cluster)

        self.assertEqual(candidates.tip_indices, [5, 7, 2, 3])
        self.assertEqual(candidates.defect_indices, [6, 6, 4, 4])
        self.assertEqual([int(d[2]) for d in candidates.good_defects], [6, 4, 9])
        self.assertEqual(len(candidates), 4)

    def test_defects_on_wrist_arc_skipped(self):
        wrist = WristPair(
            left_ij=(80, 190), right_ij=(120, 190),
            left_xyz=to_xyz(80, 190), right_xyz=to_xyz(120, 190),
            left_index=0, right_index=13, direction=-1,
        )
        candidates = FingerCandidateGenerator(HandDetectionConfig()).generate(
            self.geometry, self.palm, wrist, self.cluster)
        self.assertEqual(len(candidates), 0)
        self.assertEqual(candidates.good_defects, [])


def make_finger(tip_ij, tip_xyz):
    return Finger(tip_ij=tip_ij, tip_xyz=np.asarray(tip_xyz), defect_ij=(0, 0),
                  defect_xyz=np.zeros(3), tip_index=0, defect_index=0)


class TestFingerFilter(unittest.TestCase):
    def setUp(self):
        self.cluster = cluster_from_mask(one_finger_mask())
        self.geometry = compute_contour_geometry(self.cluster.xyz_map, scaling_factor=1)
        self.palm = PalmCircle(center_ij=(100, 140), center_xyz=to_xyz(100, 140), radius=30.0)
        contour = self.geometry.contour
        self.tip = nearest_index(contour, (92, 30))
        self.defect = nearest_index(contour, (92, 100))
        self.candidates = FingerCandidates(tip_indices=[self.tip], defect_indices=[self.defect])

    def test_close_fingers_lower_one_dropped(self):
        high = make_finger((50, 100), (0.050, 0.100, 0.5))
        low = make_finger((52, 120), (0.053, 0.104, 0.5))
        other = make_finger((150, 100), (0.150, 0.100, 0.5))

        self.assertEqual(drop_close_fingers([low, high, other], 0.01), [high, other])

    def test_close_fingers_on_same_row_kept(self):
        a = make_finger((50, 100), (0.050, 0.100, 0.5))
        b = make_finger((55, 100), (0.055, 0.100, 0.5))
        self.assertEqual(drop_close_fingers([a, b], 0.01), [a, b])

    def test_curvature_at_square_corner(self):
        near, far = curvature_samples(self.geometry.contour, self.tip, 69)
        self.assertAlmostEqual(near, math.pi / 2, places=5)
        self.assertTrue(0.05 <= far <= 1.2)

    def test_accept_raised_finger(self):
        fingers = FingerFilter(HandDetectionConfig()).filter(
            self.geometry, self.candidates, self.palm, self.cluster)

        self.assertEqual(len(fingers), 1)
        self.assertEqual(fingers[0].tip_ij, (92, 30))
        self.assertTrue(0.06 <= fingers[0].length <= 0.075)

    def test_reject_too_long(self):
        fingers = FingerFilter(HandDetectionConfig(finger_len_max=0.05)).accept(
            self.geometry, self.candidates, self.palm, self.cluster)
        self.assertEqual(fingers, [])

    def test_reject_defect_too_close_along_contour(self):
        candidates = FingerCandidates(tip_indices=[self.tip], defect_indices=[(self.tip + 5) % len(self.geometry)])
        fingers = FingerFilter(HandDetectionConfig()).accept(self.geometry, candidates, self.palm, self.cluster)
        self.assertEqual(fingers, [])

    def test_reject_defect_far_below_palm(self):
        palm = PalmCircle(center_ij=(100, 40), center_xyz=to_xyz(100, 40), radius=10.0)
        fingers = FingerFilter(HandDetectionConfig()).accept(self.geometry, self.candidates, palm, self.cluster)
        self.assertEqual(fingers, [])


class TestSingleFinger(unittest.TestCase):
    def setUp(self):
        self.cluster = cluster_from_mask(one_finger_mask())
        self.geometry = compute_contour_geometry(self.cluster.xyz_map, scaling_factor=1)
        self.palm = PalmCircle(center_ij=(100, 140), center_xyz=to_xyz(100, 140), radius=30.0)
        self.far = nearest_index(self.geometry.contour, (107, 100))
        self.config = HandDetectionConfig(single_finger_skip_curvature=True)

    def test_farthest_hull_point_is_fingertip(self):
        k = SingleFingerDetector(self.config).farthest_hull_point(self.geometry, self.palm, self.cluster)
        self.assertEqual(self.geometry.hull_points[k][1], 30)

    def test_detect(self):
        finger = SingleFingerDetector(self.config).detect(
            self.geometry, self.palm, [np.array([0, 0, self.far, 0])], self.cluster)

        self.assertIsNotNone(finger)
        self.assertEqual(finger.tip_ij[1], 30)
        self.assertEqual(finger.defect_index, self.far)
        self.assertTrue(0.04 <= finger.length <= 0.11)

    def test_palm_center_replaces_near_defect(self):
        near = nearest_index(self.geometry.contour, (92, 60))
        finger = SingleFingerDetector(self.config).detect(
            self.geometry, self.palm, [np.array([0, 0, near, 0])], self.cluster)

        self.assertIsNotNone(finger)
        self.assertEqual(finger.defect_ij, (100, 140))
        self.assertEqual(finger.defect_index, -1)

    def test_no_good_defects(self):
        finger = SingleFingerDetector(self.config).detect(self.geometry, self.palm, [], self.cluster)
        self.assertIsNone(finger)

    def test_too_long(self):
        config = HandDetectionConfig(single_finger_skip_curvature=True, single_finger_len_max=0.05)
        finger = SingleFingerDetector(config).detect(
            self.geometry, self.palm, [np.array([0, 0, self.far, 0])], self.cluster)
        self.assertIsNone(finger)

    def test_curvature_checked_by_default(self):
        finger = SingleFingerDetector(HandDetectionConfig()).detect(
            self.geometry, self.palm, [np.array([0, 0, self.far, 0])], self.cluster)

        self.assertIsNotNone(finger)
        self.assertEqual(finger.tip_ij, (92, 30))


def spike_geometry():
    """Palm outline with a narrow tapering spike on top, tip at (100, 30)."""
    right = [(100 + j, 30 + 4 * j) for j in range(1, 16)]
    left = [(100 - j, 30 + 4 * j) for j in range(15, 0, -1)]
    contour = ([(100, 30)] + right +
               [(130, 90), (140, 90), (140, 120), (140, 150), (140, 180),
                (100, 180), (60, 180), (60, 150), (60, 120), (60, 90), (70, 90)] +
               left)
    return ContourGeometry(np.array(contour), np.array([0, 17, 20, 22, 25]), np.zeros((0, 4)))


class TestSingleFingerCurvature(unittest.TestCase):
    def setUp(self):
        self.cluster = cluster_from_mask(np.full((200, 200), 255, dtype=np.uint8))
        self.geometry = spike_geometry()
        self.palm = PalmCircle(center_ij=(100, 140), center_xyz=to_xyz(100, 140), radius=30.0)
        # base of the spike's right flank
        self.defects = [np.array([0, 0, 15, 0])]

    def test_sharp_tip_rejected_by_curvature(self):
        near, _ = curvature_samples(self.geometry.contour, 0, 15)
        self.assertAlmostEqual(near, 2 * math.atan(0.25))

        config = HandDetectionConfig()
        self.assertLess(near, config.finger_curve_near_min)
        self.assertIsNone(SingleFingerDetector(config).detect(
            self.geometry, self.palm, self.defects, self.cluster))

    def test_skip_curvature_accepts_sharp_tip(self):
        config = HandDetectionConfig(single_finger_skip_curvature=True)
        finger = SingleFingerDetector(config).detect(self.geometry, self.palm, self.defects, self.cluster)

        self.assertIsNotNone(finger)
        self.assertEqual(finger.tip_ij, (100, 30))
        self.assertEqual(finger.tip_index, 0)
        self.assertEqual(finger.defect_ij, (115, 90))
        self.assertEqual(finger.defect_index, 15)
        self.assertAlmostEqual(finger.length, math.hypot(15, 60) * 0.001, places=5)


if __name__ == '__main__':
    unittest.main()
