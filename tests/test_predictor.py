import itertools
import unittest

import numpy as np

from yolox_kit.decoder import CandidateBatch, make_scales
from yolox_kit.metadata import COCO_LABELS
from yolox_kit.nms import iou
from yolox_kit.predictor import YoloxPredictor, assemble_detections
from yolox_kit.types import AspectMode, ConfigurationError, ModelInput, NormalizedRect, ScaleDescriptor

LABELS = [f"class_{i}" for i in range(80)]


def _random_tensor(seed: int, input_size=(64, 64)) -> np.ndarray:
    rng = np.random.default_rng(seed)
    cells = sum(s.cells for s in make_scales(*input_size))
    tensor = np.empty((1, cells, 85), dtype=np.float32)
    tensor[..., 0:2] = rng.uniform(0.0, 1.0, size=(1, cells, 2))
    tensor[..., 2:4] = rng.normal(0.5, 0.5, size=(1, cells, 2))
    tensor[..., 4] = rng.uniform(0.0, 1.0, size=(1, cells))
    tensor[..., 5:] = rng.uniform(0.0, 1.0, size=(1, cells, 80))
    return tensor


class TestYoloxPredictorScenarios(unittest.TestCase):
    def test_single_detection(self) -> None:
        tensor = np.zeros((4, 85), dtype=np.float32)
        tensor[0, :5] = [0.5, 0.5, 0.0, 0.0, 0.9]
        tensor[0, 5 + 3] = 4.0

        predictor = YoloxPredictor(LABELS)
        dets = predictor.predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])
        self.assertEqual(len(dets), 1)
        det = dets[0]
        self.assertEqual(det.label, "class_3")
        self.assertEqual(det.class_id, 3)
        self.assertAlmostEqual(det.score, 0.9, places=6)
        self.assertEqual(det.rect, NormalizedRect(0.0, 0.5, 0.5, 0.5))

    def test_suppression_is_class_agnostic(self) -> None:
        tensor = np.zeros((4, 85), dtype=np.float32)
        # cell (0, 0): rect x in [0, 0.5]
        tensor[0, :5] = [0.5, 0.5, 0.0, 0.0, 0.95]
        tensor[0, 5 + 1] = 1.0
        # cell (0, 1) pulled left: rect x in [0.05, 0.55], IoU ~0.82
        tensor[1, :5] = [-0.4, 0.5, 0.0, 0.0, 0.9]
        tensor[1, 5 + 2] = 1.0

        predictor = YoloxPredictor(LABELS, max_iou=0.5)
        dets = predictor.predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])
        self.assertEqual([d.label for d in dets], ["class_1"])
        self.assertAlmostEqual(dets[0].score, 0.95, places=6)

        loose = YoloxPredictor(LABELS, max_iou=0.9)
        dets = loose.predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])
        self.assertEqual([d.label for d in dets], ["class_1", "class_2"])

    def test_default_scales_and_batch_axis(self) -> None:
        cells = sum(s.cells for s in make_scales(64, 32))
        tensor = np.zeros((1, cells, 85), dtype=np.float32)
        # first cell of the stride-32 grid (last 1 * 2 cells)
        tensor[0, cells - 2, :5] = [0.5, 0.5, 0.0, 0.0, 0.8]
        tensor[0, cells - 2, 5] = 1.0

        dets = YoloxPredictor(COCO_LABELS).predict(tensor, (64, 32))
        self.assertEqual(len(dets), 1)
        self.assertEqual(dets[0].label, "person")
        self.assertAlmostEqual(dets[0].rect.width, 0.5)
        self.assertAlmostEqual(dets[0].rect.height, 1.0)

    def test_all_zero_tensor_is_empty(self) -> None:
        cells = sum(s.cells for s in make_scales(64, 64))
        tensor = np.zeros((cells, 85), dtype=np.float32)
        self.assertEqual(YoloxPredictor(LABELS, min_score=0.01).predict(tensor, (64, 64)), [])

    def test_mapper_applied_before_nms(self) -> None:
        tensor = np.zeros((4, 85), dtype=np.float32)
        tensor[0, :5] = [0.5, 0.5, 0.0, 0.0, 0.9]
        tensor[0, 5] = 1.0
        seen = []

        def double(rect: NormalizedRect, model_input: ModelInput) -> NormalizedRect:
            seen.append(model_input)
            return NormalizedRect(rect.x * 2, rect.y * 2, rect.width * 2, rect.height * 2)

        dets = YoloxPredictor(LABELS).predict(
            tensor,
            (32, 32),
            scales=[ScaleDescriptor(16, 2, 2)],
            mapper=double,
            aspect_mode=AspectMode.FILL,
        )
        self.assertEqual(seen, [ModelInput(32, 32, AspectMode.FILL)])
        self.assertEqual(dets[0].rect, NormalizedRect(0.0, 1.0, 1.0, 1.0))


class TestAssembleDetections(unittest.TestCase):
    def test_follows_keep_order(self) -> None:
        batch = CandidateBatch(
            boxes=np.array([[0.0, 0.0, 0.1, 0.1], [0.2, 0.2, 0.1, 0.1], [0.5, 0.5, 0.2, 0.2]]),
            scores=np.array([0.5, 0.6, 0.95]),
            class_ids=np.array([2, 0, 5]),
        )
        dets = assemble_detections(batch, np.array([2, 0]), LABELS)
        self.assertEqual([d.label for d in dets], ["class_5", "class_2"])
        self.assertEqual([d.class_id for d in dets], [5, 2])
        self.assertEqual([d.score for d in dets], [0.95, 0.5])
        self.assertEqual(dets[0].rect, NormalizedRect(0.5, 0.5, 0.2, 0.2))

    def test_nothing_kept(self) -> None:
        self.assertEqual(assemble_detections(CandidateBatch.empty(), np.array([], dtype=np.int64), LABELS), [])


class TestYoloxPredictorProperties(unittest.TestCase):
    def test_scores_respect_min_score(self) -> None:
        for seed in range(5):
            dets = YoloxPredictor(LABELS, min_score=0.6).predict(_random_tensor(seed), (64, 64))
            self.assertTrue(dets)
            self.assertTrue(all(d.score >= 0.6 for d in dets))

    def test_no_pair_overlaps_beyond_max_iou(self) -> None:
        for seed in range(5):
            dets = YoloxPredictor(LABELS, min_score=0.2, max_iou=0.3).predict(_random_tensor(seed), (64, 64))
            for a, b in itertools.combinations(dets, 2):
                self.assertLessEqual(iou(a.rect, b.rect), 0.3 + 1e-9)

    def test_output_sorted_by_score(self) -> None:
        dets = YoloxPredictor(LABELS, min_score=0.2).predict(_random_tensor(7), (64, 64))
        scores = [d.score for d in dets]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_deterministic(self) -> None:
        tensor = _random_tensor(3)
        predictor = YoloxPredictor(LABELS, min_score=0.3)
        self.assertEqual(predictor.predict(tensor, (64, 64)), predictor.predict(tensor.copy(), (64, 64)))

    def test_raising_min_score_only_removes(self) -> None:
        tensor = _random_tensor(11)
        low = set(YoloxPredictor(LABELS, min_score=0.3).predict(tensor, (64, 64)))
        high = set(YoloxPredictor(LABELS, min_score=0.7).predict(tensor, (64, 64)))
        self.assertTrue(high.issubset(low))

    def test_raising_max_iou_only_adds(self) -> None:
        # Four separated pairs on an 8x8 stride-16 grid. Each weaker box overlaps only
        # its own stronger neighbour, at IoU 0.2, 0.4, 0.6 and 0.8.
        tensor = np.zeros((64, 85), dtype=np.float32)
        for row, target in zip((0, 2, 4, 6), (0.2, 0.4, 0.6, 0.8)):
            shift = (1.0 - target) / (1.0 + target)
            tensor[row * 8, :5] = [0.5, 0.5, 0.0, 0.0, 0.9]
            tensor[row * 8, 5] = 1.0
            tensor[row * 8 + 1, :5] = [shift - 0.5, 0.5, 0.0, 0.0, 0.8]
            tensor[row * 8 + 1, 6] = 1.0

        scales = [ScaleDescriptor(16, 8, 8)]
        previous: set = set()
        for max_iou, expected in ((0.1, 4), (0.3, 5), (0.5, 6), (0.7, 7), (0.9, 8)):
            dets = set(YoloxPredictor(LABELS, max_iou=max_iou).predict(tensor, (128, 128), scales=scales))
            self.assertEqual(len(dets), expected)
            self.assertTrue(previous.issubset(dets))
            previous = dets

    def test_input_not_modified(self) -> None:
        tensor = _random_tensor(5)
        before = tensor.copy()
        YoloxPredictor(LABELS).predict(tensor, (64, 64))
        self.assertTrue(np.array_equal(tensor, before))


class TestYoloxPredictorErrors(unittest.TestCase):
    def test_label_count_mismatch(self) -> None:
        with self.assertRaises(ConfigurationError):
            YoloxPredictor(LABELS[:79])

    def test_threshold_range(self) -> None:
        with self.assertRaises(ValueError):
            YoloxPredictor(LABELS, min_score=1.5)
        with self.assertRaises(ValueError):
            YoloxPredictor(LABELS, max_iou=-0.1)

    def test_tensor_length_mismatch(self) -> None:
        tensor = np.zeros((5, 85), dtype=np.float32)
        with self.assertRaises(ConfigurationError):
            YoloxPredictor(LABELS).predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])

    def test_channel_mismatch(self) -> None:
        tensor = np.zeros((4, 84), dtype=np.float32)
        with self.assertRaises(ConfigurationError):
            YoloxPredictor(LABELS).predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])

    def test_batch_rejected(self) -> None:
        tensor = np.zeros((2, 4, 85), dtype=np.float32)
        with self.assertRaises(ValueError):
            YoloxPredictor(LABELS).predict(tensor, (32, 32), scales=[ScaleDescriptor(16, 2, 2)])

    def test_class_index_outside_label_table(self) -> None:
        batch = CandidateBatch(
            boxes=np.array([[0.1, 0.2, 0.3, 0.4]]),
            scores=np.array([0.9]),
            class_ids=np.array([80]),
        )
        with self.assertRaises(ConfigurationError):
            assemble_detections(batch, np.array([0]), LABELS)

    def test_custom_class_count(self) -> None:
        tensor = np.zeros((1, 7), dtype=np.float32)
        tensor[0, :5] = [0.5, 0.5, 0.0, 0.0, 0.9]
        tensor[0, 6] = 1.0
        predictor = YoloxPredictor(["cat", "dog"], num_classes=2)
        dets = predictor.predict(tensor, (16, 16), scales=[ScaleDescriptor(16, 1, 1)])
        self.assertEqual([d.label for d in dets], ["dog"])


if __name__ == "__main__":
    unittest.main()
