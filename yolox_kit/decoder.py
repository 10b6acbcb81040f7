from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Sequence, Tuple

import numpy as np

from .tensor_view import TensorView
from .types import Candidate, ModelInput, NormalizedRect, ScaleDescriptor

logger = logging.getLogger(__name__)


DEFAULT_STRIDES: Tuple[int, ...] = (8, 16, 32)
# [tx, ty, tw, th, objectness, class logits...]
BOX_CHANNELS = 4
SCORE_CHANNEL = 4
CLASS_OFFSET = 5

RectMapper = Callable[[NormalizedRect, ModelInput], NormalizedRect]


def make_scales(
    input_width: int,
    input_height: int,
    strides: Sequence[int] = DEFAULT_STRIDES,
) -> List[ScaleDescriptor]:
    """
    Scale descriptors for a model input size; grids are input size // stride.
    """

    if input_width <= 0 or input_height <= 0:
        raise ValueError(f"Input size must be positive, got {input_width}x{input_height}")
    return [
        ScaleDescriptor(stride=int(s), grid_height=input_height // int(s), grid_width=input_width // int(s))
        for s in strides
    ]


@dataclass
class CandidateBatch:
    """
    Candidates pooled over all scales, in decode order.

    boxes: (K, 4) as [x, y, w, h] normalized, bottom-left origin
    scores: (K,) objectness scores
    class_ids: (K,) argmax class index
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray

    @classmethod
    def empty(cls) -> "CandidateBatch":
        return cls(
            boxes=np.empty((0, 4), dtype=np.float64),
            scores=np.empty((0,), dtype=np.float64),
            class_ids=np.empty((0,), dtype=np.int64),
        )

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def __iter__(self) -> Iterator[Candidate]:
        for (x, y, w, h), score, cls_id in zip(self.boxes, self.scores, self.class_ids):
            yield Candidate(
                rect=NormalizedRect(float(x), float(y), float(w), float(h)),
                class_id=int(cls_id),
                score=float(score),
            )

    def boxes_xyxy(self) -> np.ndarray:
        out = self.boxes.copy()
        out[:, 2] = self.boxes[:, 0] + self.boxes[:, 2]
        out[:, 3] = self.boxes[:, 1] + self.boxes[:, 3]
        return out

    def map_rects(self, mapper: RectMapper, model_input: ModelInput) -> "CandidateBatch":
        """
        Pass every rect through `mapper` once and return a new batch.
        """

        mapped = np.empty_like(self.boxes)
        for k, (x, y, w, h) in enumerate(self.boxes):
            rect = mapper(NormalizedRect(float(x), float(y), float(w), float(h)), model_input)
            mapped[k] = rect.as_xywh()
        return CandidateBatch(boxes=mapped, scores=self.scores.copy(), class_ids=self.class_ids.copy())


def _decode_view(
    view: TensorView,
    stride: int,
    input_size: Tuple[int, int],
    min_score: float,
    num_classes: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    grid = view.array
    width, height = input_size

    # Objectness gate first; class argmax only runs on surviving cells.
    scores = grid[:, :, SCORE_CHANNEL].astype(np.float64)
    rows, cols = np.nonzero(scores >= min_score)
    if rows.size == 0:
        return np.empty((0, 4)), np.empty((0,)), np.empty((0,), dtype=np.int64)

    cells = grid[rows, cols].astype(np.float64)  # (K, channels)
    # np.argmax returns the first maximum, so ties go to the lowest class index.
    class_ids = np.argmax(cells[:, CLASS_OFFSET : CLASS_OFFSET + num_classes], axis=1).astype(np.int64)

    tx, ty, tw, th = (cells[:, c] for c in range(BOX_CHANNELS))
    cx = (cols + tx) * stride / width
    cy = 1.0 - (rows + ty) * stride / height
    w = np.exp(tw) * stride / width
    h = np.exp(th) * stride / height
    boxes = np.stack([cx - w / 2, cy - h / 2, w, h], axis=1)

    return boxes, scores[rows, cols], class_ids


def decode_candidates(
    views: Sequence[TensorView],
    scales: Sequence[ScaleDescriptor],
    input_size: Tuple[int, int],
    min_score: float = 0.4,
    num_classes: int = 80,
) -> CandidateBatch:
    """
    Decode YOLOX anchor-free grid outputs into candidate boxes.

    Args:
        views: one (grid_h, grid_w, 5 + num_classes) view per scale
        scales: descriptors matching `views` one to one
        input_size: (width, height) of the model input in pixels
        min_score: cells with objectness below this are skipped
        num_classes: number of class logits following the objectness channel
    """

    if len(views) != len(scales):
        raise ValueError(f"Got {len(views)} views for {len(scales)} scales")
    if input_size[0] <= 0 or input_size[1] <= 0:
        raise ValueError(f"Input size must be positive, got {input_size}")

    all_boxes: List[np.ndarray] = []
    all_scores: List[np.ndarray] = []
    all_ids: List[np.ndarray] = []
    for view, scale in zip(views, scales):
        if view.shape[2] < CLASS_OFFSET + num_classes:
            raise ValueError(
                f"View has {view.shape[2]} channels, need {CLASS_OFFSET + num_classes} for {num_classes} classes"
            )
        boxes, scores, class_ids = _decode_view(view, scale.stride, input_size, min_score, num_classes)
        logger.debug("stride %d: %d candidates above %.3f", scale.stride, scores.shape[0], min_score)
        all_boxes.append(boxes)
        all_scores.append(scores)
        all_ids.append(class_ids)

    if not all_boxes:
        return CandidateBatch.empty()

    return CandidateBatch(
        boxes=np.concatenate(all_boxes, axis=0).reshape(-1, 4),
        scores=np.concatenate(all_scores, axis=0),
        class_ids=np.concatenate(all_ids, axis=0).astype(np.int64),
    )
