from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .decoder import CLASS_OFFSET, CandidateBatch, RectMapper, decode_candidates, make_scales
from .nms import NMSConfig, nms
from .tensor_view import split_scales
from .types import AspectMode, ConfigurationError, Detection, ModelInput, NormalizedRect, ScaleDescriptor

logger = logging.getLogger(__name__)


def assemble_detections(batch: CandidateBatch, keep: np.ndarray, labels: Sequence[str]) -> List[Detection]:
    """
    Join kept candidates with their labels, in `keep` order.
    """

    detections: List[Detection] = []
    for idx in keep:
        cls_id = int(batch.class_ids[idx])
        if not 0 <= cls_id < len(labels):
            raise ConfigurationError(f"Class index {cls_id} outside label table of {len(labels)} entries")
        x, y, w, h = batch.boxes[idx]
        detections.append(
            Detection(
                rect=NormalizedRect(float(x), float(y), float(w), float(h)),
                label=labels[cls_id],
                score=float(batch.scores[idx]),
                class_id=cls_id,
            )
        )
    return detections


class YoloxPredictor:
    """
    Decode a YOLOX output tensor into labelled, non-overlapping detections.

    The tensor is the model's single output, logically (cells, 5 + num_classes)
    with cells of every scale concatenated (stride 8 first). Each row holds
    [tx, ty, tw, th, objectness, class logits...].

    Holds only the label table and thresholds, so one instance can serve
    concurrent calls on distinct tensors.
    """

    def __init__(
        self,
        labels: Sequence[str],
        min_score: float = 0.4,
        max_iou: float = 0.5,
        num_classes: int = 80,
    ):
        if num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        if len(labels) != num_classes:
            raise ConfigurationError(f"Label table has {len(labels)} entries, model has {num_classes} classes")
        if not 0.0 <= min_score <= 1.0:
            raise ValueError(f"min_score must be in [0, 1], got {min_score}")
        if not 0.0 <= max_iou <= 1.0:
            raise ValueError(f"max_iou must be in [0, 1], got {max_iou}")

        self.labels: Tuple[str, ...] = tuple(labels)
        self.min_score = float(min_score)
        self.max_iou = float(max_iou)
        self.num_classes = int(num_classes)

    @property
    def channels(self) -> int:
        return CLASS_OFFSET + self.num_classes

    def _flatten(self, tensor: np.ndarray) -> np.ndarray:
        p = np.asarray(tensor)
        if p.ndim == 3 and p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        if p.ndim >= 2 and p.shape[-1] != self.channels:
            raise ConfigurationError(f"Expected {self.channels} channels per cell, got shape {p.shape}")
        return np.ascontiguousarray(p, dtype=np.float32).reshape(-1)

    def candidates(
        self,
        tensor: np.ndarray,
        input_size: Tuple[int, int],
        *,
        scales: Optional[Sequence[ScaleDescriptor]] = None,
    ) -> CandidateBatch:
        """
        Thresholded candidates in model-input space, before NMS.
        """

        width, height = int(input_size[0]), int(input_size[1])
        if scales is None:
            scales = make_scales(width, height)
        views = split_scales(self._flatten(tensor), scales, channels=self.channels)
        return decode_candidates(
            views,
            scales,
            (width, height),
            min_score=self.min_score,
            num_classes=self.num_classes,
        )

    def predict(
        self,
        tensor: np.ndarray,
        input_size: Tuple[int, int],
        *,
        scales: Optional[Sequence[ScaleDescriptor]] = None,
        mapper: Optional[RectMapper] = None,
        aspect_mode: AspectMode = AspectMode.SCALE_TO_FIT,
    ) -> List[Detection]:
        """
        Args:
            tensor: raw model output for one image
            input_size: (width, height) of the model input in pixels
            scales: scale layout; derived from `input_size` with strides 8/16/32 when omitted
            mapper: optional rect mapper applied to every candidate before NMS
            aspect_mode: declared aspect mode handed to `mapper`
        """

        batch = self.candidates(tensor, input_size, scales=scales)
        if len(batch) == 0:
            return []

        if mapper is not None:
            model_input = ModelInput(int(input_size[0]), int(input_size[1]), AspectMode(aspect_mode))
            batch = batch.map_rects(mapper, model_input)

        keep = nms(batch.boxes_xyxy(), batch.scores, NMSConfig(iou_threshold=self.max_iou))
        logger.debug("%d candidates, %d kept after NMS (max_iou=%.3f)", len(batch), keep.size, self.max_iou)
        return assemble_detections(batch, keep, self.labels)
