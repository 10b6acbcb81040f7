"""
YOLOX output decoding: tensor views, anchor-free box decode, greedy NMS and
label assembly.

Framework-agnostic: takes the raw output buffer as a NumPy array from any
inference runtime. OpenCV is only needed for `letterbox()`.
"""

from .types import (
    AspectMode,
    Candidate,
    ConfigurationError,
    Detection,
    ModelInput,
    NormalizedRect,
    ScaleDescriptor,
)
from .tensor_view import TensorView, split_scales
from .decoder import CandidateBatch, decode_candidates, make_scales
from .nms import NMSConfig, iou, nms
from .mapping import AspectMapper, ContentRegion, LetterboxMapper, content_region, letterbox
from .metadata import COCO_LABELS, load_labels
from .predictor import YoloxPredictor, assemble_detections
from .config import YoloxConfig, build_predictor, load_yolox_config

__all__ = [
    "AspectMode",
    "Candidate",
    "ConfigurationError",
    "Detection",
    "ModelInput",
    "NormalizedRect",
    "ScaleDescriptor",
    "TensorView",
    "split_scales",
    "CandidateBatch",
    "decode_candidates",
    "make_scales",
    "NMSConfig",
    "iou",
    "nms",
    "AspectMapper",
    "ContentRegion",
    "LetterboxMapper",
    "content_region",
    "letterbox",
    "COCO_LABELS",
    "load_labels",
    "YoloxPredictor",
    "assemble_detections",
    "YoloxConfig",
    "build_predictor",
    "load_yolox_config",
]
