from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .decoder import DEFAULT_STRIDES, make_scales
from .metadata import COCO_LABELS, load_labels
from .predictor import YoloxPredictor
from .types import AspectMode, ModelInput, ScaleDescriptor


@dataclass(frozen=True)
class YoloxConfig:
    input_width: int = 640
    input_height: int = 640
    min_score: float = 0.4
    max_iou: float = 0.5
    strides: Tuple[int, ...] = DEFAULT_STRIDES
    num_classes: int = 80
    aspect_mode: AspectMode = AspectMode.SCALE_TO_FIT
    # None uses the COCO label table.
    labels_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.input_width <= 0 or self.input_height <= 0:
            raise ValueError("input_width and input_height must be > 0")
        if not 0.0 <= self.min_score <= 1.0:
            raise ValueError("min_score must be in [0, 1]")
        if not 0.0 <= self.max_iou <= 1.0:
            raise ValueError("max_iou must be in [0, 1]")
        if not self.strides:
            raise ValueError("strides must not be empty")
        for s in self.strides:
            if s <= 0:
                raise ValueError("strides must be > 0")
            if self.input_width % s or self.input_height % s:
                raise ValueError(f"input size {self.input_width}x{self.input_height} is not a multiple of stride {s}")
        if self.num_classes <= 0:
            raise ValueError("num_classes must be > 0")

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.input_width, self.input_height

    @property
    def scales(self) -> List[ScaleDescriptor]:
        return make_scales(self.input_width, self.input_height, self.strides)

    @property
    def model_input(self) -> ModelInput:
        return ModelInput(self.input_width, self.input_height, self.aspect_mode)


def _require_int(payload: Dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def load_yolox_config(path: Path) -> YoloxConfig:
    """
    Load a decoder config from JSON. Every key is optional:

        {
          "input_width": 640,
          "input_height": 640,
          "min_score": 0.4,
          "max_iou": 0.5,
          "strides": [8, 16, 32],
          "num_classes": 80,
          "aspect_mode": "scale_to_fit",
          "labels_path": "labels.txt"
        }

    A relative `labels_path` is resolved against the config file's directory.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YOLOX config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid YOLOX config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("YOLOX config must be a JSON object")

    allowed = {
        "input_width",
        "input_height",
        "min_score",
        "max_iou",
        "strides",
        "num_classes",
        "aspect_mode",
        "labels_path",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown YOLOX config keys: {unknown}")

    strides = payload.get("strides", list(DEFAULT_STRIDES))
    if not isinstance(strides, list) or any(isinstance(s, bool) or not isinstance(s, int) for s in strides):
        raise ValueError("strides must be a list of integers")

    aspect_raw = payload.get("aspect_mode", AspectMode.SCALE_TO_FIT.value)
    try:
        aspect_mode = AspectMode(aspect_raw)
    except ValueError as exc:
        raise ValueError(f"aspect_mode must be one of {[m.value for m in AspectMode]}") from exc

    labels_path: Optional[Path] = None
    labels_raw = payload.get("labels_path")
    if labels_raw is not None:
        if not isinstance(labels_raw, str):
            raise ValueError("labels_path must be a string if provided")
        labels_path = Path(labels_raw)
        if not labels_path.is_absolute():
            labels_path = (path.parent / labels_path).resolve()

    return YoloxConfig(
        input_width=_require_int(payload, "input_width", 640),
        input_height=_require_int(payload, "input_height", 640),
        min_score=_require_number(payload, "min_score", 0.4),
        max_iou=_require_number(payload, "max_iou", 0.5),
        strides=tuple(strides),
        num_classes=_require_int(payload, "num_classes", 80),
        aspect_mode=aspect_mode,
        labels_path=labels_path,
    )


def build_predictor(cfg: YoloxConfig) -> YoloxPredictor:
    labels = load_labels(cfg.labels_path) if cfg.labels_path is not None else COCO_LABELS
    return YoloxPredictor(labels, min_score=cfg.min_score, max_iou=cfg.max_iou, num_classes=cfg.num_classes)
