from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np

from yolox_kit import (
    AspectMapper,
    AspectMode,
    YoloxConfig,
    build_predictor,
    load_yolox_config,
)

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> YoloxConfig:
    base = load_yolox_config(Path(args.config)) if args.config else YoloxConfig()
    return YoloxConfig(
        input_width=int(args.imgsz) if args.imgsz else base.input_width,
        input_height=int(args.imgsz) if args.imgsz else base.input_height,
        min_score=float(args.min_score) if args.min_score is not None else base.min_score,
        max_iou=float(args.max_iou) if args.max_iou is not None else base.max_iou,
        strides=base.strides,
        num_classes=base.num_classes,
        aspect_mode=AspectMode(args.aspect_mode) if args.aspect_mode else base.aspect_mode,
        labels_path=Path(args.labels) if args.labels else base.labels_path,
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Decode a saved YOLOX output tensor (.npy) and print detections as JSON lines."
    )
    parser.add_argument("tensor", help="Path to a .npy file holding the raw model output for one image.")
    parser.add_argument("--config", default=None, help="Path to a YOLOX decoder config (.json).")
    parser.add_argument("--imgsz", type=int, default=None, help="Square model input size (overrides config).")
    parser.add_argument("--min-score", type=float, default=None, help="Objectness threshold (overrides config).")
    parser.add_argument("--max-iou", type=float, default=None, help="IoU threshold for NMS (overrides config).")
    parser.add_argument("--labels", default=None, help="Label file (overrides config; default COCO).")
    parser.add_argument(
        "--aspect-mode",
        default=None,
        choices=[m.value for m in AspectMode],
        help="How source images were fitted into the model input.",
    )
    parser.add_argument(
        "--orig-size",
        type=int,
        nargs=2,
        default=None,
        metavar=("W", "H"),
        help="Source image size; maps rects back into source image space.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    tensor_path = Path(args.tensor)
    if not tensor_path.exists():
        raise FileNotFoundError(str(tensor_path))

    cfg = _load_config(args)
    predictor = build_predictor(cfg)
    tensor = np.load(tensor_path)
    logger.debug("Loaded tensor %s with shape %s", tensor_path, tensor.shape)

    mapper: Optional[AspectMapper] = None
    if args.orig_size is not None:
        mapper = AspectMapper((args.orig_size[0], args.orig_size[1]))

    detections = predictor.predict(
        tensor,
        cfg.input_size,
        scales=cfg.scales,
        mapper=mapper,
        aspect_mode=cfg.aspect_mode,
    )
    for det in detections:
        x, y, w, h = det.rect.as_xywh()
        print(json.dumps({"label": det.label, "score": round(det.score, 6), "rect": [x, y, w, h]}))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
