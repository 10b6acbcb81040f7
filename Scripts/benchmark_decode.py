from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import List

import numpy as np

from yolox_kit import COCO_LABELS, YoloxPredictor, make_scales
from yolox_kit.nms import NMSConfig, nms


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)),
        p50_ms=_percentile(ms_sorted, 50.0),
        p90_ms=_percentile(ms_sorted, 90.0),
        p95_ms=_percentile(ms_sorted, 95.0),
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _synthetic_tensor(imgsz: int, hit_rate: float, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    cells = sum(s.cells for s in make_scales(imgsz, imgsz))
    tensor = np.empty((1, cells, 85), dtype=np.float32)
    tensor[..., 0:2] = rng.uniform(0.0, 1.0, size=(1, cells, 2))
    tensor[..., 2:4] = rng.normal(0.0, 0.5, size=(1, cells, 2))
    tensor[..., 4] = np.where(rng.uniform(size=(1, cells)) < hit_rate, rng.uniform(0.4, 1.0, size=(1, cells)), 0.01)
    tensor[..., 5:] = rng.uniform(0.0, 1.0, size=(1, cells, 80))
    return tensor


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark YOLOX decode + NMS latency on a synthetic tensor.")
    parser.add_argument("--imgsz", type=int, default=640, help="Square model input size (e.g., 640).")
    parser.add_argument("--min-score", type=float, default=0.4, help="Objectness threshold.")
    parser.add_argument("--max-iou", type=float, default=0.5, help="IoU threshold for NMS.")
    parser.add_argument("--hit-rate", type=float, default=0.01, help="Fraction of cells above the threshold.")
    parser.add_argument("--warmup", type=int, default=10, help="Iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=200, help="Recorded iterations.")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed for the synthetic tensor.")
    args = parser.parse_args()

    if args.imgsz < 32 or args.imgsz % 32:
        raise ValueError("--imgsz must be a positive multiple of 32")
    if not 0.0 <= args.hit_rate <= 1.0:
        raise ValueError("--hit-rate must be in [0, 1]")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    predictor = YoloxPredictor(COCO_LABELS, min_score=args.min_score, max_iou=args.max_iou)
    tensor = _synthetic_tensor(args.imgsz, args.hit_rate, args.seed)
    input_size = (args.imgsz, args.imgsz)
    nms_cfg = NMSConfig(iou_threshold=args.max_iou)

    t_decode: List[float] = []
    t_nms: List[float] = []
    n_candidates = 0
    n_kept = 0
    for it in range(args.warmup + args.repeats):
        t0 = time.perf_counter()
        batch = predictor.candidates(tensor, input_size)
        t1 = time.perf_counter()
        keep = nms(batch.boxes_xyxy(), batch.scores, nms_cfg)
        t2 = time.perf_counter()

        if it < args.warmup:
            continue
        t_decode.append(t1 - t0)
        t_nms.append(t2 - t1)
        n_candidates = len(batch)
        n_kept = int(keep.size)

    print(_format_summary("decode", _summarize_ms(t_decode)))
    print(_format_summary("nms", _summarize_ms(t_nms)))
    print(f"candidates={n_candidates} kept={n_kept} imgsz={args.imgsz}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
