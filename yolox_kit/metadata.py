from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

from .types import ConfigurationError


COCO_LABELS: List[str] = [
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog",
    "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella",
    "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket", "bottle",
    "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch", "potted plant",
    "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote", "keyboard", "cell phone",
    "microwave", "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase", "scissors",
    "teddy bear", "hair drier", "toothbrush",
]


def _parse_names_mapping(lines: List[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right
    return names


def load_labels(path: Union[str, Path]) -> List[str]:
    """
    Load an ordered label table.

    Two formats are accepted. The lightweight metadata format:

        names:
          0: person
          1: bicycle
          ...

    or a plain text file with one label per line (blank lines and `#` comments
    skipped). The metadata format is used whenever a `names:` line is present.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Label file not found: {p}")
    lines = p.read_text(encoding="utf-8").splitlines()

    if any(line.strip() == "names:" for line in lines):
        names = _parse_names_mapping(lines)
        if not names:
            raise ConfigurationError(f"No labels found under `names:` in {p}")
        missing = sorted(set(range(len(names))) - set(names))
        if missing:
            raise ConfigurationError(f"Label ids are not contiguous from 0 in {p}; missing {missing[:5]}")
        return [names[i] for i in range(len(names))]

    labels = [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
    if not labels:
        raise ConfigurationError(f"Label file is empty: {p}")
    return labels
