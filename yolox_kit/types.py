from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ConfigurationError(ValueError):
    """
    Raised when the label table, scale layout or tensor buffer disagree with
    each other. This is a caller bug, never a per-frame condition.
    """


@dataclass(frozen=True)
class NormalizedRect:
    """
    Axis-aligned rect in normalized coordinates, (0, 0) bottom-left and
    (1, 1) top-right.
    """

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "NormalizedRect":
        return cls(x=float(x1), y=float(y1), width=float(x2 - x1), height=float(y2 - y1))

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class ScaleDescriptor:
    stride: int
    grid_height: int
    grid_width: int

    def __post_init__(self) -> None:
        if self.stride <= 0:
            raise ValueError("stride must be > 0")
        if self.grid_height < 0 or self.grid_width < 0:
            raise ValueError("grid dimensions must be >= 0")

    @property
    def cells(self) -> int:
        return self.grid_height * self.grid_width

    def element_count(self, channels: int) -> int:
        return self.cells * channels


class AspectMode(str, Enum):
    # Image is scaled to fit inside the model input and padded (letterbox).
    SCALE_TO_FIT = "scale_to_fit"
    # Image is scaled to cover the model input and centre-cropped.
    ASPECT_FILL = "aspect_fill"
    # Image is stretched to the model input.
    FILL = "fill"


@dataclass(frozen=True)
class ModelInput:
    """
    Declared model input: pixel size and how images are fitted into it.
    """

    width: int
    height: int
    aspect_mode: AspectMode = AspectMode.SCALE_TO_FIT

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Model input size must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class Candidate:
    rect: NormalizedRect
    class_id: int
    score: float


@dataclass(frozen=True)
class Detection:
    """
    Public detection result: normalized rect, class label and score.
    """

    rect: NormalizedRect
    label: str
    score: float
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.rect.as_xyxy()
