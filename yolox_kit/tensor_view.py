from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from .types import ConfigurationError, ScaleDescriptor


class TensorView:
    """
    Read-only (rows, cols, channels) view over a contiguous region of a flat
    float buffer. Channels vary fastest:

        offset + (row * cols + col) * channels + channel
    """

    def __init__(self, buffer: np.ndarray, offset: int, shape: Tuple[int, int, int]):
        if buffer.ndim != 1:
            raise ValueError(f"TensorView expects a flat buffer, got shape {buffer.shape}")
        rows, cols, channels = (int(s) for s in shape)
        if rows < 0 or cols < 0 or channels <= 0:
            raise ValueError(f"Invalid view shape: {shape}")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        self.offset = int(offset)
        self.shape = (rows, cols, channels)
        self.element_count = rows * cols * channels
        if self.end > buffer.size:
            raise ConfigurationError(
                f"View [{self.offset}, {self.end}) exceeds buffer of {buffer.size} elements"
            )

        region = buffer[self.offset : self.end].reshape(self.shape)
        region.flags.writeable = False
        self._data = region

    @property
    def end(self) -> int:
        return self.offset + self.element_count

    @property
    def array(self) -> np.ndarray:
        return self._data

    def get(self, row: int, col: int, channel: int) -> float:
        rows, cols, channels = self.shape
        if not (0 <= row < rows and 0 <= col < cols and 0 <= channel < channels):
            raise IndexError(f"Index ({row}, {col}, {channel}) out of bounds for shape {self.shape}")
        return float(self._data[row, col, channel])

    def __repr__(self) -> str:
        return f"TensorView(offset={self.offset}, shape={self.shape})"


def split_scales(buffer: np.ndarray, scales: Sequence[ScaleDescriptor], channels: int = 85) -> List[TensorView]:
    """
    Build one view per scale over consecutive regions of `buffer`, in scale order.
    The buffer must hold exactly the scales' combined element count.
    """

    expected = sum(s.element_count(channels) for s in scales)
    if buffer.size != expected:
        raise ConfigurationError(
            f"Tensor has {buffer.size} elements but scales "
            f"{[(s.stride, s.grid_height, s.grid_width) for s in scales]} need {expected} "
            f"({channels} channels per cell)"
        )

    views: List[TensorView] = []
    offset = 0
    for s in scales:
        view = TensorView(buffer, offset, (s.grid_height, s.grid_width, channels))
        views.append(view)
        offset = view.end
    return views
