"""
Coordinate mappers: bring rects from model-input normalized space back into
the normalized space of the source image.

A mapper is any callable `(NormalizedRect, ModelInput) -> NormalizedRect`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .types import AspectMode, ModelInput, NormalizedRect


@dataclass(frozen=True)
class ContentRegion:
    """
    Where the source image sits inside the model input, in normalized
    bottom-left coordinates. Width/height above 1 mean the image was cropped.
    """

    left: float
    bottom: float
    width: float
    height: float

    def unmap(self, rect: NormalizedRect) -> NormalizedRect:
        return NormalizedRect(
            x=(rect.x - self.left) / self.width,
            y=(rect.y - self.bottom) / self.height,
            width=rect.width / self.width,
            height=rect.height / self.height,
        )


def _clip(rect: NormalizedRect) -> NormalizedRect:
    x1, y1, x2, y2 = (float(np.clip(v, 0.0, 1.0)) for v in rect.as_xyxy())
    return NormalizedRect.from_xyxy(x1, y1, x2, y2)


def content_region(image_size: Tuple[int, int], model_input: ModelInput) -> ContentRegion:
    """
    Region covered by an image of `image_size` (width, height) once fitted into
    the model input using its aspect mode. The fitted image is centred.
    """

    img_w, img_h = image_size
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Image size must be positive, got {image_size}")

    mode = AspectMode(model_input.aspect_mode)
    if mode is AspectMode.FILL:
        return ContentRegion(0.0, 0.0, 1.0, 1.0)

    sx = model_input.width / img_w
    sy = model_input.height / img_h
    r = min(sx, sy) if mode is AspectMode.SCALE_TO_FIT else max(sx, sy)
    kx = img_w * r / model_input.width
    ky = img_h * r / model_input.height
    return ContentRegion(left=(1.0 - kx) / 2, bottom=(1.0 - ky) / 2, width=kx, height=ky)


class AspectMapper:
    """
    Undo aspect fitting for a source image of known size.
    """

    def __init__(self, image_size: Tuple[int, int], clip: bool = False):
        self.image_size = (int(image_size[0]), int(image_size[1]))
        self.clip = clip

    def __call__(self, rect: NormalizedRect, model_input: ModelInput) -> NormalizedRect:
        out = content_region(self.image_size, model_input).unmap(rect)
        return _clip(out) if self.clip else out


class LetterboxMapper:
    """
    Undo the padding reported by `letterbox()`.

    Args:
        orig_size: (width, height) of the source image
        ratio: (w_ratio, h_ratio) scale applied on resize
        pad: (dw, dh) left/top padding in model-input pixels
    """

    def __init__(
        self,
        orig_size: Tuple[int, int],
        ratio: Tuple[float, float],
        pad: Tuple[float, float],
        clip: bool = False,
    ):
        self.orig_size = orig_size
        self.ratio = ratio
        self.pad = pad
        self.clip = clip

    def region(self, model_input: ModelInput) -> ContentRegion:
        orig_w, orig_h = self.orig_size
        rw, rh = self.ratio
        dw, dh = self.pad
        kx = orig_w * rw / model_input.width
        ky = orig_h * rh / model_input.height
        # Padding is measured from the top; output space starts at the bottom.
        bottom = 1.0 - dh / model_input.height - ky
        return ContentRegion(left=dw / model_input.width, bottom=bottom, width=kx, height=ky)

    def __call__(self, rect: NormalizedRect, model_input: ModelInput) -> NormalizedRect:
        out = self.region(model_input).unmap(rect)
        return _clip(out) if self.clip else out


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, int, int] = (114, 114, 114),
    scaleup: bool = True,
):
    """
    Resize and pad an image into the model input size, keeping aspect ratio.

    Returns:
        padded: resized + padded image
        ratio: (w_ratio, h_ratio)
        pad: (dw, dh) padding applied to width/height (left/top only; right/bottom equal)
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if isinstance(new_shape, int):
        new_shape = (new_shape, new_shape)

    h, w = image.shape[:2]
    new_w, new_h = new_shape

    r = min(new_w / w, new_h / h)
    if not scaleup:
        r = min(r, 1.0)

    resized_w, resized_h = int(round(w * r)), int(round(h * r))
    dw, dh = (new_w - resized_w) / 2, (new_h - resized_h) / 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, (r, r), (dw, dh)
