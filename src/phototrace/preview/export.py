"""Image export utilities for rendered images.

Linear radiance is quantized to 8 bits as floor(clamp(v, 0, 1) ** (1 / 2.2) * 255)
and written as an RGB PNG with Pillow.

Example:
    >>> from phototrace.preview.export import image_to_uint8, save_png
    >>> from phototrace.core.integrator import get_image_numpy
    >>> save_png(image_to_uint8(get_image_numpy()), "output.png")
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from phototrace.preview.display import process_image_for_display

logger = logging.getLogger(__name__)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to 8-bit channel values.

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Gamma correction value (default 2.2).

    Returns:
        Array of shape (H, W, 3) with dtype uint8.
    """
    processed = process_image_for_display(image, gamma=gamma)
    # Truncation of values in [0, 255] is floor
    return (processed * 255.0).astype(np.uint8)


def save_png(pixels: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Write an 8-bit RGB image as PNG.

    Raises:
        ValueError: If the array is not (H, W, 3) uint8.
    """
    if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected (H, W, 3) uint8 pixels, got {pixels.shape} {pixels.dtype}")
    PILImage.fromarray(pixels).save(filepath, format="PNG")
    logger.info("Wrote %dx%d image to %s", pixels.shape[1], pixels.shape[0], filepath)


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    gamma: float = 2.2,
) -> None:
    """Quantize a linear float image and write it as PNG."""
    save_png(image_to_uint8(image, gamma=gamma), filepath)


def load_png(filepath: str | Path) -> npt.NDArray[np.uint8]:
    """Read an image file as an (H, W, 3) uint8 array."""
    with PILImage.open(filepath) as img:
        return np.asarray(img.convert("RGB"), dtype=np.uint8)


def compute_rmse(
    image_a: npt.NDArray[np.floating | np.integer],
    image_b: npt.NDArray[np.floating | np.integer],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
