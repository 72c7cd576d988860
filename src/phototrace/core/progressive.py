"""Progressive renderer for iterative sample accumulation.

This module wraps the core integrator with a small stateful interface:
- Progressive rendering that refines over time
- Batch rendering (multiple SPP per progress report)
- Progress callbacks or a generator for UI updates
- An optional wall-clock budget, checked once per sample pass

Stopping early never corrupts the image: the film divides by the number of
samples actually taken.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.core.progressive import ProgressiveRenderer
    >>> from phototrace.scene.showcase import create_showcase_scene
    >>>
    >>> scene, camera = create_showcase_scene()
    >>> scene.build()
    >>> renderer = ProgressiveRenderer(camera)
    >>> renderer.render(64, batch_size=8, time_budget=30.0)
    >>> renderer.save_image("showcase.png")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import numpy.typing as npt

from phototrace.camera.thin_lens import ThinLensCamera, setup_camera
from phototrace.core.integrator import (
    clear_render_target,
    get_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)
from phototrace.preview.export import image_to_uint8, save_png

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """A renderer that accumulates samples into the global film over time.

    Attributes:
        camera: The camera being rendered; its samples_per_pixel is the
            default sample target.
    """

    def __init__(self, camera: ThinLensCamera) -> None:
        """Upload the camera and allocate a cleared film of its size."""
        self.camera = camera
        setup_camera(camera)
        setup_render_target(camera.width, camera.height)

    @property
    def width(self) -> int:
        return self.camera.width

    @property
    def height(self) -> int:
        return self.camera.height

    @property
    def sample_count(self) -> int:
        """Get the current number of accumulated samples per pixel."""
        return get_total_samples()

    def reset(self) -> None:
        """Clear the film, keeping the camera."""
        clear_render_target()

    def set_camera(self, camera: ThinLensCamera) -> None:
        """Switch to another camera and clear the film."""
        self.camera = camera
        setup_camera(camera)
        setup_render_target(camera.width, camera.height)

    def render_progressive(
        self,
        num_samples: int | None = None,
        batch_size: int = 1,
        time_budget: float | None = None,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples, yielding progress after each batch.

        Args:
            num_samples: Samples per pixel to add. Defaults to the camera's
                samples_per_pixel.
            batch_size: Number of passes between yields.
            time_budget: Optional wall-clock limit in seconds. Rendering stops
                after the first pass that finishes past the limit.

        Yields:
            Tuple of (current_total_samples, target_total_samples).

        Raises:
            ValueError: If batch_size is less than one or time_budget is
                negative.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if time_budget is not None and time_budget < 0.0:
            raise ValueError(f"time_budget must be non-negative, got {time_budget}")
        if num_samples is None:
            num_samples = self.camera.samples_per_pixel
        if num_samples <= 0:
            return

        target_samples = self.sample_count + num_samples
        deadline = None if time_budget is None else time.perf_counter() + time_budget

        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            out_of_time = False
            for _ in range(batch):
                render_image(1)
                remaining -= 1
                if deadline is not None and time.perf_counter() >= deadline:
                    out_of_time = True
                    break
            yield (self.sample_count, target_samples)
            if out_of_time and remaining > 0:
                logger.info(
                    "Time budget of %.2fs exhausted after %d of %d samples",
                    time_budget,
                    self.sample_count,
                    target_samples,
                )
                break

    def render(
        self,
        num_samples: int | None = None,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
        time_budget: float | None = None,
    ) -> int:
        """Render samples with an optional progress callback.

        Args:
            num_samples: Samples per pixel to add. Defaults to the camera's
                samples_per_pixel.
            batch_size: Number of passes before each callback.
            callback: Called after each batch with
                (current_total_samples, target_total_samples).
            time_budget: Optional wall-clock limit in seconds.

        Returns:
            The total number of samples per pixel in the film.

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} samples")
            >>> renderer.render(100, batch_size=10, callback=progress)
        """
        for current, target in self.render_progressive(num_samples, batch_size, time_budget):
            if callback is not None:
                callback(current, target)
        return self.sample_count

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Mean linear radiance per pixel, shape (height, width, 3)."""
        return get_image_numpy()

    def get_image_uint8(self, gamma: float = 2.2) -> npt.NDArray[np.uint8]:
        """Gamma-encoded 8-bit image, shape (height, width, 3)."""
        return image_to_uint8(self.get_image_numpy(), gamma=gamma)

    def save_image(self, filepath: str | Path, gamma: float = 2.2) -> None:
        """Save the current image as PNG."""
        save_png(self.get_image_uint8(gamma=gamma), filepath)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
