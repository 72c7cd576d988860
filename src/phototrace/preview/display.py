"""Display transform for linear radiance images.

Rendered images hold unbounded linear radiance. Before they can be stored in
8 bits they are clamped to [0, 1] and encoded with a gamma curve; gamma 2.2
is the one the renderer uses for its PNG output.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Clamp to [0, 1] and encode with out = in ** (1 / gamma).

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")
    image = np.clip(image, 0.0, 1.0)
    if gamma == 1.0:
        return image.astype(np.float32)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Replace NaN/Inf, then clamp and gamma encode a linear image to [0, 1].

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Gamma correction value (default 2.2).
    """
    result = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0, posinf=1.0, neginf=0.0)
    return apply_gamma(result, gamma)
