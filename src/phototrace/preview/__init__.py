"""Preview module for image output.

Components:
    display: Clamping and gamma encoding of linear images
    export: 8-bit quantization, PNG read/write and image comparison

These modules only use NumPy and Pillow, so they can be imported before
Taichi is initialized.
"""

from phototrace.preview.display import (
    apply_gamma,
    process_image_for_display,
)
from phototrace.preview.export import (
    compute_rmse,
    image_to_uint8,
    load_png,
    save_png,
    save_png_from_array,
)

__all__ = [
    # Display transforms
    "apply_gamma",
    "process_image_for_display",
    # Export functions
    "compute_rmse",
    "image_to_uint8",
    "load_png",
    "save_png",
    "save_png_from_array",
]
