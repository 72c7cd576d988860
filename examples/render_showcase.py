#!/usr/bin/env python3
"""Render the showcase scene.

Builds the sphere / ground / glass knot scene, traces it with the thin-lens
camera and writes a gamma-2.2 8-bit PNG.

Usage:
    python examples/render_showcase.py [options]

Options:
    --width WIDTH             Image width in pixels (default: 320)
    --height HEIGHT           Image height in pixels (default: 180)
    --samples SAMPLES         Samples per pixel (default: 32)
    --output OUTPUT           Output file path (default: showcase.png)
    --batch-size SIZE         Samples per progress update (default: 4)
    --time-budget SECONDS     Stop early once this much time has passed
    --arch {auto,cpu,gpu}     Taichi backend (default: auto)
    --quiet                   Suppress progress output

Example:
    python examples/render_showcase.py --width 640 --height 360 --samples 128
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the showcase scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=320, help="Image width in pixels (default: 320)")
    parser.add_argument("--height", type=int, default=180, help="Image height in pixels (default: 180)")
    parser.add_argument("--samples", type=int, default=32, help="Samples per pixel (default: 32)")
    parser.add_argument(
        "--output",
        type=str,
        default="showcase.png",
        help="Output file path (default: showcase.png)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=4,
        help="Samples per progress update (default: 4)",
    )
    parser.add_argument(
        "--time-budget",
        type=float,
        default=None,
        help="Wall-clock limit in seconds; the image keeps the samples taken so far",
    )
    parser.add_argument(
        "--arch",
        choices=("auto", "cpu", "gpu"),
        default="auto",
        help="Taichi backend; auto tries the GPU and falls back to the CPU (default: auto)",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def init_taichi(arch: str, quiet: bool = False) -> None:
    """Initialize Taichi on the requested backend."""
    if arch == "cpu":
        ti.init(arch=ti.cpu)
    elif arch == "gpu":
        ti.init(arch=ti.gpu)
    else:
        # Use GPU if available, fall back to CPU
        try:
            ti.init(arch=ti.gpu)
            if not quiet:
                print("Using GPU backend")
        except Exception:
            ti.init(arch=ti.cpu)
            if not quiet:
                print("Using CPU backend")


def render_showcase(
    width: int = 320,
    height: int = 180,
    num_samples: int = 32,
    output_path: str = "showcase.png",
    batch_size: int = 4,
    time_budget: float | None = None,
    quiet: bool = False,
) -> Path:
    """Render the showcase scene and save to file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from phototrace.core.progressive import ProgressiveRenderer
    from phototrace.scene.showcase import create_showcase_scene

    if not quiet:
        print(f"Creating showcase scene ({width}x{height})...")

    scene, camera = create_showcase_scene(width=width, height=height, samples_per_pixel=num_samples)
    scene.build()
    if not quiet:
        print(
            f"  {scene.get_triangle_count()} triangles, {scene.get_sphere_count()} spheres, "
            f"{scene.get_light_count()} lights"
        )

    renderer = ProgressiveRenderer(camera)

    if not quiet:
        print(f"Rendering {num_samples} samples per pixel...")

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    total = renderer.render(
        num_samples=num_samples,
        batch_size=batch_size,
        callback=progress_callback,
        time_budget=time_budget,
    )

    if not quiet:
        print()  # Newline after progress
        if total < num_samples:
            print(f"Time budget reached after {total} samples per pixel")

    output_file = Path(output_path)
    renderer.save_image(output_file)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO, format="%(message)s")
    init_taichi(args.arch, args.quiet)

    try:
        render_showcase(
            width=args.width,
            height=args.height,
            num_samples=args.samples,
            output_path=args.output,
            batch_size=args.batch_size,
            time_budget=args.time_budget,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
