"""Analytic light sources and the device light registry.

Three kinds of light are supported:

    SUN     collimated light arriving along ``direction``; no falloff
    POINT   isotropic emitter at ``position``; inverse-square falloff
    SPOT    point emitter restricted to a cone around ``direction`` with
            half-angle ``half_angle`` (radians); inverse-square falloff times
            cos(angle to axis) ** exponent inside the cone, nothing outside

Directions are normalized and the spot half-angle is clamped to [0, pi/2]
when a Light is constructed, so the registry only ever stores valid lights.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.lights.light import Light, add_light
    >>> add_light(Light.sun(direction=(0, 0, -1), color=(4.0, 3.6, 2.5)))
    0
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

Vec3 = tuple[float, float, float]


class LightType(IntEnum):
    """Light variants, used for dispatch in the direct-lighting estimator."""

    SUN = 0
    POINT = 1
    SPOT = 2


def _normalized(name: str, v: Sequence[float]) -> Vec3:
    x, y, z = (float(c) for c in v)
    length = math.sqrt(x * x + y * y + z * z)
    if length < 1e-12:
        raise ValueError(f"Light {name} must have non-zero length")
    return (x / length, y / length, z / length)


@dataclass
class Light:
    """A light source.

    Prefer the sun(), point() and spot() constructors, which only ask for the
    parameters their variant uses.

    Attributes:
        light_type: The variant.
        color: Emitted radiance (SUN) or intensity (POINT, SPOT), RGB.
        position: Emitter location. Unused for SUN.
        direction: Unit propagation direction. Unused for POINT.
        half_angle: Spot cone half-angle in radians, clamped to [0, pi/2].
        exponent: Spot angular falloff exponent.
    """

    light_type: LightType
    color: Vec3
    position: Vec3 = (0.0, 0.0, 0.0)
    direction: Vec3 = (0.0, 0.0, -1.0)
    half_angle: float = 0.0
    exponent: float = 1.0

    def __post_init__(self) -> None:
        self.light_type = LightType(self.light_type)
        self.color = tuple(float(c) for c in self.color)
        self.position = tuple(float(c) for c in self.position)
        if len(self.color) != 3 or len(self.position) != 3:
            raise ValueError("Light color and position must have 3 components")
        if self.light_type != LightType.POINT:
            self.direction = _normalized("direction", self.direction)
        self.half_angle = min(max(float(self.half_angle), 0.0), math.pi / 2)

    @classmethod
    def sun(cls, direction: Sequence[float], color: Sequence[float]) -> Light:
        """Collimated light travelling along ``direction``."""
        return cls(LightType.SUN, color=tuple(color), direction=tuple(direction))

    @classmethod
    def point(cls, position: Sequence[float], color: Sequence[float]) -> Light:
        """Isotropic point light."""
        return cls(LightType.POINT, color=tuple(color), position=tuple(position))

    @classmethod
    def spot(
        cls,
        position: Sequence[float],
        direction: Sequence[float],
        color: Sequence[float],
        half_angle: float,
        exponent: float = 1.0,
    ) -> Light:
        """Point light restricted to a cone around ``direction``."""
        return cls(
            LightType.SPOT,
            color=tuple(color),
            position=tuple(position),
            direction=tuple(direction),
            half_angle=half_angle,
            exponent=exponent,
        )


# =============================================================================
# Light Field Storage
# =============================================================================

# Maximum number of lights in the scene
MAX_LIGHTS = 64

light_types = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_directions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
# cos(half_angle), precomputed for the cone test
light_cos_cutoffs = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
light_exponents = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Clear all lights."""
    num_lights[None] = 0


def add_light(light: Light) -> int:
    """Add a light to the registry.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
    """
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_types[idx] = int(light.light_type)
    light_colors[idx] = vec3(*light.color)
    light_positions[idx] = vec3(*light.position)
    light_directions[idx] = vec3(*light.direction)
    light_cos_cutoffs[idx] = math.cos(light.half_angle)
    light_exponents[idx] = light.exponent
    num_lights[None] = idx + 1
    return idx


def get_light_count() -> int:
    """Get the number of lights in the registry."""
    return int(num_lights[None])
