"""Lights module: analytic light sources and direct lighting.

Components:
    light: Sun, point and spot lights and the device light registry
    direct: Shadow-tested diffuse and Phong contribution of every light
"""

from .light import (
    MAX_LIGHTS,
    Light,
    LightType,
    add_light,
    clear_lights,
    get_light_count,
)
from .direct import direct_contribution, incident_radiance

__all__ = [
    "MAX_LIGHTS",
    "Light",
    "LightType",
    "add_light",
    "clear_lights",
    "get_light_count",
    "direct_contribution",
    "incident_radiance",
]
