"""Direct lighting (next-event estimation).

At every path vertex each light is queried explicitly with a shadow ray.
Unoccluded lights contribute a Lambertian diffuse term and a normalized Phong
specular term:

    diffuse  = max(o . n, 0) * L * Kd / pi
    specular = (Ns + 2) / (2 pi) * clamp(r . i, 0, 1) ** Ns * L * Ks

where o is the unit direction toward the light, r = o - 2 (o . n) n is its
mirror image, i is the incoming view direction and L the incident radiance.
The specular lobe here and the one sampled by the BSDF are both added; the
path integrator relies on that sum.
"""

import taichi as ti
import taichi.math as tm

from phototrace.lights.light import (
    LightType,
    light_colors,
    light_cos_cutoffs,
    light_directions,
    light_exponents,
    light_positions,
    light_types,
    num_lights,
)
from phototrace.materials.material import diffuse_color, mat_ks, mat_ns
from phototrace.scene.intersection import T_INFINITY, T_MIN, intersect_scene_any

vec2 = tm.vec2
vec3 = tm.vec3

_SUN = int(LightType.SUN)
_SPOT = int(LightType.SPOT)


@ti.func
def incident_radiance(light_id: ti.i32, point: vec3):
    """Unshadowed radiance arriving at ``point`` from one light.

    Returns:
        A tuple (to_light, distance, radiance): the unit direction toward the
        light, the distance to it (T_INFINITY for suns) and the radiance.
    """
    to_light = -light_directions[light_id]
    distance = T_INFINITY
    radiance = light_colors[light_id]

    kind = light_types[light_id]
    if kind != _SUN:
        offset = light_positions[light_id] - point
        dist2 = tm.dot(offset, offset)
        distance = ti.sqrt(dist2)
        to_light = offset / distance
        radiance = light_colors[light_id] / dist2
        if kind == _SPOT:
            cos_angle = ti.min(tm.dot(light_directions[light_id], -to_light), 1.0)
            if cos_angle > light_cos_cutoffs[light_id]:
                radiance *= ti.pow(cos_angle, light_exponents[light_id])
            else:
                radiance = vec3(0.0)

    return to_light, distance, radiance


@ti.func
def direct_contribution(material_id: ti.i32, point: vec3, normal: vec3, incoming: vec3, uv: vec2) -> vec3:
    """Sum the light reflected toward the viewer directly from every light.

    Args:
        material_id: Material at the shading point.
        point: The shading point.
        normal: Unit shading normal.
        incoming: Unit direction of the ray that arrived at the point.
        uv: Texture coordinates at the point.

    Returns:
        The reflected radiance.
    """
    total = vec3(0.0)
    kd = diffuse_color(material_id, uv)
    ks = mat_ks[material_id]
    ns = mat_ns[material_id]

    for light_id in range(num_lights[None]):
        to_light, distance, radiance = incident_radiance(light_id, point)
        if intersect_scene_any(point, to_light, T_MIN, distance) == 0:
            total += ti.max(tm.dot(to_light, normal), 0.0) * radiance * kd / tm.pi

            mirrored = to_light - 2.0 * tm.dot(to_light, normal) * normal
            alignment = tm.clamp(tm.dot(mirrored, incoming), 0.0, 1.0)
            total += (ns + 2.0) / (2.0 * tm.pi) * ti.pow(alignment, ns) * radiance * ks

    return total
