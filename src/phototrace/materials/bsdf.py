"""Stochastic BSDF sampling.

One uniform selector p picks the scattering event with probability equal to
the mean reflectance of each lobe:

    p < wD                  diffuse, cosine-weighted about the normal
    p < wD + wS             specular, Phong lobe about the mirror direction
    p < wD + wS + wR        refraction (IllumModel.REFRACTION only)
    otherwise               absorption, the path ends

Dividing the lobe color by its selection probability keeps the estimator
unbiased: E[indicator * weight] equals the lobe color. Because the cosine
and Phong samplers are importance sampled, the BRDF and pdf cancel and the
weight carries no further factors.

Three uniforms (p, x, y) are drawn per call in that order, whether or not the
path continues, so the random sequence does not depend on the outcome.
"""

import taichi as ti
import taichi.math as tm

from phototrace.core.ray import (
    mean3,
    reflect,
    refract,
    sample_cosine_hemisphere,
    sample_phong_lobe,
)
from phototrace.materials.material import (
    IllumModel,
    diffuse_color,
    mat_illum,
    mat_kd,
    mat_kr,
    mat_ks,
    mat_ni,
    mat_ns,
)

vec2 = tm.vec2
vec3 = tm.vec3

_REFRACTION = int(IllumModel.REFRACTION)


@ti.func
def sample_bsdf(material_id: ti.i32, normal: vec3, incoming: vec3, uv: vec2):
    """Pick a scattering event and a continuation direction.

    Args:
        material_id: Index into the material registry.
        normal: Unit shading normal at the hit point.
        incoming: Unit direction of the arriving ray (pointing at the surface).
        uv: Texture coordinates at the hit point.

    Returns:
        A tuple (continues, direction, weight). continues is 1 if the path
        scatters and 0 if it is absorbed; direction and weight are only
        meaningful when it scatters.
    """
    p = ti.random(ti.f32)
    x = ti.random(ti.f32)
    y = ti.random(ti.f32)

    w_d = mean3(mat_kd[material_id])
    w_s = mean3(mat_ks[material_id])
    w_r = 0.0
    if mat_illum[material_id] == _REFRACTION:
        w_r = mean3(mat_kr[material_id])

    continues = 1
    direction = incoming
    weight = vec3(0.0)

    if p < w_d:
        direction = sample_cosine_hemisphere(normal, x, y)
        weight = diffuse_color(material_id, uv) / w_d
    elif p < w_d + w_s:
        mirror = tm.normalize(reflect(incoming, normal))
        direction = sample_phong_lobe(mirror, mat_ns[material_id], x, y)
        weight = mat_ks[material_id] / w_s
    elif p < w_d + w_s + w_r:
        direction = refract(incoming, normal, mat_ni[material_id])
        weight = mat_kr[material_id] / w_r
    else:
        continues = 0

    return continues, direction, weight
