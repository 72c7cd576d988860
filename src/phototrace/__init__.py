"""Taichi-based Monte Carlo path tracer.

This package renders triangle-soup meshes and analytic spheres with
unidirectional path tracing on any Taichi backend:
- Median-split bounding volume hierarchy over the triangle soup
- BSDF importance sampling (diffuse, Phong specular, refraction)
- Next-event estimation for sun, point and spot lights
- Thin-lens camera with depth of field and box-filter antialiasing

Subpackages:
    core: Ray utilities, quaternions, the path integrator and progressive rendering
    geometry: BVH, triangle/sphere intersection, meshes and swept surfaces
    materials: Material and texture registries, BSDF sampling
    lights: Light registry and direct-lighting estimation
    camera: Thin-lens camera ray generation
    scene: Scene storage, nearest-hit queries, assembly and file loaders
    preview: Gamma processing and PNG export

Taichi must be initialized (``ti.init``) before importing any subpackage,
since they declare module-level fields.
"""

__version__ = "0.1.0"
