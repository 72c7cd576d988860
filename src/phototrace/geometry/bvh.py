"""Bounding volume hierarchy over a flat triangle soup.

The hierarchy is built once on the host with NumPy and then flattened into an
arena of nodes addressed by index, which is uploaded into Taichi fields for
traversal inside kernels.

Build:
    Every three consecutive vertices form one triangle. A node's box bounds all
    vertices it owns. Nodes holding more than LEAF_SIZE triangles are split on
    the axis of greatest extent: triangles are stably sorted by centroid along
    that axis and divided at the median by count. Splitting by position in the
    sorted order (not by value) guarantees termination even when many
    centroids coincide.

Traversal:
    Iterative depth-first descent with an explicit stack. A box hit on an
    internal node pushes the left child and continues into the right one; a
    leaf hit reports its triangles as candidates. Candidates are not ordered,
    so callers must test all of them and keep the nearest hit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.geometry.bvh import build_bvh, upload_bvh, query_candidates
    >>> flat = build_bvh(vertices)  # (3 * n_faces, 3) array
    >>> upload_bvh(flat)
    >>> faces = query_candidates((0, 0, 5), (0, 0, -1))
"""

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from phototrace.core.ray import PARALLEL_EPSILON

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Leaves hold at most this many triangles
LEAF_SIZE = 3

# Maximum number of triangles in the scene
MAX_TRIANGLES = 1 << 17

# A median-split tree over MAX_TRIANGLES never needs more nodes than this
MAX_BVH_NODES = 2 * MAX_TRIANGLES

# Traversal stack capacity; a balanced tree over MAX_TRIANGLES is ~17 levels deep
MAX_STACK_DEPTH = 32

# Bounds of an empty box (inverted so every slab test misses)
_EMPTY_MIN = np.finfo(np.float32).max
_EMPTY_MAX = -np.finfo(np.float32).max


# =============================================================================
# Host-side Build
# =============================================================================


@dataclass
class FlatBVH:
    """A BVH stored as an arena of nodes referenced by index.

    Node 0 is the root. Each node exclusively owns its children, so the arena
    is a tree in depth-first pre-order.

    Attributes:
        bbox_min: (N, 3) lower box corners.
        bbox_max: (N, 3) upper box corners.
        left: (N,) index of the left child, -1 for leaves.
        right: (N,) index of the right child, -1 for leaves.
        prim_start: (N,) first slot of a leaf's faces in prim_indices.
        prim_count: (N,) number of faces in a leaf (0 for internal nodes).
        prim_indices: (F,) original face indices grouped by leaf.
    """

    bbox_min: npt.NDArray[np.float32]
    bbox_max: npt.NDArray[np.float32]
    left: npt.NDArray[np.int32]
    right: npt.NDArray[np.int32]
    prim_start: npt.NDArray[np.int32]
    prim_count: npt.NDArray[np.int32]
    prim_indices: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        """Number of nodes in the arena."""
        return int(self.left.shape[0])

    @property
    def face_count(self) -> int:
        """Number of faces referenced by the leaves."""
        return int(self.prim_indices.shape[0])

    def is_leaf(self, node: int) -> bool:
        """Whether ``node`` is a leaf."""
        return bool(self.left[node] < 0)

    def leaf_faces(self, node: int) -> npt.NDArray[np.int32]:
        """Original face indices stored in a leaf."""
        start = int(self.prim_start[node])
        return self.prim_indices[start : start + int(self.prim_count[node])]

    def depth(self) -> int:
        """Number of levels from the root to the deepest leaf."""
        deepest = 0
        pending = [(0, 1)]
        while pending:
            node, level = pending.pop()
            deepest = max(deepest, level)
            if not self.is_leaf(node):
                pending.append((int(self.left[node]), level + 1))
                pending.append((int(self.right[node]), level + 1))
        return deepest


def _split_axis(extent: npt.NDArray[np.float32]) -> int:
    """Pick the axis of greatest extent, preferring later axes on ties."""
    if extent[0] > extent[1]:
        return 0 if extent[0] > extent[2] else 2
    return 1 if extent[1] > extent[2] else 2


def build_bvh(vertices: npt.ArrayLike) -> FlatBVH:
    """Build a median-split BVH over a triangle soup.

    Args:
        vertices: Vertex positions, three per face, as an array-like that
            reshapes to (3 * n_faces, 3).

    Returns:
        The flattened hierarchy. An empty soup yields a single leaf with an
        empty box and no faces.

    Raises:
        ValueError: If the number of vertices is not a multiple of three.
    """
    verts = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
    if verts.shape[0] % 3 != 0:
        raise ValueError(
            f"Triangle soup must contain 3 vertices per face, got {verts.shape[0]} vertices"
        )
    triangles = verts.reshape(-1, 3, 3)
    centroids = triangles.sum(axis=1) / 3.0

    bbox_min: list[npt.NDArray[np.float32]] = []
    bbox_max: list[npt.NDArray[np.float32]] = []
    left: list[int] = []
    right: list[int] = []
    prim_start: list[int] = []
    prim_count: list[int] = []
    prim_indices: list[int] = []

    def build_node(faces: npt.NDArray[np.int64]) -> int:
        node = len(left)
        if faces.size > 0:
            corners = triangles[faces].reshape(-1, 3)
            lo = corners.min(axis=0)
            hi = corners.max(axis=0)
        else:
            lo = np.full(3, _EMPTY_MIN, dtype=np.float32)
            hi = np.full(3, _EMPTY_MAX, dtype=np.float32)
        bbox_min.append(lo)
        bbox_max.append(hi)
        left.append(-1)
        right.append(-1)
        prim_start.append(len(prim_indices))
        prim_count.append(0)

        if faces.size <= LEAF_SIZE:
            prim_count[node] = int(faces.size)
            prim_indices.extend(int(f) for f in faces)
            return node

        axis = _split_axis(hi - lo)
        order = np.argsort(centroids[faces, axis], kind="stable")
        ordered = faces[order]
        half = ordered.size // 2
        left[node] = build_node(ordered[:half])
        right[node] = build_node(ordered[half:])
        return node

    build_node(np.arange(triangles.shape[0], dtype=np.int64))

    flat = FlatBVH(
        bbox_min=np.asarray(bbox_min, dtype=np.float32).reshape(-1, 3),
        bbox_max=np.asarray(bbox_max, dtype=np.float32).reshape(-1, 3),
        left=np.asarray(left, dtype=np.int32),
        right=np.asarray(right, dtype=np.int32),
        prim_start=np.asarray(prim_start, dtype=np.int32),
        prim_count=np.asarray(prim_count, dtype=np.int32),
        prim_indices=np.asarray(prim_indices, dtype=np.int32),
    )
    logger.debug(
        "Built BVH over %d faces: %d nodes, depth %d",
        flat.face_count,
        flat.node_count,
        flat.depth(),
    )
    return flat


# =============================================================================
# Device Storage
# =============================================================================

bvh_bbox_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_bbox_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_start = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_indices = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())
num_bvh_faces = ti.field(dtype=ti.i32, shape=())

# Scratch output of query_candidates
_candidate_mask = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)

# Flag to track if a hierarchy has been uploaded
_bvh_built = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _upload_nodes(
    bbox_min: ti.types.ndarray(),
    bbox_max: ti.types.ndarray(),
    left: ti.types.ndarray(),
    right: ti.types.ndarray(),
    prim_start: ti.types.ndarray(),
    prim_count: ti.types.ndarray(),
):
    for i in range(left.shape[0]):
        bvh_bbox_min[i] = vec3(bbox_min[i, 0], bbox_min[i, 1], bbox_min[i, 2])
        bvh_bbox_max[i] = vec3(bbox_max[i, 0], bbox_max[i, 1], bbox_max[i, 2])
        bvh_left[i] = left[i]
        bvh_right[i] = right[i]
        bvh_prim_start[i] = prim_start[i]
        bvh_prim_count[i] = prim_count[i]


@ti.kernel
def _upload_prim_indices(prim_indices: ti.types.ndarray()):
    for i in range(prim_indices.shape[0]):
        bvh_prim_indices[i] = prim_indices[i]


def clear_bvh() -> None:
    """Forget the uploaded hierarchy."""
    num_bvh_nodes[None] = 0
    num_bvh_faces[None] = 0
    _bvh_built[None] = 0


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened hierarchy into the device fields.

    Args:
        flat: The hierarchy returned by build_bvh().

    Raises:
        RuntimeError: If the hierarchy exceeds the preallocated capacity.
    """
    if flat.node_count > MAX_BVH_NODES or flat.face_count > MAX_TRIANGLES:
        raise RuntimeError(
            f"BVH with {flat.node_count} nodes / {flat.face_count} faces exceeds capacity "
            f"({MAX_BVH_NODES} nodes / {MAX_TRIANGLES} faces)"
        )
    _upload_nodes(
        np.ascontiguousarray(flat.bbox_min),
        np.ascontiguousarray(flat.bbox_max),
        np.ascontiguousarray(flat.left),
        np.ascontiguousarray(flat.right),
        np.ascontiguousarray(flat.prim_start),
        np.ascontiguousarray(flat.prim_count),
    )
    if flat.face_count > 0:
        _upload_prim_indices(np.ascontiguousarray(flat.prim_indices))
    num_bvh_nodes[None] = flat.node_count
    num_bvh_faces[None] = flat.face_count
    _bvh_built[None] = 1


def is_bvh_built() -> bool:
    """Check if a hierarchy has been uploaded."""
    return bool(_bvh_built[None])


# =============================================================================
# Traversal
# =============================================================================


@ti.func
def hit_aabb(
    bbox_min: vec3,
    bbox_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against an axis-aligned box.

    The running interval [t_min, t_max] is clipped against the two boundary
    planes of each axis. A direction component below PARALLEL_EPSILON is
    treated as parallel to that axis: the ray misses unless its origin lies
    inside the slab. An empty (inverted) box never reports a hit.

    Args:
        bbox_min: Lower box corner.
        bbox_max: Upper box corner.
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        t_min: Start of the parameter interval.
        t_max: End of the parameter interval.

    Returns:
        1 if the clipped interval is non-empty, 0 otherwise.
    """
    lo = t_min
    hi = t_max
    hit = 1
    for axis in ti.static(range(3)):
        d = ray_direction[axis]
        o = ray_origin[axis]
        if ti.abs(d) < PARALLEL_EPSILON:
            if o < bbox_min[axis] or o > bbox_max[axis]:
                hit = 0
        elif d > 0.0:
            lo = ti.max(lo, (bbox_min[axis] - o) / d)
            hi = ti.min(hi, (bbox_max[axis] - o) / d)
        else:
            lo = ti.max(lo, (bbox_max[axis] - o) / d)
            hi = ti.min(hi, (bbox_min[axis] - o) / d)
    if lo > hi:
        hit = 0
    return hit


@ti.func
def _mark_leaf_candidates(ray_origin: vec3, ray_direction: vec3):
    """Walk the hierarchy and flag the faces of every leaf whose box is hit."""
    stack = ti.Vector([0 for _ in range(MAX_STACK_DEPTH)], dt=ti.i32)
    stack_ptr = 0
    node = 0
    active = 1
    while active == 1:
        descended = 0
        if hit_aabb(bvh_bbox_min[node], bvh_bbox_max[node], ray_origin, ray_direction, 0.0, 1e30):
            if bvh_left[node] < 0:
                start = bvh_prim_start[node]
                for k in range(bvh_prim_count[node]):
                    _candidate_mask[bvh_prim_indices[start + k]] = 1
            else:
                if stack_ptr < MAX_STACK_DEPTH:
                    stack[stack_ptr] = bvh_left[node]
                    stack_ptr += 1
                node = bvh_right[node]
                descended = 1
        if descended == 0:
            if stack_ptr == 0:
                active = 0
            else:
                stack_ptr -= 1
                node = stack[stack_ptr]


@ti.kernel
def _query_candidates_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
    for i in range(num_bvh_faces[None]):
        _candidate_mask[i] = 0
    for _ in range(1):
        _mark_leaf_candidates(vec3(ox, oy, oz), vec3(dx, dy, dz))


def query_candidates(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
) -> npt.NDArray[np.int32]:
    """Return the faces stored in leaves whose boxes the ray may hit.

    These are candidates only; they include every face the ray actually hits
    but may contain faces it misses.

    Args:
        origin: Ray origin.
        direction: Ray direction.

    Returns:
        Sorted array of original face indices.

    Raises:
        RuntimeError: If no hierarchy has been uploaded.
    """
    if not is_bvh_built():
        raise RuntimeError("BVH not built. Call SceneManager.build() or upload_bvh() first.")
    _query_candidates_kernel(
        float(origin[0]),
        float(origin[1]),
        float(origin[2]),
        float(direction[0]),
        float(direction[1]),
        float(direction[2]),
    )
    count = int(num_bvh_faces[None])
    mask = _candidate_mask.to_numpy()[:count]
    return np.nonzero(mask)[0].astype(np.int32)
