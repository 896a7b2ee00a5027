import numpy as np

from .config import PARALLEL_EPSILON
from .errors import DegenerateVectorError, InvalidSceneError
from .utils import vec, normalize


class Hit:
    def __init__(self, t, point=None, normal=None, material=None, surface=None):
        """Create a Hit with the given data.

        Parameters:
          t : float -- the t value of the intersection along the ray
          point : (3,) -- the 3D point where the intersection happens
          normal : (3,) -- the 3D outward-facing unit normal to the surface at the hit point
          material : (Material) -- the material of the surface
          surface : the primitive that was hit
        """
        self.t = t
        self.point = point
        self.normal = normal
        self.material = material
        self.surface = surface

    def __repr__(self):
        if self.t == np.inf:
            return "Hit(no hit)"
        return f"Hit(t={self.t:.6g}, surface={type(self.surface).__name__})"

# Value to represent absence of an intersection
no_hit = Hit(np.inf)


class Sphere:

    kind = 'sphere'

    def __init__(self, center, radius, material):
        """Create a sphere with the given center and radius.

        Parameters:
          center : (3,) -- a 3D point specifying the sphere's center
          radius : float -- a Python float specifying the sphere's radius
          material : Material -- the material of the surface
        """
        self.center = vec(center)
        self.radius = float(radius)
        self.material = material

    def intersect(self, ray):
        """Computes the first (smallest t) intersection between a ray and this sphere.

        Roots at or before ray.start are discarded, so a ray leaving the
        surface does not hit it again.

        Parameters:
          ray : Ray -- the ray to intersect with the sphere
        Return:
          Hit -- the hit data
        """
        oc = ray.origin - self.center
        a = np.dot(ray.direction, ray.direction)
        half_b = np.dot(oc, ray.direction)
        c = np.dot(oc, oc) - self.radius * self.radius
        discriminant = half_b * half_b - a * c
        if discriminant < 0:
            return no_hit
        disc_sqrt = np.sqrt(discriminant)
        for t in ((-half_b - disc_sqrt) / a, (-half_b + disc_sqrt) / a):
            if ray.start < t < ray.end:
                point = ray.at(t)
                return Hit(t, point, self.normal_at(point), self.material, self)
        return no_hit

    def normal_at(self, point):
        return (point - self.center) / self.radius

    def validate(self):
        if not (np.isfinite(self.radius) and self.radius > 0):
            raise InvalidSceneError(f"sphere radius must be positive, got {self.radius}")
        if not np.all(np.isfinite(self.center)):
            raise InvalidSceneError(f"sphere center is not finite: {self.center.tolist()}")


class Plane:

    kind = 'plane'

    def __init__(self, point, normal, material):
        """Create an infinite plane through point with the given normal.

        Parameters:
          point : (3,) -- any point on the plane
          normal : (3,) -- the plane normal; it does not have to be unit length
          material : Material -- the material of the surface
        """
        self.point = vec(point)
        try:
            self.normal = vec(normalize(vec(normal)))
        except DegenerateVectorError as e:
            raise InvalidSceneError(f"plane normal {list(normal)} has no direction") from e
        self.material = material

    def intersect(self, ray):
        """Intersect ray with the plane; rays (nearly) parallel to it never hit."""
        denominator = np.dot(ray.direction, self.normal)
        if abs(denominator) < PARALLEL_EPSILON:
            return no_hit
        t = np.dot(self.point - ray.origin, self.normal) / denominator
        if ray.start < t < ray.end:
            point = ray.at(t)
            return Hit(t, point, self.normal, self.material, self)
        return no_hit

    def normal_at(self, point):
        return self.normal

    def validate(self):
        if not np.all(np.isfinite(self.point)):
            raise InvalidSceneError(f"plane point is not finite: {self.point.tolist()}")


class Triangle:

    kind = 'triangle'

    def __init__(self, vs, material):
        """Create a triangle from the given vertices.

        Parameters:
          vs (3,3) -- an array of 3 3D points that are the vertices (CCW order)
          material : Material -- the material of the surface
        """
        self.vs = np.array(vs, dtype=np.float64)
        self.vs.flags.writeable = False
        if self.vs.shape != (3, 3):
            raise InvalidSceneError(f"triangle needs 3 vertices of 3 coordinates, got shape {self.vs.shape}")
        self.material = material
        self.edge_1 = self.vs[1] - self.vs[0]
        self.edge_2 = self.vs[2] - self.vs[0]
        try:
            self.normal = vec(normalize(np.cross(self.edge_1, self.edge_2)))
        except DegenerateVectorError as e:
            raise InvalidSceneError(f"triangle {self.vs.tolist()} has zero area") from e

    def intersect(self, ray):
        """Computes the intersection between a ray and this triangle, if it exists.

        Parameters:
          ray : Ray -- the ray to intersect with the triangle
        Return:
          Hit -- the hit data
        """
        temp_vec = np.cross(ray.direction, self.edge_2)
        det = np.dot(self.edge_1, temp_vec)
        if -1e-8 < det < 1e-8:
            return no_hit

        inverse_det = 1.0 / det
        s = ray.origin - self.vs[0]
        u = np.dot(s, temp_vec) * inverse_det
        if u < 0 or u > 1:
            return no_hit

        temp_vec2 = np.cross(s, self.edge_1)
        v = np.dot(ray.direction, temp_vec2) * inverse_det
        if v < 0 or u + v > 1:
            return no_hit

        t = np.dot(self.edge_2, temp_vec2) * inverse_det
        if ray.start < t < ray.end:
            point = ray.at(t)
            return Hit(t, point, self.normal, self.material, self)
        return no_hit

    def normal_at(self, point):
        return self.normal

    def validate(self):
        if not np.all(np.isfinite(self.vs)):
            raise InvalidSceneError(f"triangle vertices are not finite: {self.vs.tolist()}")


class Box:

    kind = 'box'

    def __init__(self, p0, p1, material):
        """Create an axis-aligned box spanning two opposite corners.

        Parameters:
          p0, p1 : (3,) -- opposite corners, in any order
          material : Material -- the material of every face
        """
        p0, p1 = vec(p0), vec(p1)
        self.min = vec(np.minimum(p0, p1))
        self.max = vec(np.maximum(p0, p1))
        self.material = material
        if np.any(self.max - self.min <= 0):
            raise InvalidSceneError(f"box {self.min.tolist()} - {self.max.tolist()} has no volume")

    def intersect(self, ray):
        """Slab test; returns the entry face, or the exit face for rays starting inside."""
        t_near, t_far = -np.inf, np.inf
        near_axis = far_axis = 0
        for i in range(3):
            d = ray.direction[i]
            o = ray.origin[i]
            # parallel to this slab: the origin has to lie between its faces
            if abs(d) < PARALLEL_EPSILON:
                if o < self.min[i] or o > self.max[i]:
                    return no_hit
                continue
            inv = 1.0 / d
            t0 = (self.min[i] - o) * inv
            t1 = (self.max[i] - o) * inv
            if t0 > t1:
                t0, t1 = t1, t0
            if t0 > t_near:
                t_near, near_axis = t0, i
            if t1 < t_far:
                t_far, far_axis = t1, i
            if t_near > t_far:
                return no_hit

        for t, axis, side in ((t_near, near_axis, -1.0), (t_far, far_axis, 1.0)):
            if ray.start < t < ray.end:
                normal = np.zeros(3)
                normal[axis] = side * np.sign(ray.direction[axis])
                return Hit(t, ray.at(t), normal, self.material, self)
        return no_hit

    def normal_at(self, point):
        center = 0.5 * (self.min + self.max)
        q = (point - center) / (0.5 * (self.max - self.min))
        axis = np.argmax(np.abs(q))
        normal = np.zeros(3)
        normal[axis] = np.sign(q[axis])
        return normal

    def validate(self):
        if not (np.all(np.isfinite(self.min)) and np.all(np.isfinite(self.max))):
            raise InvalidSceneError(f"box corners are not finite: {self.min.tolist()}, {self.max.tolist()}")
