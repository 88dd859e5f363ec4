# skyevents/core/coords.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

from skyevents.core.constants import angular_separation, wrap_deg

Vec3 = Tuple[float, float, float]

__all__ = [
    "Vec3",
    "SphericalPosition",
    "vadd",
    "vsub",
    "vscale",
    "vnorm",
    "vdot",
    "mat_vec",
    "rotate_x",
    "rotate_z",
]


def vadd(a: Vec3, b: Vec3) -> Vec3:
    return a[0] + b[0], a[1] + b[1], a[2] + b[2]


def vsub(a: Vec3, b: Vec3) -> Vec3:
    return a[0] - b[0], a[1] - b[1], a[2] - b[2]


def vscale(a: Vec3, k: float) -> Vec3:
    return a[0] * k, a[1] * k, a[2] * k


def vnorm(a: Vec3) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def vdot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def mat_vec(m: Sequence[Sequence[float]], v: Vec3) -> Vec3:
    return (
        float(m[0][0]) * v[0] + float(m[0][1]) * v[1] + float(m[0][2]) * v[2],
        float(m[1][0]) * v[0] + float(m[1][1]) * v[1] + float(m[1][2]) * v[2],
        float(m[2][0]) * v[0] + float(m[2][1]) * v[1] + float(m[2][2]) * v[2],
    )


def rotate_x(v: Vec3, angle_deg: float) -> Vec3:
    """Rotate the frame about x by +angle (equatorial → ecliptic with angle = ε)."""
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    return v[0], c * v[1] + s * v[2], -s * v[1] + c * v[2]


def rotate_z(v: Vec3, angle_deg: float) -> Vec3:
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    return c * v[0] + s * v[1], -s * v[0] + c * v[1], v[2]


@dataclass(frozen=True)
class SphericalPosition:
    """
    (longitude, latitude, radius) in degrees/AU. The same shape serves as
    ecliptic (λ, β, r), equatorial (α, δ, r) and horizontal (A, h, r).
    """
    longitude: float
    latitude: float
    radius: float = 1.0

    # equatorial / horizontal aliases
    @property
    def ra(self) -> float:
        return self.longitude

    @property
    def dec(self) -> float:
        return self.latitude

    @property
    def azimuth(self) -> float:
        return self.longitude

    @property
    def altitude(self) -> float:
        return self.latitude

    @classmethod
    def from_xyz(cls, v: Vec3) -> "SphericalPosition":
        x, y, z = v
        r = math.sqrt(x * x + y * y + z * z)
        lon = wrap_deg(math.degrees(math.atan2(y, x))) if (x or y) else 0.0
        lat = math.degrees(math.atan2(z, math.hypot(x, y))) if r else 0.0
        return cls(lon, lat, r)

    def xyz(self) -> Vec3:
        lo, la = math.radians(self.longitude), math.radians(self.latitude)
        cl = math.cos(la)
        return (self.radius * cl * math.cos(lo),
                self.radius * cl * math.sin(lo),
                self.radius * math.sin(la))

    def distance_from(self, other: "SphericalPosition") -> float:
        """Angular separation in degrees."""
        return angular_separation(self.longitude, self.latitude, other.longitude, other.latitude)

    def translate(self, origin: "SphericalPosition") -> "SphericalPosition":
        """This position as seen from `origin` (both in the same frame)."""
        return SphericalPosition.from_xyz(vsub(self.xyz(), origin.xyz()))
