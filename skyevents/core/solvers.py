# skyevents/core/solvers.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

__all__ = ["find_root", "find_extremum", "Extremum"]

_CGOLD = 0.3819660112501051
_SQRT_EPS = 1.4901161193847656e-08

Fn = Callable[[float], float]


def find_root(
    f: Fn,
    tolerance: float,
    max_iter: int,
    x0: float,
    y0: Optional[float] = None,
    x1: float = 0.0,
    y1: Optional[float] = None,
) -> float:
    """
    Root of `f` between x0 and x1 by Illinois false position.

    Stops once |f(x)| <= tolerance or after `max_iter` evaluations, returning
    the best estimate so far. Same-sign endpoints degrade to plain secant steps.
    """
    if y0 is None:
        y0 = f(x0)
    if y1 is None:
        y1 = f(x1)
    if y0 == 0.0:
        return x0
    if y1 == 0.0:
        return x1

    bracketed = (y0 < 0.0) != (y1 < 0.0)
    best_x, best_y = (x0, y0) if abs(y0) < abs(y1) else (x1, y1)
    side = 0

    for _ in range(max(1, max_iter)):
        if y1 == y0:
            break
        x = x1 - y1 * (x1 - x0) / (y1 - y0)
        if bracketed and not (min(x0, x1) < x < max(x0, x1)):
            x = 0.5 * (x0 + x1)
        y = f(x)

        if abs(y) < abs(best_y):
            best_x, best_y = x, y
        if abs(y) <= tolerance or x == x0 or x == x1:
            break

        if not bracketed:
            x0, y0, x1, y1 = x1, y1, x, y
        elif (y < 0.0) == (y1 < 0.0):
            x1, y1 = x, y
            if side == -1:
                y0 /= 2.0
            side = -1
        else:
            x0, y0 = x, y
            if side == 1:
                y1 /= 2.0
            side = 1

    return best_x


@dataclass(frozen=True)
class Extremum:
    x: float
    y: float
    is_maximum: bool


def find_extremum(
    f: Fn,
    tolerance: float,
    max_iter: int,
    x_low: float,
    x_mid: float,
    x_high: float,
) -> Extremum:
    """
    Local minimum or maximum of `f` inside [x_low, x_high] (Brent's method).

    Whether to look for a minimum or a maximum follows the shape of the three
    starting samples. Arithmetic runs in offsets from x_mid so JD-sized
    abscissas keep their precision.
    """
    if x_low > x_high:
        x_low, x_high = x_high, x_low
    y_low, y_mid, y_high = f(x_low), f(x_mid), f(x_high)

    if y_mid <= y_low and y_mid <= y_high:
        maximize = False
    elif y_mid >= y_low and y_mid >= y_high:
        maximize = True
    else:
        maximize = y_mid > 0.5 * (y_low + y_high)

    sign = -1.0 if maximize else 1.0
    origin = x_mid

    def g(h: float) -> float:
        return sign * f(origin + h)

    a, b = x_low - origin, x_high - origin
    samples = [(0.0, sign * y_mid), (a, sign * y_low), (b, sign * y_high)]
    x, fx = min(samples, key=lambda s: s[1])
    w = v = x
    fw = fv = fx
    d = e = 0.0

    for _ in range(max(1, max_iter)):
        xm = 0.5 * (a + b)
        tol1 = tolerance + _SQRT_EPS * abs(x)
        tol2 = 2.0 * tol1
        if abs(x - xm) <= tol2 - 0.5 * (b - a):
            break

        use_golden = True
        if abs(e) > tol1:
            r = (x - w) * (fx - fv)
            q = (x - v) * (fx - fw)
            p = (x - v) * q - (x - w) * r
            q = 2.0 * (q - r)
            if q > 0.0:
                p = -p
            q = abs(q)
            e_prev = e
            e = d
            if not (abs(p) >= abs(0.5 * q * e_prev) or p <= q * (a - x) or p >= q * (b - x)):
                d = p / q
                u = x + d
                if u - a < tol2 or b - u < tol2:
                    d = math.copysign(tol1, xm - x)
                use_golden = False

        if use_golden:
            e = (a - x) if x >= xm else (b - x)
            d = _CGOLD * e

        u = x + d if abs(d) >= tol1 else x + math.copysign(tol1, d)
        fu = g(u)

        if fu <= fx:
            if u >= x:
                a = x
            else:
                b = x
            v, w, x = w, x, u
            fv, fw, fx = fw, fx, fu
        else:
            if u < x:
                a = u
            else:
                b = u
            if fu <= fw or w == x:
                v, w = w, u
                fv, fw = fw, fu
            elif fu <= fv or v == x or v == w:
                v, fv = u, fu

    return Extremum(x=origin + x, y=sign * fx, is_maximum=maximize)
