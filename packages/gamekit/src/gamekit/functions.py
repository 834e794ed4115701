"""gamekit 的轻量数学工具：多项式、区间、求根与回归。

设计约束：
    - 仅依赖 NumPy（不引入额外第三方库）。
    - 以“足够用、易读”为优先，避免为了通用性过度设计。
    - 数据不足或退化时返回 None，而不是抛异常；只有调用方传错参数才报错。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
from numpy.polynomial import polynomial as P


def _padded(coeffs: Sequence[float], n: int) -> tuple[float, ...]:
    """numpy 会去掉末尾的 0 系数；补齐到 n 项以保持次数不变。"""

    out = tuple(float(c) for c in coeffs)
    return out + (0.0,) * (n - len(out))


@dataclass(frozen=True)
class SimpleRange:
    """闭区间 [lower, upper]。

    说明：
        lower > upper 视为空区间（is_empty=True），便于表达“无交集”。
    """

    lower: float
    upper: float

    @property
    def size(self) -> float:
        return float(self.upper - self.lower)

    @property
    def center(self) -> float:
        return 0.5 * float(self.lower + self.upper)

    @property
    def is_empty(self) -> bool:
        return bool(self.lower > self.upper)

    def contains(self, x: float) -> bool:
        return bool(self.lower <= x <= self.upper)

    def intersection(self, other: SimpleRange) -> SimpleRange:
        return SimpleRange(max(self.lower, other.lower), min(self.upper, other.upper))


class Polynomial:
    """多项式 f(x) = c0 + c1*x + ... + cn*x^n。

    说明：
        - coefficients 按“低次在前”存储，与 numpy.polynomial 的约定一致。
        - 对象不可变；所有算术运算返回新对象。
        - a/b/c 访问器按“高次在前”取系数，便于写 ax^2+bx+c 形式的公式。
    """

    __slots__ = ("_coeffs",)

    def __init__(self, coefficients: Sequence[float]) -> None:
        coeffs = tuple(float(c) for c in coefficients)
        if not coeffs:
            raise ValueError("Polynomial 至少需要一个系数")
        self._coeffs = coeffs

    # ------------------------------------------------------------------
    # 构造
    # ------------------------------------------------------------------

    @classmethod
    def line(cls, slope: float, intercept: float) -> Polynomial:
        return cls((intercept, slope))

    @classmethod
    def through(cls, p1: tuple[float, float], p2: tuple[float, float]) -> Polynomial:
        """过两点的直线。两点的 x 必须不同。"""

        (x1, y1), (x2, y2) = p1, p2
        if x1 == x2:
            raise ValueError("Polynomial.through 需要两个不同的 x")
        slope = (y1 - y2) / (x1 - x2)
        return cls.line(slope, y1 - slope * x1)

    @classmethod
    def parabola(cls, a: float, b: float, c: float) -> Polynomial:
        return cls((c, b, a))

    # ------------------------------------------------------------------
    # 基本属性
    # ------------------------------------------------------------------

    @property
    def coefficients(self) -> tuple[float, ...]:
        return self._coeffs

    @property
    def degree(self) -> int:
        return len(self._coeffs) - 1

    def _from_top(self, k: int) -> float:
        i = self.degree - k
        return self._coeffs[i] if i >= 0 else 0.0

    @property
    def a(self) -> float:
        return self._from_top(0)

    @property
    def b(self) -> float:
        return self._from_top(1)

    @property
    def c(self) -> float:
        return self._from_top(2)

    @property
    def slope(self) -> float:
        return self._coeffs[1] if self.degree >= 1 else 0.0

    @property
    def intercept(self) -> float:
        return self._coeffs[0]

    def at(self, x: float) -> float:
        return float(P.polyval(x, self._coeffs))

    def __call__(self, x: float) -> float:
        return self.at(x)

    @property
    def derivative(self) -> Polynomial:
        if self.degree < 1:
            return Polynomial((0.0,))
        return Polynomial(P.polyder(self._coeffs))

    def shifted_left(self, by: float) -> Polynomial:
        """返回 g(x) = f(x + by)。"""

        out = np.zeros(len(self._coeffs))
        for k, c in enumerate(self._coeffs):
            term = c * P.polypow((by, 1.0), k)
            out[: len(term)] += term
        return Polynomial(out)

    # ------------------------------------------------------------------
    # 算术
    # ------------------------------------------------------------------

    def __add__(self, other: Polynomial | float) -> Polynomial:
        if isinstance(other, Polynomial):
            n = max(len(self._coeffs), len(other._coeffs))
            lhs = self._coeffs + (0.0,) * (n - len(self._coeffs))
            rhs = other._coeffs + (0.0,) * (n - len(other._coeffs))
            return Polynomial(tuple(x + y for x, y in zip(lhs, rhs)))
        return Polynomial((self._coeffs[0] + float(other),) + self._coeffs[1:])

    __radd__ = __add__

    def __neg__(self) -> Polynomial:
        return Polynomial(tuple(-c for c in self._coeffs))

    def __sub__(self, other: Polynomial | float) -> Polynomial:
        return self + (-other)

    def __mul__(self, other: Polynomial | float) -> Polynomial:
        if isinstance(other, Polynomial):
            n = len(self._coeffs) + len(other._coeffs) - 1
            return Polynomial(_padded(P.polymul(self._coeffs, other._coeffs), n))
        return Polynomial(tuple(c * float(other) for c in self._coeffs))

    __rmul__ = __mul__

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Polynomial):
            return NotImplemented
        return self._coeffs == other._coeffs

    def __hash__(self) -> int:
        return hash(self._coeffs)

    def __repr__(self) -> str:
        terms = " + ".join(f"{c:.3f}x^{i}" for i, c in reversed(list(enumerate(self._coeffs))))
        return f"Polynomial({terms})"


# ----------------------------------------------------------------------
# 求根
# ----------------------------------------------------------------------


def solve_quadratic(a: float, b: float, c: float) -> tuple[float, float] | None:
    """求解 a*x^2 + b*x + c = 0 的实根（升序）。

    说明：
        - a == 0 时退化为一次方程，唯一解返回两次。
        - 无实根（或 a=b=0）返回 None。
    """

    if not all(math.isfinite(v) for v in (a, b, c)):
        return None

    if a == 0.0:
        if b == 0.0:
            return None
        x = -c / b
        return x, x

    discriminant = b * b - 4.0 * a * c
    if discriminant < 0.0:
        return None

    # a 接近 0 时直接套公式会在小根上严重相消，这里用 c/q 求第二个根。
    q = -0.5 * (b + math.copysign(math.sqrt(discriminant), b))
    if q == 0.0:
        return 0.0, 0.0
    x1, x2 = q / a, c / q
    return (x1, x2) if x1 <= x2 else (x2, x1)


def solve_polynomial_equals(poly: Polynomial, value: float) -> tuple[float, float] | None:
    """求解 poly(x) = value，poly 的次数不超过 2。"""

    if poly.degree > 2:
        raise ValueError(f"solve_polynomial_equals 只支持次数<=2，实际 degree={poly.degree}")
    return solve_quadratic(poly.a if poly.degree == 2 else 0.0,
                           poly.b if poly.degree == 2 else poly.slope,
                           poly.intercept - value)


def solve_quadratic_nearest(poly: Polynomial, value: float, guess: float) -> float | None:
    """求解 poly(x) = value，返回距离 guess 最近的根。"""

    roots = solve_polynomial_equals(poly, value)
    if roots is None:
        return None
    x1, x2 = roots
    return x1 if abs(x1 - guess) < abs(x2 - guess) else x2


def linear_zero(line: Polynomial) -> float | None:
    """直线的零点；斜率为 0 时返回 None。"""

    if line.slope == 0.0:
        return None
    return -line.intercept / line.slope


def bisection(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    *,
    tolerance: float = 1e-9,
    max_iterations: int = 200,
) -> float | None:
    """二分法求 f 在 [lower, upper] 上的零点。

    Returns:
        零点；区间端点同号时返回 None。
    """

    f_lo, f_hi = f(lower), f(upper)
    if f_lo == 0.0:
        return float(lower)
    if f_hi == 0.0:
        return float(upper)
    if (f_lo > 0.0) == (f_hi > 0.0):
        return None

    lo, hi = float(lower), float(upper)
    for _ in range(int(max_iterations)):
        mid = 0.5 * (lo + hi)
        f_mid = f(mid)
        if f_mid == 0.0 or 0.5 * abs(hi - lo) < tolerance:
            return mid
        if (f_mid > 0.0) == (f_lo > 0.0):
            lo, f_lo = mid, f_mid
        else:
            hi = mid
    return 0.5 * (lo + hi)


def _extremum_candidates(poly: Polynomial, lo: float, hi: float) -> list[float]:
    if poly.degree > 2:
        raise ValueError(f"只支持次数<=2 的多项式，实际 degree={poly.degree}")
    xs = [lo, hi]
    if poly.degree == 2 and poly.a != 0.0:
        apex = -0.5 * poly.b / poly.a
        if lo <= apex <= hi:
            xs.append(apex)
    return [poly.at(x) for x in xs]


def parabola_minimum_in(poly: Polynomial, lo: float, hi: float) -> float:
    """次数<=2 的多项式在闭区间上的最小值。"""

    return min(_extremum_candidates(poly, lo, hi))


def parabola_maximum_in(poly: Polynomial, lo: float, hi: float) -> float:
    """次数<=2 的多项式在闭区间上的最大值。"""

    return max(_extremum_candidates(poly, lo, hi))


# ----------------------------------------------------------------------
# 回归
# ----------------------------------------------------------------------


def _sanitize_fit_inputs(x: Sequence[float], y: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    """清洗拟合输入，丢弃 NaN/Inf 样本。"""

    xa = np.asarray(x, dtype=float).reshape(-1)
    ya = np.asarray(y, dtype=float).reshape(-1)
    n = int(min(xa.size, ya.size))
    xa, ya = xa[:n], ya[:n]

    mask = np.isfinite(xa) & np.isfinite(ya)
    if not bool(np.all(mask)):
        xa, ya = xa[mask], ya[mask]
    return xa, ya


def _line_fit_closed_form(x: np.ndarray, y: np.ndarray) -> tuple[float, float] | None:
    """最小二乘拟合 y = slope*x + intercept 的闭式解。"""

    n = float(x.size)
    sx = float(np.sum(x))
    sxx = float(np.sum(x * x))
    sy = float(np.sum(y))
    sxy = float(np.sum(x * y))

    denom = n * sxx - sx * sx
    if not math.isfinite(denom) or abs(denom) < 1e-12:
        return None

    slope = (n * sxy - sx * sy) / denom
    intercept = (sxx * sy - sx * sxy) / denom
    return float(slope), float(intercept)


def poly_regression(x: Sequence[float], y: Sequence[float], degree: int) -> Polynomial | None:
    """最小二乘多项式回归。

    Args:
        x: 时间（横坐标）。
        y: 观测值。
        degree: 多项式次数（>=0）。

    Returns:
        拟合得到的 Polynomial；样本不足（不同 x 少于 degree+1）或方程退化时返回 None。
    """

    if degree < 0:
        raise ValueError(f"degree 必须 >= 0，实际是：{degree}")

    xa, ya = _sanitize_fit_inputs(x, y)
    if np.unique(xa).size < degree + 1:
        return None

    if degree == 0:
        return Polynomial((float(np.mean(ya)),))

    if degree == 1:
        fit = _line_fit_closed_form(xa, ya)
        if fit is None:
            return None
        slope, intercept = fit
        return Polynomial.line(slope, intercept)

    # 平移横坐标以改善范德蒙矩阵的条件数，拟合后再平移回来。
    x_shift = float(np.mean(xa))
    vander = np.vander(xa - x_shift, N=degree + 1, increasing=True)
    try:
        coeffs, _res, rank, _sv = np.linalg.lstsq(vander, ya, rcond=None)
    except np.linalg.LinAlgError:
        return None

    if int(rank) < degree + 1 or not bool(np.all(np.isfinite(coeffs))):
        return None

    return Polynomial(coeffs.tolist()).shifted_left(-x_shift)
