# 人口密度 -> 色 の段階区分と、凡例用の平方根スケール

import math
from bisect import bisect_right
from typing import NamedTuple, Sequence

import numpy as np

from .config import BUPU_9, NO_DATA_COLOR, THRESHOLDS


def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


class ThresholdScale:
    """
    しきい値で区切った段階色（d3.scaleThreshold 相当）。

    しきい値ちょうどの値は上側の区分に入る（bisect_right）。
    None / NaN は「データなし」として no_data 色を返す。
    """

    def __init__(
        self,
        domain: Sequence[float] = THRESHOLDS,
        palette: Sequence[str] = BUPU_9,
        *,
        no_data: str = NO_DATA_COLOR,
    ):
        domain = [float(v) for v in domain]
        if any(b <= a for a, b in zip(domain, domain[1:])):
            raise ValueError(f"domain must be strictly ascending, got: {domain!r}")
        if len(palette) != len(domain) + 1:
            raise ValueError(
                f"palette must have {len(domain) + 1} colors for {len(domain)} thresholds, "
                f"got {len(palette)}"
            )
        self.domain = tuple(domain)
        self.palette = tuple(palette)
        self.no_data = no_data

    def bucket(self, value) -> int | None:
        if _is_missing(value):
            return None
        return bisect_right(self.domain, float(value))

    def __call__(self, value) -> str:
        i = self.bucket(value)
        if i is None:
            return self.no_data
        return self.palette[i]

    def colors(self, values) -> list[str]:
        arr = np.asarray(values, dtype=float)
        idx = np.searchsorted(np.asarray(self.domain), arr, side="right")
        missing = np.isnan(arr)
        return [self.no_data if m else self.palette[int(i)] for i, m in zip(idx, missing)]

    def invert_extent(self, color: str) -> tuple[float | None, float | None]:
        """色に対応する区間 [lo, hi) を返す。端は None。"""
        try:
            i = self.palette.index(color)
        except ValueError:
            raise ValueError(f"{color!r} is not in the palette") from None
        lo = self.domain[i - 1] if i > 0 else None
        hi = self.domain[i] if i < len(self.domain) else None
        return lo, hi


class SqrtScale:
    """平方根スケール（d3.scaleSqrt().rangeRound 相当）。クランプはしない。"""

    def __init__(
        self,
        domain: tuple[float, float] = (30.0, 6000.0),
        range: tuple[float, float] = (450.0, 900.0),
        *,
        round: bool = True,
    ):
        d0, d1 = (float(v) for v in domain)
        if d0 < 0 or d1 < 0:
            raise ValueError("sqrt scale domain must be non-negative")
        if d0 == d1:
            raise ValueError("sqrt scale domain must not be empty")
        self.domain = (d0, d1)
        self.range = (float(range[0]), float(range[1]))
        self.round = round

    def __call__(self, value: float) -> float:
        s0, s1 = math.sqrt(self.domain[0]), math.sqrt(self.domain[1])
        r0, r1 = self.range
        t = (math.sqrt(float(value)) - s0) / (s1 - s0)
        y = r0 + t * (r1 - r0)
        if self.round:
            return float(math.floor(y + 0.5))
        return y


class LegendItem(NamedTuple):
    lo: float
    hi: float
    x: float
    width: float
    color: str


def legend_items(scale: ThresholdScale, legend_scale: SqrtScale) -> list[LegendItem]:
    """
    凡例の矩形（各色1つ）を作る。

    区間の開いた端は凡例スケールの domain の端で置き換える。
    最初の区間は幅が負になることがある（描画側でスキップする）。
    """
    items: list[LegendItem] = []
    d0, d1 = legend_scale.domain
    for color in scale.palette:
        lo, hi = scale.invert_extent(color)
        lo = d0 if lo is None else lo
        hi = d1 if hi is None else hi
        x0 = legend_scale(lo)
        x1 = legend_scale(hi)
        items.append(LegendItem(lo, hi, x0, x1 - x0, color))
    return items


def classifier_from_config(config) -> ThresholdScale:
    return ThresholdScale(config.thresholds, config.palette, no_data=config.no_data_color)


def legend_scale_from_config(config) -> SqrtScale:
    return SqrtScale(config.legend_domain, config.legend_range, round=True)
