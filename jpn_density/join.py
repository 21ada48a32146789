# region 名で人口密度をジオメトリに結合する

from dataclasses import dataclass, field

import geopandas as gpd
import numpy as np
import pandas as pd

from .config import NAME_FIELD
from .loader import iter_density_records


def _first_positions(names: list) -> dict:
    first: dict = {}
    for pos, name in enumerate(names):
        first.setdefault(name, pos)
    return first


def join_density(
    regions: gpd.GeoDataFrame,
    records: pd.DataFrame,
    *,
    name_field: str = NAME_FIELD,
    value_field: str = "density",
) -> gpd.GeoDataFrame:
    """
    records の density を、名前が完全一致する region に書き込んだコピーを返す。

    - 同名の region が複数ある場合は最初の1つだけに入る
    - 同じ region 名の record が複数ある場合は後の行で上書きされる（最後が勝つ）
    - 一致する region がない record は無視する
    - record がない region の density は NaN（欠損）のまま

    名前は大文字小文字・空白を含めてそのまま比較する。入力は変更しない。
    """
    out = regions.copy()
    values = np.full(len(out), np.nan, dtype=float)

    first = _first_positions(out[name_field].tolist())
    for rec in iter_density_records(records):
        pos = first.get(rec.region)
        if pos is None:
            continue
        values[pos] = rec.density

    out[value_field] = values
    return out


@dataclass
class JoinReport:
    matched_regions: list[str] = field(default_factory=list)
    unmatched_regions: list[str] = field(default_factory=list)
    unmatched_records: list[str] = field(default_factory=list)
    duplicate_records: list[str] = field(default_factory=list)

    def summary(self) -> str:
        n_regions = len(self.matched_regions) + len(self.unmatched_regions)
        return (
            f"matched {len(self.matched_regions)}/{n_regions} regions, "
            f"unmatched records: {len(self.unmatched_records)}, "
            f"duplicate records: {len(self.duplicate_records)}"
        )


def join_report(
    regions: gpd.GeoDataFrame,
    records: pd.DataFrame,
    *,
    name_field: str = NAME_FIELD,
) -> JoinReport:
    """join_density と同じ規則で、どの名前が一致した/しなかったかを集計する。"""
    # join_density と同じく生の値で比較する
    names = regions[name_field].tolist()
    first = _first_positions(names)
    rec_names = [rec.region for rec in iter_density_records(records)]
    rec_set = set(rec_names)

    report = JoinReport()
    for pos, name in enumerate(names):
        if first[name] != pos:
            # 同名2つ目以降の region は値を受け取らない
            report.unmatched_regions.append(name)
        elif name in rec_set:
            report.matched_regions.append(name)
        else:
            report.unmatched_regions.append(name)

    seen: set[str] = set()
    for name in rec_names:
        if name not in first and name not in report.unmatched_records:
            report.unmatched_records.append(name)
        if name in seen and name not in report.duplicate_records:
            report.duplicate_records.append(name)
        seen.add(name)
    return report
