# 都道府県別人口密度コロプレス図の設定

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

DENSITY_PATH = "japanpopdensity.csv"
GEOMETRY_PATH = "jpntopo.json"
# GADM v3.6 の都道府県レベル（level 1）
OBJECT_NAME = "gadm36_JPN_1"
NAME_FIELD = "NAME_1"

# 人/km² のしきい値（8個 -> 9色）
THRESHOLDS = (1.0, 10.0, 50.0, 200.0, 500.0, 1000.0, 2000.0, 4000.0)
# ColorBrewer BuPu (9 classes)
BUPU_9 = (
    "#f7fcfd",
    "#e0ecf4",
    "#bfd3e6",
    "#9ebcda",
    "#8c96c6",
    "#8c6bb1",
    "#88419d",
    "#810f7c",
    "#4d004b",
)
NO_DATA_COLOR = "#d9d9d9"

CAPTION = "Population per square kilometer"
TITLE = "Japan Population Density by Prefecture"

OUTPUT_MODES = ("png", "html", "both")
OUTPUT_MODE = "png"
OUTPUT_PNG = "japan_prefecture_density.png"
OUTPUT_HTML = "japan_prefecture_density.html"

CACHE_DIR = Path(".cache") / "jpn_density"


@dataclass(frozen=True)
class Margin:
    top: int = 20
    right: int = 30
    bottom: int = 30
    left: int = 80


@dataclass(frozen=True)
class RenderConfig:
    """
    1回の実行に必要な設定をまとめたもの（変更不可）。

    幅・高さはマージンを除いた描画領域のピクセル数。
    """

    density_path: str | Path = DENSITY_PATH
    geometry_path: str | Path = GEOMETRY_PATH
    object_name: str | None = OBJECT_NAME
    name_field: str = NAME_FIELD

    margin: Margin = field(default_factory=Margin)
    width: int = 1060 - 80 - 30
    height: int = 660 - 20 - 30
    # Mercator の中心（経度, 緯度）
    center: tuple[float, float] = (147.0, 38.0)

    thresholds: tuple[float, ...] = THRESHOLDS
    palette: tuple[str, ...] = BUPU_9
    no_data_color: str = NO_DATA_COLOR

    legend_domain: tuple[float, float] = (30.0, 6000.0)
    legend_range: tuple[float, float] = (450.0, 900.0)
    legend_offset: tuple[float, float] = (50.0, 40.0)
    legend_bar_height: float = 8.0
    legend_tick_size: float = 15.0
    caption: str = CAPTION
    title: str = TITLE

    output_mode: str = OUTPUT_MODE
    output_png: str | Path = OUTPUT_PNG
    output_html: str | Path = OUTPUT_HTML
    dpi: int = 100
    fill_alpha: float = 1.0
    cache_dir: Path = CACHE_DIR

    @property
    def outer_width(self) -> int:
        return int(self.width + self.margin.left + self.margin.right)

    @property
    def outer_height(self) -> int:
        return int(self.height + self.margin.top + self.margin.bottom)

    def replace(self, **changes) -> RenderConfig:
        return dataclasses.replace(self, **changes)

    def validate(self) -> RenderConfig:
        t = [float(v) for v in self.thresholds]
        if not t:
            raise ValueError("thresholds must not be empty")
        if any(b <= a for a, b in zip(t, t[1:])):
            raise ValueError(f"thresholds must be strictly ascending, got: {self.thresholds!r}")
        if len(self.palette) != len(t) + 1:
            raise ValueError(
                f"palette must have len(thresholds)+1 = {len(t) + 1} colors, "
                f"got {len(self.palette)}"
            )
        if self.output_mode not in OUTPUT_MODES:
            raise ValueError(f"output_mode must be one of: {', '.join(OUTPUT_MODES)}")
        d0, d1 = self.legend_domain
        if d0 < 0 or d1 < 0 or d0 == d1:
            raise ValueError(f"invalid legend_domain for sqrt scale: {self.legend_domain!r}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width and height must be positive")
        return self
