# コロプレス図の描画（PNG: matplotlib / HTML: folium）

import os
from pathlib import Path

import geopandas as gpd
from pyproj import CRS

from .classify import ThresholdScale, legend_items, legend_scale_from_config
from .config import RenderConfig

MPL_CONFIG_DIR = Path(".cache") / "matplotlib"


def _pyplot():
    """
    PNG 出力の直前に matplotlib を用意する（設定ディレクトリと Agg バックエンド）。
    """
    if "MPLCONFIGDIR" not in os.environ:
        MPL_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        os.environ["MPLCONFIGDIR"] = str(MPL_CONFIG_DIR)

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    return plt


def mercator_crs(center: tuple[float, float]) -> CRS:
    lon = float(center[0])
    return CRS.from_proj4(f"+proj=merc +lon_0={lon:g} +datum=WGS84 +units=m +no_defs")


def _drawable(regions: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    geom = regions.geometry
    keep = geom.notna() & ~geom.is_empty
    return regions.loc[keep].copy()


def draw_legend(fig, classifier: ThresholdScale, config: RenderConfig):
    """
    図全体をピクセル座標（左上原点）とする軸に、段階色の凡例を描く。

    幅が 0 以下の区間（最初の区間など）は描かない。
    """
    from matplotlib.patches import Rectangle

    W, H = config.outer_width, config.outer_height
    ax = fig.add_axes([0.0, 0.0, 1.0, 1.0], zorder=3)
    ax.set_xlim(0, W)
    ax.set_ylim(H, 0)
    ax.set_axis_off()

    x = legend_scale_from_config(config)
    ox = config.margin.left + config.legend_offset[0]
    oy = config.margin.top + config.legend_offset[1]
    bar_h = float(config.legend_bar_height)
    tick = float(config.legend_tick_size)

    for item in legend_items(classifier, x):
        if item.width <= 0:
            continue
        ax.add_patch(
            Rectangle((ox + item.x, oy), item.width, bar_h, facecolor=item.color, edgecolor="none")
        )

    for t in classifier.domain:
        tx = ox + x(t)
        ax.plot([tx, tx], [oy, oy + tick], color="#000000", linewidth=0.8)
        ax.text(tx, oy + tick + 3, f"{t:g}", ha="center", va="top", fontsize=8, color="#000000")

    ax.text(
        ox + x.range[0],
        oy - 6,
        config.caption,
        ha="left",
        va="bottom",
        fontsize=9,
        fontweight="bold",
        color="#000000",
    )
    return ax


def render_png(
    regions: gpd.GeoDataFrame,
    classifier: ThresholdScale,
    config: RenderConfig,
    path: str | Path | None = None,
) -> Path:
    g = _drawable(regions)
    if g.empty:
        raise ValueError("No region geometries to draw.")

    plt = _pyplot()
    W, H = config.outer_width, config.outer_height
    dpi = int(config.dpi)
    fig = plt.figure(figsize=(W / dpi, H / dpi), dpi=dpi)
    try:
        m = config.margin
        ax = fig.add_axes(
            [m.left / W, m.bottom / H, config.width / W, config.height / H]
        )
        ax.set_axis_off()

        g_plot = g.to_crs(mercator_crs(config.center))
        facecolors = classifier.colors(g_plot["density"].to_numpy(dtype=float))
        g_plot.plot(
            ax=ax,
            color=facecolors,
            edgecolor="#ffffff",
            linewidth=0.3,
            alpha=float(config.fill_alpha),
        )

        try:
            draw_legend(fig, classifier, config)
        except Exception as e:
            print(f"warn: failed to draw legend: {e}")

        out_path = Path(path if path is not None else config.output_png)
        fig.savefig(out_path, dpi=dpi, metadata={"Title": config.title})
    finally:
        plt.close(fig)

    print(f"saved: {out_path} ({W}x{H}px)")
    return out_path


def render_html(
    regions: gpd.GeoDataFrame,
    classifier: ThresholdScale,
    config: RenderConfig,
    path: str | Path | None = None,
) -> Path:
    import folium
    from branca.colormap import StepColormap

    g = _drawable(regions)
    if g.empty:
        raise ValueError("No region geometries to draw.")
    if g.crs is not None and not CRS.from_user_input(g.crs).equals(CRS.from_epsg(4326)):
        g = g.to_crs("EPSG:4326")

    minx, miny, maxx, maxy = g.total_bounds
    m = folium.Map(
        location=[(miny + maxy) / 2, (minx + maxx) / 2],
        zoom_start=5,
        tiles="cartodbpositron",
    )

    thresholds = [float(t) for t in classifier.domain]
    vmax = float(config.legend_domain[1])
    if vmax <= thresholds[-1]:
        vmax = thresholds[-1] * 2
    index = [0.0] + thresholds + [vmax]
    colormap = StepColormap(
        list(classifier.palette),
        index=index,
        vmin=index[0],
        vmax=vmax,
        caption=config.caption,
    )
    colormap.add_to(m)

    alpha = float(config.fill_alpha)

    def style_fn(feature: dict) -> dict:
        props = feature.get("properties", {})
        return {
            "fillColor": classifier(props.get("density")),
            "color": "#ffffff",
            "weight": 0.5,
            "fillOpacity": alpha,
        }

    name_field = config.name_field
    cols = [c for c in (name_field, "density") if c in g.columns]
    tooltip = folium.GeoJsonTooltip(
        fields=cols,
        aliases=["Region:" if c == name_field else "Density (people/km²):" for c in cols],
        localize=True,
        sticky=False,
    )

    folium.GeoJson(
        data=g[cols + ["geometry"]].to_json(),
        name="prefecture density",
        style_function=style_fn,
        tooltip=tooltip,
    ).add_to(m)

    m.fit_bounds([[miny, minx], [maxy, maxx]])
    out_path = Path(path if path is not None else config.output_html)
    m.save(str(out_path))
    print(f"saved: {out_path}")
    return out_path


def render(
    regions: gpd.GeoDataFrame,
    classifier: ThresholdScale,
    config: RenderConfig,
) -> list[Path]:
    outputs: list[Path] = []
    if config.output_mode in ("png", "both"):
        outputs.append(render_png(regions, classifier, config))
    if config.output_mode in ("html", "both"):
        outputs.append(render_html(regions, classifier, config))
    if not outputs:
        raise ValueError(f"Unknown output_mode: {config.output_mode!r}")
    return outputs
