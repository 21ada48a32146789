# 人口密度 CSV と都道府県ジオメトリの読み込み

import io
import json
import time
from pathlib import Path
from typing import Iterator, NamedTuple
from urllib.parse import urlparse

import geopandas as gpd
import pandas as pd
import requests
from shapely import make_valid

from .config import CACHE_DIR, NAME_FIELD, OBJECT_NAME

REQUIRED_COLUMNS = ("region", "density")
RETRY_STATUS = {429, 500, 502, 503, 504}


class DensityRecord(NamedTuple):
    region: str
    density: float


def is_url(source: object) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


def fetch_bytes(
    source: str | Path,
    *,
    session: requests.Session | None = None,
    cache_dir: Path | None = None,
) -> bytes:
    """
    ローカルパスまたは URL から中身を読む。

    URL の場合はダウンロードして cache_dir に保存し、次回以降はキャッシュを使う。
    """
    if not is_url(source):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")
        return path.read_bytes()

    url = str(source)
    cache_dir = Path(cache_dir) if cache_dir is not None else CACHE_DIR
    cache_dir.mkdir(parents=True, exist_ok=True)
    fname = Path(urlparse(url).path).name or "download.bin"
    cache_path = cache_dir / fname
    if cache_path.exists():
        return cache_path.read_bytes()

    owns_session = session is None
    if owns_session:
        session = requests.Session()
    try:
        print(f"download: {url}")
        for attempt in range(5):
            r = session.get(url, timeout=60)
            if r.status_code not in RETRY_STATUS:
                break
            retry_after = r.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                time.sleep(int(retry_after))
            else:
                time.sleep(2**attempt)
        r.raise_for_status()
        content = r.content
    finally:
        if owns_session:
            session.close()

    cache_path.write_bytes(content)
    return content


def read_density_table(data: bytes) -> pd.DataFrame:
    """
    CSV のバイト列を region/density の2列の DataFrame にする。

    density は float に変換し、数値にならない値は NaN のまま残す（行は落とさない）。
    同じ region が複数行あってもそのまま保持する。
    """
    df = None
    for enc in ("utf-8-sig", "utf-8", "cp932"):
        try:
            # region は文字列のまま（前後の空白も含めて）比較に使う
            df = pd.read_csv(
                io.BytesIO(data),
                encoding=enc,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=False,
            )
            break
        except UnicodeDecodeError:
            continue
    if df is None:
        raise RuntimeError("Could not decode density table (tried utf-8-sig, utf-8, cp932)")

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Density table is missing columns {missing}. Columns: {list(df.columns)}"
        )

    out = pd.DataFrame(
        {
            "region": df["region"].astype(str),
            "density": pd.to_numeric(df["density"].str.strip(), errors="coerce").astype(float),
        }
    )
    return out.reset_index(drop=True)


def load_density_records(
    source: str | Path,
    *,
    session: requests.Session | None = None,
    cache_dir: Path | None = None,
) -> pd.DataFrame:
    data = fetch_bytes(source, session=session, cache_dir=cache_dir)
    df = read_density_table(data)
    n_nan = int(df["density"].isna().sum())
    print(f"load: {len(df)} density rows from {source}")
    if n_nan:
        bad = df.loc[df["density"].isna(), "region"].head(5).tolist()
        print(f"warn: {n_nan} rows have non-numeric density, e.g. {bad}")
    return df


def iter_density_records(df: pd.DataFrame) -> Iterator[DensityRecord]:
    for region, density in zip(df["region"], df["density"]):
        yield DensityRecord(str(region), float(density))


def _is_topology(data: bytes) -> bool:
    try:
        doc = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError):
        return False
    return isinstance(doc, dict) and doc.get("type") == "Topology"


def _prepare_regions(gdf: gpd.GeoDataFrame, *, name_field: str) -> gpd.GeoDataFrame:
    if name_field not in gdf.columns:
        raise ValueError(
            f"Geometry properties have no {name_field!r} field. Columns: {list(gdf.columns)}"
        )
    invalid = gdf.geometry.notna() & ~gdf.geometry.is_valid
    if invalid.any():
        # 量子化した TopoJSON は自己交差することがある
        gdf = gdf.copy()
        gdf.loc[invalid, "geometry"] = gdf.loc[invalid, "geometry"].apply(make_valid)
    # density を書き込むのは join だけ
    if "density" in gdf.columns:
        gdf = gdf.drop(columns=["density"])
    if gdf.crs is None:
        gdf = gdf.set_crs("EPSG:4326")
    else:
        gdf = gdf.to_crs("EPSG:4326")
    return gdf.reset_index(drop=True)


def load_regions(
    source: str | Path,
    *,
    object_name: str | None = OBJECT_NAME,
    name_field: str = NAME_FIELD,
    session: requests.Session | None = None,
    cache_dir: Path | None = None,
) -> gpd.GeoDataFrame:
    """
    都道府県ジオメトリを読み込む（TopoJSON, GeoJSON, shapefile など）。

    TopoJSON は GDAL の TopoJSON ドライバで読み、object_name のオブジェクト
    （None なら最初のオブジェクト）をレイヤーとして取り出す。
    """
    if is_url(source):
        data = fetch_bytes(source, session=session, cache_dir=cache_dir)

        def open_source():
            return io.BytesIO(data)

        topology = _is_topology(data)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        def open_source():
            return path

        topology = path.suffix.lower() in {".json", ".topojson"} and _is_topology(
            path.read_bytes()
        )

    layers = gpd.list_layers(open_source())["name"].tolist()
    if object_name is not None and object_name in layers:
        layer = object_name
    elif topology and object_name is not None:
        raise KeyError(f"Topology object {object_name!r} not found. Objects: {layers}")
    elif layers:
        layer = layers[0]
    else:
        raise RuntimeError(f"No layers found in {source}")

    gdf = gpd.read_file(open_source(), layer=layer)
    if gdf.empty:
        raise RuntimeError(f"No regions found in {source} (layer {layer!r})")
    print(f"load: {len(gdf)} regions from {source} (layer {layer!r})")
    return _prepare_regions(gdf, name_field=name_field)
