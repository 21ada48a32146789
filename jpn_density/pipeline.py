# CSV 読み込み -> ジオメトリ読み込み -> 結合 -> 描画

from dataclasses import dataclass, field
from pathlib import Path

import geopandas as gpd
import numpy as np
import requests

from .classify import classifier_from_config
from .config import RenderConfig
from .join import JoinReport, join_density, join_report
from .loader import load_density_records, load_regions
from .render import render


@dataclass
class RunResult:
    regions: gpd.GeoDataFrame
    report: JoinReport
    outputs: list[Path] = field(default_factory=list)


def log_join(regions: gpd.GeoDataFrame, report: JoinReport) -> None:
    print(f"join: {report.summary()}")
    if report.unmatched_records:
        print(f"warn: records without a matching region (dropped): {report.unmatched_records[:10]}")
    if report.unmatched_regions:
        print(f"warn: regions without density (no data): {report.unmatched_regions[:10]}")
    if report.duplicate_records:
        print(f"warn: duplicate records, last row wins: {report.duplicate_records[:10]}")

    d = regions["density"].to_numpy(dtype=float)
    finite = d[np.isfinite(d)]
    if finite.size:
        print(f"density range: {finite.min():g} - {finite.max():g} (people/km²)")


def run(config: RenderConfig | None = None, *, session: requests.Session | None = None) -> RunResult:
    config = (config or RenderConfig()).validate()

    owns_session = session is None
    if owns_session:
        session = requests.Session()
    try:
        records = load_density_records(
            config.density_path, session=session, cache_dir=config.cache_dir
        )
        regions = load_regions(
            config.geometry_path,
            object_name=config.object_name,
            name_field=config.name_field,
            session=session,
            cache_dir=config.cache_dir,
        )
    finally:
        if owns_session:
            session.close()

    if records.empty:
        print(f"warn: no density rows in {config.density_path}; every region is drawn as no data")

    joined = join_density(regions, records, name_field=config.name_field)
    report = join_report(regions, records, name_field=config.name_field)
    log_join(joined, report)

    outputs = render(joined, classifier_from_config(config), config)
    return RunResult(joined, report, outputs)


def main() -> None:
    run()
