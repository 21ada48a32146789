"""End-to-end tests for jpn_density/pipeline.py using files in tmp_path."""

import math

import pytest

from jpn_density.config import BUPU_9, NO_DATA_COLOR
from jpn_density.classify import classifier_from_config
from jpn_density.pipeline import run


class TestRun:
    def test_png_pipeline(self, config, capsys):
        result = run(config)
        regions = result.regions.set_index("NAME_1")

        assert regions.loc["Tokyo", "density"] == 6000.0
        # 同じ region の2行目（300）が勝つ
        assert regions.loc["Osaka", "density"] == 300.0
        assert math.isnan(regions.loc["Hokkaido", "density"])
        assert "Okinawa" not in regions.index

        assert result.outputs == [config.output_png]
        assert config.output_png.exists()

        out = capsys.readouterr().out
        assert "join: matched 2/3 regions" in out
        assert "Okinawa" in out
        assert f"saved: {config.output_png}" in out

    def test_classifier_colors_for_joined_regions(self, config):
        result = run(config)
        classify = classifier_from_config(config)
        colors = dict(zip(result.regions["NAME_1"], result.regions["density"].map(classify)))
        assert colors["Tokyo"] == BUPU_9[-1]
        assert colors["Osaka"] == BUPU_9[4]
        assert colors["Hokkaido"] == NO_DATA_COLOR

    def test_report(self, config):
        report = run(config).report
        assert report.unmatched_records == ["Okinawa"]
        assert report.duplicate_records == ["Osaka"]

    def test_tokyo_round_trip(self, tmp_path, topology_file, make_csv, config):
        csv = make_csv(tmp_path / "tokyo.csv", [("Tokyo", "6000")])
        result = run(config.replace(density_path=csv))
        tokyo = result.regions[result.regions["NAME_1"] == "Tokyo"]
        assert len(tokyo) == 1
        assert tokyo["density"].iloc[0] == 6000.0
        assert classifier_from_config(config)(tokyo["density"].iloc[0]) == BUPU_9[-1]

    def test_html_mode(self, config):
        result = run(config.replace(output_mode="html"))
        assert result.outputs == [config.output_html]
        assert "Population per square kilometer" in config.output_html.read_text(encoding="utf-8")

    def test_missing_density_file_raises(self, config, tmp_path):
        with pytest.raises(FileNotFoundError):
            run(config.replace(density_path=tmp_path / "missing.csv"))

    def test_missing_geometry_file_raises(self, config, tmp_path):
        with pytest.raises(FileNotFoundError):
            run(config.replace(geometry_path=tmp_path / "missing.json"))

    def test_invalid_config_raises_before_loading(self, config, tmp_path):
        with pytest.raises(ValueError):
            run(config.replace(output_mode="svg", density_path=tmp_path / "missing.csv"))

    def test_header_only_table_draws_every_region_as_no_data(self, config, tmp_path, make_csv, capsys):
        csv = make_csv(tmp_path / "empty.csv", [])
        result = run(config.replace(density_path=csv, output_mode="both"))
        assert result.regions["density"].isna().all()
        classify = classifier_from_config(config)
        assert set(result.regions["density"].map(classify)) == {NO_DATA_COLOR}
        assert config.output_png.exists()
        assert config.output_html.exists()
        assert "warn: no density rows" in capsys.readouterr().out
