import os
from datetime import date

import numpy as np
import pandas as pd
import geopandas as gpd
import pytest

from conftest import make_raster, region_for
from floodmap.export import Exporter, table_export_name, table_folder_name, vector_export_name
from floodmap.models import OrbitDirection, ZonalStatRecord
from floodmap.vectorize import vectorize


class TestNaming:
    def test_vector_export_name(self):
        name = vector_export_name("BGD", date(2024, 7, 5), OrbitDirection.ASCENDING)
        assert name == "BGD-Floods-2024-07-05-S1-ASCENDING"

    def test_vector_export_name_accepts_strings(self):
        assert vector_export_name("BGD", "2024-07-05", "DESCENDING") == "BGD-Floods-2024-07-05-S1-DESCENDING"

    def test_table_names(self):
        assert table_export_name(7) == "flood_analysis_batch_7"
        assert table_folder_name(date(2024, 7, 5), "ASCENDING") == "2024-07-05-ASCENDING"


class TestExporter:
    def test_export_table(self, tmp_path):
        exporter = Exporter(str(tmp_path))
        records = [
            ZonalStatRecord('a', 1.0, 2, '2024-07-31'),
            ZonalStatRecord('b', 0.25, 2, '2024-07-31'),
        ]
        path = exporter.export_table(records, 2, "2024-07-05-ASCENDING")

        assert path.endswith(os.path.join("2024-07-05-ASCENDING", "flood_analysis_batch_2.csv"))
        frame = pd.read_csv(path)
        assert list(frame.columns) == ['point_id', 'flood_status', 'batch_number', 'analysis_date']
        assert frame['flood_status'].tolist() == [1.0, 0.25]
        assert os.listdir(os.path.dirname(path)) == ["flood_analysis_batch_2.csv"]

    def test_export_vectors(self, tmp_path):
        values = np.zeros((6, 6))
        values[1:4, 1:4] = 1
        gdf = vectorize(make_raster(values), region_for((6, 6)))

        exporter = Exporter(str(tmp_path))
        path = exporter.export_vectors(gdf, "BGD-Floods-2024-07-05-S1-ASCENDING")

        assert os.path.exists(path)
        written = gpd.read_file(path)
        assert len(written) == 1
        assert written.geometry.area.sum() == 9.0
        assert not any(name.startswith('.staging') for name in os.listdir(tmp_path))

    def test_failed_vector_move_leaves_no_sidecars(self, tmp_path, monkeypatch):
        values = np.zeros((6, 6))
        values[1:4, 1:4] = 1
        gdf = vectorize(make_raster(values), region_for((6, 6)))

        real_replace = os.replace
        calls = []

        def replace_once(src, dst):
            calls.append(dst)
            if len(calls) > 1:
                raise OSError("dysk pełny")
            real_replace(src, dst)

        monkeypatch.setattr(os, 'replace', replace_once)
        exporter = Exporter(str(tmp_path))
        with pytest.raises(OSError):
            exporter.export_vectors(gdf, "BGD-Floods-2024-07-05-S1-ASCENDING")

        assert len(calls) == 2
        assert os.listdir(tmp_path) == []
