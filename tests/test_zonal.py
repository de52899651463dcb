import numpy as np
import pytest
import geopandas as gpd
from shapely.geometry import Point

from conftest import CRS, make_raster
from floodmap.errors import BatchIndexError
from floodmap.models import PointFeatureSet
from floodmap.zonal import BatchedZonalSampler, batch_count, batch_ranges, buffer_bounds


def points_at(coords, crs=CRS):
    gdf = gpd.GeoDataFrame(
        {'id': [f"p{i}" for i in range(len(coords))]},
        geometry=[Point(x, y) for x, y in coords],
        crs=crs,
    )
    return PointFeatureSet(gdf, 'id')


class TestBatches:
    @pytest.mark.parametrize("total,size", [(2500, 1000), (1000, 1000), (7, 3), (1, 5), (0, 4)])
    def test_ranges_cover_all_points_once(self, total, size):
        ranges = batch_ranges(total, size)
        assert len(ranges) == batch_count(total, size)
        covered = [i for _, start, stop in ranges for i in range(start, stop)]
        assert covered == list(range(total))
        assert [n for n, _, _ in ranges] == list(range(1, len(ranges) + 1))

    def test_buffer_bounds_is_a_box(self):
        area = buffer_bounds(Point(10, 20), 15)
        assert area.bounds == pytest.approx((-5.0, 5.0, 25.0, 35.0))
        assert area.area == pytest.approx(900.0)


class TestBatchedZonalSampler:
    def setup_method(self):
        values = np.zeros((10, 10))
        values[:, :5] = 1
        self.raster = make_raster(values, name='flood')

    def test_2500_points_give_three_batches(self):
        rng = np.random.default_rng(5)
        coords = rng.uniform(1, 9, (2500, 2)) + [0, 90]
        sampler = BatchedZonalSampler(points_at(coords), self.raster, buffer_radius=0.5, batch_size=1000)

        sizes = [len(records) for _, records in sampler.iter_batches()]
        assert sampler.batch_count == 3
        assert sizes == [1000, 1000, 500]

    def test_start_index_beyond_points_is_rejected(self):
        coords = [(2.5, 95.5)] * 2500
        sampler = BatchedZonalSampler(points_at(coords), self.raster, batch_size=1000)
        with pytest.raises(BatchIndexError):
            sampler.sample_batch(3000)
        with pytest.raises(BatchIndexError):
            sampler.sample_batch(2500)

    def test_mean_inside_buffer(self):
        points = points_at([(2.5, 95.5), (5.0, 95.0), (8.5, 91.5)])
        sampler = BatchedZonalSampler(
            points, self.raster, buffer_radius=1.0, batch_size=10, analysis_date='2024-07-31'
        )
        records = sampler.sample_batch(0)

        assert [r.point_id for r in records] == ['p0', 'p1', 'p2']
        assert records[0].flood_status == 1.0
        assert records[1].flood_status == 0.5
        assert records[2].flood_status == 0.0
        assert all(r.batch_number == 1 for r in records)
        assert all(r.analysis_date == '2024-07-31' for r in records)

    def test_point_outside_raster_has_no_value(self):
        sampler = BatchedZonalSampler(points_at([(50.0, 50.0)]), self.raster, buffer_radius=1.0)
        assert np.isnan(sampler.sample_batch(0)[0].flood_status)

    def test_batch_number_follows_start_index(self):
        coords = [(2.5, 95.5)] * 5
        sampler = BatchedZonalSampler(points_at(coords), self.raster, batch_size=2)
        records = sampler.sample_batch(4)
        assert len(records) == 1
        assert records[0].batch_number == 3
