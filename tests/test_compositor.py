import numpy as np
import pytest

from conftest import acquisition, make_raster
from floodmap.compositor import build_baseline, circle_kernel, focal_mean, median_composite
from floodmap.errors import NoImageryError, ShapeMismatchError
from floodmap.models import DateRange, OrbitDirection, RasterTimeSeries

BEFORE = DateRange('2023-06-30', '2023-07-30')


class TestFocalMean:
    def test_circle_kernel(self):
        kernel = circle_kernel(2, 1)
        assert kernel.shape == (5, 5)
        assert kernel[0, 0] == 0
        assert kernel[2, 0] == 1
        assert kernel.sum() == 13

    def test_radius_below_pixel_size_is_identity(self):
        raster = make_raster(np.arange(16).reshape(4, 4))
        assert focal_mean(raster, 0.5) is raster

    def test_invalid_pixels_are_ignored(self):
        values = np.full((7, 7), 3.0)
        values[3, 3] = 1000.0
        valid = np.ones((7, 7), dtype=bool)
        valid[3, 3] = False

        smoothed = focal_mean(make_raster(values, valid), 2)
        assert not smoothed.valid[3, 3]
        np.testing.assert_allclose(smoothed.band(0)[smoothed.valid], 3.0)

    def test_smoothing_reduces_speckle(self):
        rng = np.random.default_rng(1)
        values = rng.normal(-15, 3, (30, 30))
        smoothed = focal_mean(make_raster(values), 3)
        assert smoothed.band(0).std() < values.std()


class TestBaseline:
    def test_single_tile_keeps_pixel_count(self):
        tile = acquisition(np.full((12, 9), -14.0), "2023-07-05T00:10:00")
        series = RasterTimeSeries((tile,))

        composite = build_baseline(series, BEFORE, OrbitDirection.ASCENDING, 114, 20)
        assert composite.raster.pixel_count == tile.raster.pixel_count
        assert composite.image_count == 1
        np.testing.assert_allclose(composite.raster.band(0), -14.0)

    def test_median_across_time(self):
        series = RasterTimeSeries((
            acquisition(np.full((3, 3), 1.0), "2023-07-01"),
            acquisition(np.full((3, 3), 10.0), "2023-07-13"),
            acquisition(np.full((3, 3), 2.0), "2023-07-25"),
        ))
        composite = build_baseline(series, BEFORE, "ASCENDING", 114, 0)
        np.testing.assert_allclose(composite.raster.band(0), 2.0)
        assert composite.first_date.isoformat() == "2023-07-01"
        assert composite.last_date.isoformat() == "2023-07-25"

    def test_median_skips_missing_observations(self):
        valid = np.ones((2, 2), dtype=bool)
        valid[0, 0] = False
        series = RasterTimeSeries((
            acquisition(np.full((2, 2), 4.0), "2023-07-01", valid=valid),
            acquisition(np.full((2, 2), 6.0), "2023-07-13"),
        ))
        median = median_composite(series)
        assert median.band(0)[0, 0] == 6.0
        assert median.band(0)[1, 1] == 5.0

    def test_filters_direction_track_and_range(self):
        series = RasterTimeSeries((
            acquisition(np.full((3, 3), 1.0), "2023-07-01", track=114),
            acquisition(np.full((3, 3), 50.0), "2023-07-02", track=99),
            acquisition(np.full((3, 3), 50.0), "2023-07-03", direction="DESCENDING", track=114),
            acquisition(np.full((3, 3), 50.0), "2023-07-30", track=114),
        ))
        composite = build_baseline(series, BEFORE, "ASCENDING", 114, 0)
        assert composite.image_count == 1
        np.testing.assert_allclose(composite.raster.band(0), 1.0)

    def test_no_imagery(self):
        series = RasterTimeSeries((acquisition(np.ones((3, 3)), "2023-07-01", track=114),))
        with pytest.raises(NoImageryError):
            build_baseline(series, BEFORE, "DESCENDING", 150, 50)

    def test_misaligned_tiles(self):
        series = RasterTimeSeries((
            acquisition(np.ones((3, 3)), "2023-07-01"),
            acquisition(np.ones((4, 4)), "2023-07-13"),
        ))
        with pytest.raises(ShapeMismatchError):
            build_baseline(series, BEFORE, "ASCENDING", 114, 0)
