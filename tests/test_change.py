from datetime import date

import numpy as np
import pytest

from conftest import acquisition, make_raster, region_for
from floodmap.change import binarize, detect_change, mosaic, ratio
from floodmap.errors import NoImageryError
from floodmap.models import OrbitDirection, RasterTimeSeries


class TestRatio:
    def test_invalid_pixels_propagate(self):
        after_valid = np.ones((3, 3), dtype=bool)
        after_valid[0, 0] = False
        before_valid = np.ones((3, 3), dtype=bool)
        before_valid[2, 2] = False

        after = make_raster(np.full((3, 3), -20.0), after_valid)
        before = make_raster(np.full((3, 3), -10.0), before_valid)
        result = ratio(after, before)

        assert not result.valid[0, 0]
        assert not result.valid[2, 2]
        assert np.isnan(result.band(0)[0, 0])
        assert result.band(0)[1, 1] == 2.0

    def test_division_by_zero_is_no_data(self):
        before = np.full((2, 2), -10.0)
        before[0, 1] = 0.0
        result = ratio(make_raster(np.full((2, 2), -5.0)), make_raster(before))
        assert not result.valid[0, 1]
        assert result.valid.sum() == 3


class TestMosaic:
    def test_first_valid_tile_wins(self):
        left = np.zeros((4, 4), dtype=bool)
        left[:, :2] = True
        series = RasterTimeSeries((
            acquisition(np.full((4, 4), 2.0), "2024-07-05T00:11:00"),
            acquisition(np.full((4, 4), 1.0), "2024-07-05T00:10:00", valid=left),
        ))
        result = mosaic(series)
        assert (result.band(0)[:, :2] == 1.0).all()
        assert (result.band(0)[:, 2:] == 2.0).all()
        assert result.valid.all()


class TestDetectChange:
    def setup_method(self):
        self.before = make_raster(np.full((20, 20), -15.0))
        during = np.full((20, 20), -15.0)
        during[5:11, 5:11] = -25.0
        self.series = RasterTimeSeries((
            acquisition(during, "2024-07-05T00:10:00"),
            acquisition(np.full((20, 20), -30.0), "2024-07-05T00:10:00", track=99),
        ))
        self.region = region_for((20, 20))

    def test_flooded_block_is_detected(self):
        change = detect_change(
            self.series, date(2024, 7, 5), OrbitDirection.ASCENDING, 114,
            self.before, 0, self.region,
        )
        mask = change.mask.band(0)
        assert change.tile_count == 1
        assert change.threshold == pytest.approx(1.0)
        assert mask[5:11, 5:11].all()
        assert mask.sum() == 36

    def test_no_tiles_on_date(self):
        with pytest.raises(NoImageryError) as err:
            detect_change(
                self.series, date(2024, 7, 6), "ASCENDING", 114,
                self.before, 0, self.region,
            )
        assert err.value.date == date(2024, 7, 6)
        assert err.value.direction == OrbitDirection.ASCENDING

    def test_binarize_keeps_invalid_pixels(self):
        valid = np.ones((2, 2), dtype=bool)
        valid[1, 1] = False
        binary = binarize(make_raster([[0.5, 2.0], [3.0, 9.0]], valid), 1.0)
        assert binary.band(0)[0, 0] == 0
        assert binary.band(0)[0, 1] == 1
        assert not binary.valid[1, 1]
