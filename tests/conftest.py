from datetime import datetime

import numpy as np
import pytest
from rasterio.transform import from_origin
from shapely.geometry import box

from floodmap.config import FloodMapConfig
from floodmap.models import Acquisition, Raster, RasterTimeSeries
from floodmap.sources import PERMANENT_WATER, SLOPE

TRANSFORM = from_origin(0, 100, 1, 1)
CRS = "EPSG:32646"


def make_raster(values, valid=None, name="VH", transform=TRANSFORM):
    values = np.asarray(values, dtype=float)
    names = (name,) if values.ndim == 2 else tuple(f"{name}{i}" for i in range(values.shape[0]))
    return Raster(values, transform, CRS, names, valid)


def region_for(shape):
    rows, cols = shape
    return box(0, 100 - rows, cols, 100)


def acquisition(values, when, direction="ASCENDING", track=114, valid=None):
    return Acquisition(
        raster=make_raster(values, valid),
        acquired=datetime.fromisoformat(when),
        orbit_direction=direction,
        orbit_track=track,
    )


class InMemoryStore:
    """Magazyn scen w pamięci na potrzeby testów"""

    def __init__(self, acquisitions, layers):
        self.series = RasterTimeSeries(tuple(acquisitions))
        self.layers = layers
        self.queries = []

    def query(self, sensor, polarization, resolution, region, date_range,
              orbit_direction, orbit_track, instrument_mode=None):
        self.queries.append((date_range, orbit_direction, orbit_track, instrument_mode))
        return self.series.filter(date_range=date_range, direction=orbit_direction, track=orbit_track)

    def auxiliary_layer(self, name):
        return self.layers[name]


@pytest.fixture
def flood_scene():
    """
    Scena 20x20 w dB: tło -15, w okresie powodzi blok 6x6 spada do -25.
    """
    shape = (20, 20)
    before = np.full(shape, -15.0)
    during = before.copy()
    during[5:11, 5:11] = -25.0

    acquisitions = [
        acquisition(before, "2023-07-01T00:10:00"),
        acquisition(before, "2023-07-13T00:10:00"),
        acquisition(during, "2024-07-05T00:10:00"),
    ]
    layers = {
        PERMANENT_WATER: make_raster(np.zeros(shape), name=PERMANENT_WATER),
        SLOPE: make_raster(np.zeros(shape), name=SLOPE),
    }
    return InMemoryStore(acquisitions, layers), region_for(shape)


@pytest.fixture
def config(tmp_path):
    return FloodMapConfig.from_dict({
        'before_range': ['2023-06-30', '2023-07-30'],
        'during_range': ['2024-06-30', '2024-07-30'],
        'smoothing_radius': 0,
        'batch_size': 2,
        'buffer_radius': 1.5,
        'output_dir': str(tmp_path / 'exports'),
    })
