"""
Detekcja zmian: mozaika z jednego dnia, iloraz względem obrazu bazowego
i binaryzacja progiem Otsu.
"""

import logging

import numpy as np

from floodmap.compositor import focal_mean
from floodmap.errors import NoImageryError
from floodmap.models import ChangeDetection, OrbitDirection
from floodmap.threshold import otsu_threshold
from floodmap.utils import add_days, format_date

logger = logging.getLogger(__name__)


def mosaic(series):
    """
    Łączy sceny w jeden raster; piksel pochodzi z pierwszej sceny,
    która ma w nim poprawne dane.
    """
    first = series.acquisitions[0].raster
    data = np.full(first.data.shape, np.nan)
    valid = np.zeros(first.shape, dtype=bool)

    for acq in series:
        first.require_same_grid(acq.raster, f"kafel {acq.acquired:%Y-%m-%d %H:%M}")
        take = acq.raster.valid & ~valid
        data[:, take] = acq.raster.data[:, take]
        valid |= take

    return first.with_data(data, valid=valid)


def ratio(after, before):
    """
    Iloraz after / before piksel po pikselu.

    Brak danych w którymkolwiek rastrze albo zero w mianowniku
    daje piksel bez danych.
    """
    after.require_same_grid(before, "obraz bazowy")
    with np.errstate(divide='ignore', invalid='ignore'):
        values = after.data / before.data
    valid = after.valid & before.valid & np.all(before.data != 0, axis=0)
    valid &= np.all(np.isfinite(values), axis=0)
    return after.with_data(np.where(valid, values, np.nan), valid=valid)


def binarize(raster, threshold):
    """1 tam gdzie wartość > próg, 0 w pozostałych poprawnych pikselach"""
    binary = (raster.band(0) > threshold).astype(np.float64)
    return raster.with_data(
        np.where(raster.valid, binary, np.nan),
        valid=raster.valid,
        band_names=raster.band_names[:1],
    )


def detect_change(series, day, direction, orbit_track, baseline, smoothing_radius,
                  region, buckets=255) -> ChangeDetection:
    """
    Detekcja zmian dla jednej daty akwizycji.

    Args:
        series (RasterTimeSeries): Seria scen z okresu monitorowania
        day (date): Data akwizycji
        direction (OrbitDirection): Kierunek przelotu
        orbit_track (int): Numer orbity względnej
        baseline (Raster): Wygładzony obraz bazowy
        smoothing_radius (float): Promień filtra kołowego
        region: Obszar zainteresowania (shapely)
        buckets (int): Liczba przedziałów histogramu

    Returns:
        ChangeDetection: Binarna maska zmian wraz z progiem

    Raises:
        NoImageryError: Jeśli tego dnia nie ma pasującej sceny
    """
    direction = OrbitDirection(direction)
    tiles = series.filter(on_date=day, direction=direction, track=orbit_track)
    if not len(tiles):
        raise NoImageryError(
            f"Brak scen {direction.value} (orbita {orbit_track}) "
            f"w dniu {format_date(day)} - {add_days(day, 1)}",
            date=day,
            direction=direction,
        )
    logger.info(f"Wybrane kafle {format_date(day)} {direction.value}: ({len(tiles)})")

    after = focal_mean(mosaic(tiles), smoothing_radius)
    difference = ratio(after, baseline)
    threshold = otsu_threshold(difference, region, buckets)
    logger.info(f"Próg Otsu dla {format_date(day)} {direction.value}: {threshold:.4f}")

    return ChangeDetection(
        date=tiles.acquisitions[0].date,
        direction=direction,
        mask=binarize(difference, threshold),
        threshold=threshold,
        tile_count=len(tiles),
    )
