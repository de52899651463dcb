"""
Kompozycja czasowa obrazu bazowego (przed powodzią).
"""

import logging
import warnings

import numpy as np
from scipy import ndimage

from floodmap.errors import NoImageryError
from floodmap.models import Composite, OrbitDirection
from floodmap.utils import describe_dates

logger = logging.getLogger(__name__)


def circle_kernel(radius, pixel_size):
    """Jądro kołowe o promieniu podanym w jednostkach CRS"""
    r = int(np.floor(radius / pixel_size)) if pixel_size > 0 else 0
    y, x = np.ogrid[-r:r + 1, -r:r + 1]
    return (x * x + y * y <= r * r).astype(np.float64)


def focal_mean(raster, radius):
    """
    Średnia w oknie kołowym - redukcja szumu plamkowego (speckle).

    Piksele bez danych nie wchodzą do średniej; maska poprawności
    wyniku jest taka sama jak rastra wejściowego.
    """
    kernel = circle_kernel(radius, raster.pixel_size)
    if kernel.size == 1:
        return raster

    weight = ndimage.convolve(raster.valid.astype(np.float64), kernel, mode='constant', cval=0.0)
    smoothed = np.empty_like(raster.data)
    for b in range(raster.band_count):
        filled = np.where(raster.valid, raster.data[b], 0.0)
        total = ndimage.convolve(filled, kernel, mode='constant', cval=0.0)
        with np.errstate(divide='ignore', invalid='ignore'):
            smoothed[b] = np.where(weight > 0, total / weight, np.nan)

    return raster.with_data(smoothed, valid=raster.valid & (weight > 0))


def median_composite(series):
    """Mediana per piksel po wszystkich scenach serii"""
    first = series.acquisitions[0].raster
    stack = []
    for acq in series:
        first.require_same_grid(acq.raster, f"scena {acq.acquired:%Y-%m-%d}")
        stack.append(np.where(acq.raster.valid, acq.raster.data, np.nan))

    stack = np.stack(stack)
    valid = np.any(np.isfinite(stack), axis=(0, 1))
    with warnings.catch_warnings():
        # nanmedian ostrzega o pikselach bez żadnej obserwacji
        warnings.simplefilter('ignore', RuntimeWarning)
        median = np.nanmedian(stack, axis=0)
    return first.with_data(median, valid=valid)


def build_baseline(series, date_range, direction, orbit_track, smoothing_radius) -> Composite:
    """
    Buduje wygładzony obraz bazowy dla jednego kierunku przelotu.

    Args:
        series (RasterTimeSeries): Seria scen
        date_range (DateRange): Okres referencyjny [start, end)
        direction (OrbitDirection): Kierunek przelotu
        orbit_track (int): Numer orbity względnej
        smoothing_radius (float): Promień filtra kołowego

    Returns:
        Composite: Obraz bazowy z liczbą scen i zakresem dat

    Raises:
        NoImageryError: Jeśli filtr nie zwrócił żadnej sceny
    """
    direction = OrbitDirection(direction)
    selected = series.filter(date_range=date_range, direction=direction, track=orbit_track)
    if not len(selected):
        raise NoImageryError(
            f"Brak scen bazowych {direction.value} (orbita {orbit_track}) "
            f"w okresie {date_range.start} - {date_range.end}",
            direction=direction,
        )

    first_date, last_date = selected.date_span()
    logger.info(
        f"Sceny bazowe {direction.value}: {len(selected)} ({describe_dates(first_date, last_date)})"
    )

    median = median_composite(selected)
    return Composite(
        raster=focal_mean(median, smoothing_radius),
        image_count=len(selected),
        first_date=first_date,
        last_date=last_date,
    )
