"""
Wyznaczanie progu Otsu na podstawie histogramu wartości w regionie.
"""

import logging

import numpy as np

from floodmap.errors import EmptyHistogramError, InvalidInputError

logger = logging.getLogger(__name__)


def region_histogram(raster, region, buckets=255):
    """
    Histogram wartości rastra ograniczonych do regionu.

    Args:
        raster (Raster): Raster jednobandowy
        region: Geometria shapely (Polygon/MultiPolygon) lub None
        buckets (int): Liczba przedziałów

    Returns:
        tuple: (liczności, średnie wartości w przedziałach) - tylko niepuste przedziały

    Raises:
        InvalidInputError: Jeśli raster ma więcej niż jedną bandę
        EmptyHistogramError: Jeśli w regionie nie ma poprawnych pikseli
    """
    if raster.band_count != 1:
        raise InvalidInputError(
            f"Wymagany raster jednobandowy, otrzymano {raster.band_count} band"
        )

    inside = raster.valid & raster.region_mask(region)
    values = raster.band(0)[inside]
    if values.size == 0:
        raise EmptyHistogramError("Brak poprawnych pikseli w regionie")

    lo, hi = float(values.min()), float(values.max())
    if hi == lo:
        return np.array([values.size], dtype=np.float64), np.array([lo])

    width = (hi - lo) / buckets
    index = np.clip(((values - lo) / width).astype(np.int64), 0, buckets - 1)
    counts = np.bincount(index, minlength=buckets).astype(np.float64)
    sums = np.bincount(index, weights=values, minlength=buckets)

    filled = counts > 0
    return counts[filled], sums[filled] / counts[filled]


def otsu(counts, means) -> float:
    """
    Metoda Otsu na histogramie: maksymalizacja wariancji międzyklasowej.

    Dla każdego podziału i klasa dolna to przedziały [0, i), górna [i, n).
    Zwracana jest średnia ostatniego przedziału klasy dolnej dla podziału
    o największej wariancji; przy remisie wygrywa podział o większej wartości.
    """
    counts = np.asarray(counts, dtype=np.float64)
    means = np.asarray(means, dtype=np.float64)
    if counts.size == 1:
        return float(means[0])

    total = counts.sum()
    weighted = means * counts
    mean = weighted.sum() / total

    count_below = np.cumsum(counts)[:-1]
    sum_below = np.cumsum(weighted)[:-1]
    count_above = total - count_below

    mean_below = sum_below / count_below
    mean_above = (weighted.sum() - sum_below) / count_above

    bss = count_below * (mean_below - mean) ** 2 + count_above * (mean_above - mean) ** 2
    best = np.flatnonzero(bss == bss.max())[-1]
    return float(means[best])


def otsu_threshold(raster, region, buckets=255) -> float:
    """Próg Otsu dla rastra jednobandowego w obrębie regionu"""
    counts, means = region_histogram(raster, region, buckets)
    threshold = otsu(counts, means)
    logger.debug(f"Próg Otsu: {threshold:.4f} ({int(counts.sum())} pikseli, {counts.size} przedziałów)")
    return threshold
