"""
Wektoryzacja maski powodzi do poligonów.
"""

import logging
import math

import numpy as np
import geopandas as gpd
from affine import Affine
from rasterio import features
from shapely.geometry import shape

logger = logging.getLogger(__name__)


def _coarsen(values, factor):
    """Zmniejsza rozdzielczość maski: blok jest dodatni gdy większość pikseli jest dodatnia"""
    rows, cols = values.shape
    pad_r = (-rows) % factor
    pad_c = (-cols) % factor
    padded = np.pad(values, ((0, pad_r), (0, pad_c)), constant_values=0)
    blocks = padded.reshape(padded.shape[0] // factor, factor, padded.shape[1] // factor, factor)
    return (blocks.mean(axis=(1, 3)) >= 0.5).astype(np.uint8)


def vectorize(raster, region=None, scale=None, max_pixels=int(1e8)):
    """
    Zamienia dodatnie piksele maski na poligony (4-sąsiedztwo).

    Tryb "best effort": gdy liczba pikseli przekracza max_pixels, skala jest
    zwiększana aż do zmieszczenia się w limicie, a wynik oznaczany jako
    przybliżony (kolumna 'best_effort').

    Args:
        raster (Raster): Binarna maska {0, 1}
        region: Obszar zainteresowania (shapely) lub None
        scale (float): Rozdzielczość wektoryzacji w jednostkach CRS
        max_pixels (int): Limit pikseli przetwarzanych w jednym przebiegu

    Returns:
        GeoDataFrame: Poligony z kolumnami 'label' i 'best_effort'
    """
    values = ((raster.band(0) == 1) & raster.valid & raster.region_mask(region)).astype(np.uint8)

    factor = max(1, int(round((scale or raster.pixel_size) / raster.pixel_size)))
    degraded = False
    if values.size / factor ** 2 > max_pixels:
        factor = int(math.ceil(math.sqrt(values.size / max_pixels)))
        degraded = True
        logger.warning(
            f"Wektoryzacja przybliżona: {values.size} pikseli > {max_pixels}, "
            f"skala {raster.pixel_size * factor:g}"
        )

    transform = raster.transform
    if factor > 1:
        values = _coarsen(values, factor)
        transform = transform * Affine.scale(factor)

    polygons = [
        shape(geom)
        for geom, value in features.shapes(values, mask=values == 1, transform=transform, connectivity=4)
        if value == 1
    ]

    gdf = gpd.GeoDataFrame(
        {'label': [1] * len(polygons), 'best_effort': [int(degraded)] * len(polygons)},
        geometry=polygons,
        crs=raster.crs,
    )
    logger.info(f"Wektoryzacja: {len(gdf)} poligonów")
    return gdf
