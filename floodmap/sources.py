"""
Źródła danych: interfejsy zewnętrznych magazynów oraz implementacja
oparta o katalog plików GeoTIFF.
"""

import logging
import os
from typing import Protocol

import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from shapely.geometry import box

from floodmap.models import Acquisition, OrbitDirection, PointFeatureSet, Raster, RasterTimeSeries
from floodmap.refine import permanent_water_from_seasonality

logger = logging.getLogger(__name__)

PERMANENT_WATER = 'permanent_water'
SLOPE = 'slope'
SEASONALITY = 'seasonality'
ELEVATION = 'elevation'


class RasterStore(Protocol):
    """Zewnętrzny magazyn scen radarowych i warstw pomocniczych"""

    def query(self, sensor, polarization, resolution, region, date_range,
              orbit_direction, orbit_track, instrument_mode=None) -> RasterTimeSeries:
        ...

    def auxiliary_layer(self, name) -> Raster:
        ...


def read_raster(path, band=None) -> Raster:
    """
    Wczytuje raster GeoTIFF.

    Args:
        path (str): Ścieżka do pliku
        band: Numer bandy (od 1), opis bandy lub None dla wszystkich band

    Returns:
        Raster: Dane z maską poprawności z wartości nodata
    """
    with rasterio.open(path) as src:
        if band is None:
            indexes = list(src.indexes)
        elif isinstance(band, str):
            descriptions = [d.upper() if d else '' for d in src.descriptions]
            indexes = [descriptions.index(band.upper()) + 1] if band.upper() in descriptions else [1]
        else:
            indexes = [band]

        data = src.read(indexes, masked=True)
        names = tuple(src.descriptions[i - 1] or f"b{i}" for i in indexes)
        if isinstance(band, str):
            names = (band,)

        return Raster(
            data=np.ma.filled(data.astype(np.float64), np.nan),
            valid=~np.ma.getmaskarray(data).any(axis=0),
            transform=src.transform,
            crs=src.crs,
            band_names=names,
        )


def slope_from_elevation(elevation) -> Raster:
    """Nachylenie terenu w stopniach z modelu wysokościowego"""
    dem = np.where(elevation.valid, elevation.band(0), np.nan)
    dy, dx = np.gradient(dem, abs(elevation.transform.e), abs(elevation.transform.a))
    slope = np.rad2deg(np.arctan(np.sqrt(dx ** 2 + dy ** 2)))
    return elevation.with_data(slope, valid=np.isfinite(slope), band_names=(SLOPE,))


class GeoTiffStore:
    """
    Magazyn scen oparty o katalog CSV z listą plików GeoTIFF.

    Kolumny katalogu: path, acquired, orbit_direction, orbit_track, polarization
    oraz opcjonalnie sensor, instrument_mode, resolution.
    """

    def __init__(self, catalog_path, layers=None, permanent_water_months=10):
        """
        Args:
            catalog_path (str): Ścieżka do katalogu CSV
            layers (dict): Nazwa warstwy pomocniczej -> ścieżka GeoTIFF
            permanent_water_months (int): Próg sezonowości dla wody stałej
        """
        self.catalog_path = catalog_path
        self.base_dir = os.path.dirname(os.path.abspath(catalog_path))
        self.layers = layers or {}
        self.permanent_water_months = permanent_water_months
        self.catalog = pd.read_csv(catalog_path, parse_dates=['acquired'])
        logger.info(f"Katalog scen: {len(self.catalog)} pozycji ({catalog_path})")

    def _path(self, path):
        return path if os.path.isabs(path) else os.path.join(self.base_dir, path)

    def query(self, sensor, polarization, resolution, region, date_range,
              orbit_direction, orbit_track, instrument_mode=None) -> RasterTimeSeries:
        rows = self.catalog
        rows = rows[rows['polarization'].str.upper().str.contains(polarization.upper())]
        for column, value in (('instrument_mode', instrument_mode), ('sensor', sensor),
                              ('resolution', resolution)):
            if column in rows.columns and value is not None:
                rows = rows[rows[column] == value]
        if orbit_direction is not None:
            rows = rows[rows['orbit_direction'].str.upper() == OrbitDirection(orbit_direction).value]
        if orbit_track is not None:
            rows = rows[rows['orbit_track'] == orbit_track]
        if date_range is not None:
            days = rows['acquired'].dt.date
            rows = rows[(days >= date_range.start) & (days < date_range.end)]

        acquisitions = []
        for row in rows.itertuples(index=False):
            with rasterio.open(self._path(row.path)) as src:
                if region is not None and not box(*src.bounds).intersects(region):
                    continue
            acquisitions.append(Acquisition(
                raster=read_raster(self._path(row.path), band=polarization),
                acquired=row.acquired.to_pydatetime(),
                orbit_direction=row.orbit_direction.upper(),
                orbit_track=int(row.orbit_track),
            ))

        logger.info(f"Zapytanie {orbit_direction} / {orbit_track}: {len(acquisitions)} scen")
        return RasterTimeSeries(tuple(acquisitions))

    def auxiliary_layer(self, name) -> Raster:
        """
        Warstwa pomocnicza; woda stała i nachylenie mogą być wyliczone
        z warstw sezonowości wód i wysokości terenu.
        """
        if name in self.layers:
            return read_raster(self._path(self.layers[name]), band=1)
        if name == PERMANENT_WATER and SEASONALITY in self.layers:
            return permanent_water_from_seasonality(
                self.auxiliary_layer(SEASONALITY), self.permanent_water_months
            )
        if name == SLOPE and ELEVATION in self.layers:
            return slope_from_elevation(self.auxiliary_layer(ELEVATION))
        raise KeyError(f"Nieznana warstwa pomocnicza: {name}")


def load_points(source, id_column='id') -> PointFeatureSet:
    """
    Wczytuje punkty referencyjne z dowolnego formatu obsługiwanego przez geopandas.

    Gdy brak kolumny identyfikatora, identyfikatorem jest numer wiersza.
    """
    try:
        logger.info(f"Wczytywanie punktów: {source}")
        gdf = gpd.read_file(source)
    except FileNotFoundError:
        logger.error(f"Nie znaleziono pliku: {source}")
        raise

    if id_column not in gdf.columns:
        logger.warning(f"Brak kolumny '{id_column}', identyfikatorem będzie numer wiersza")
        gdf = gdf.reset_index(drop=True)
        gdf[id_column] = gdf.index

    logger.info(f"Wczytano {len(gdf)} punktów")
    return PointFeatureSet(gdf, id_column)
