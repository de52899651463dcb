"""
Główny silnik mapowania powodzi metodą detekcji zmian SAR.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from floodmap.change import detect_change
from floodmap.compositor import build_baseline
from floodmap.errors import BatchIndexError, FloodMapError, NoImageryError
from floodmap.export import Exporter, table_folder_name, vector_export_name
from floodmap.models import FloodResult, OrbitDirection, RunReport, UnitFailure
from floodmap.refine import MaskRefiner
from floodmap.sources import PERMANENT_WATER, SLOPE
from floodmap.utils import format_date
from floodmap.vectorize import vectorize
from floodmap.zonal import BatchedZonalSampler

logger = logging.getLogger(__name__)


def map_flood(series, day, direction, baseline, config, permanent_water, slope, region) -> FloodResult:
    """
    Maska powodzi dla jednej daty i kierunku przelotu (bez efektów ubocznych).

    Args:
        series (RasterTimeSeries): Sceny z okresu monitorowania
        day (date): Data akwizycji
        direction (OrbitDirection): Kierunek przelotu
        baseline (Raster): Obraz bazowy dla tego kierunku
        config (FloodMapConfig): Konfiguracja
        permanent_water (Raster): Maska wody stałej
        slope (Raster): Nachylenie terenu w stopniach
        region: Obszar zainteresowania

    Returns:
        FloodResult: Oczyszczona maska {0, 1}
    """
    change = detect_change(
        series, day, direction,
        orbit_track=config.orbit_track(direction),
        baseline=baseline,
        smoothing_radius=config.smoothing_radius,
        region=region,
        buckets=config.histogram_buckets,
    )
    refiner = MaskRefiner(
        permanent_water, slope, region,
        min_connected_pixels=config.min_connected_pixels,
        max_slope=config.max_slope,
    )
    return FloodResult(
        date=change.date,
        direction=change.direction,
        raster=refiner.refine(change.mask),
        threshold=change.threshold,
    )


class FloodMapper:
    """Potok: obraz bazowy -> detekcja zmian -> oczyszczanie -> eksport"""

    def __init__(self, config, store, region, points=None, exporter=None):
        """
        Args:
            config (FloodMapConfig): Konfiguracja
            store (RasterStore): Magazyn scen i warstw pomocniczych
            region: Obszar zainteresowania (shapely)
            points (PointFeatureSet): Punkty referencyjne (opcjonalne)
            exporter (Exporter): Zapis wyników; domyślnie do config.output_dir
        """
        self.config = config
        self.store = store
        self.region = region
        self.points = points
        self.exporter = exporter or Exporter(config.output_dir)
        self.permanent_water = None
        self.slope = None
        logger.info(f"Inicjalizacja FloodMapper: region {config.region_name}")

    def load_auxiliary_layers(self):
        """Wczytuje maskę wody stałej i nachylenie terenu"""
        self.permanent_water = self.store.auxiliary_layer(PERMANENT_WATER)
        self.slope = self.store.auxiliary_layer(SLOPE)

    def _query(self, date_range, direction):
        c = self.config
        return self.store.query(
            sensor=c.sensor,
            polarization=c.polarization,
            resolution=c.resolution,
            region=self.region,
            date_range=date_range,
            orbit_direction=direction,
            orbit_track=c.orbit_track(direction),
            instrument_mode=c.instrument_mode,
        )

    def build_baseline(self, direction):
        """Kompozycja bazowa z okresu before_range"""
        series = self._query(self.config.before_range, direction)
        return build_baseline(
            series, self.config.before_range, direction,
            self.config.orbit_track(direction), self.config.smoothing_radius,
        )

    def _map_unit(self, series, day, direction, baseline, report):
        try:
            return map_flood(
                series, day, direction, baseline, self.config,
                self.permanent_water, self.slope, self.region,
            )
        except NoImageryError as e:
            logger.warning(f"Pominięto {format_date(day)} {direction.value}: {e}")
            report.failures.append(UnitFailure('NoImageryError', str(e), day, direction))
        except FloodMapError as e:
            logger.error(f"Przerwano {format_date(day)} {direction.value}: {e}")
            report.failures.append(UnitFailure(type(e).__name__, str(e), day, direction))
        return None

    def _map(self, func, items):
        if self.config.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                return list(pool.map(lambda args: func(*args), items))
        return [func(*args) for args in items]

    def map_direction(self, direction, report):
        """
        Mapy powodzi dla wszystkich dat monitorowania w jednym kierunku.

        Returns:
            list[FloodResult]: Wyniki dla dat, które udało się przetworzyć
        """
        direction = OrbitDirection(direction)
        try:
            baseline = self.build_baseline(direction)
        except NoImageryError as e:
            logger.warning(f"Brak obrazu bazowego {direction.value}: {e}")
            report.failures.append(UnitFailure('NoImageryError', str(e), direction=direction))
            return []
        except FloodMapError as e:
            logger.error(f"Nieudana kompozycja bazowa {direction.value}: {e}")
            report.failures.append(UnitFailure(type(e).__name__, str(e), direction=direction))
            return []

        series = self._query(self.config.during_range, direction)
        dates = series.distinct_dates()
        logger.info(f"Daty {direction.value}: {', '.join(format_date(d) for d in dates) or 'brak'}")

        results = self._map(
            lambda day: self._map_unit(series, day, direction, baseline.raster, report),
            [(day,) for day in dates],
        )
        return [r for r in results if r is not None]

    def export_vectors(self, result, report):
        gdf = vectorize(
            result.raster, self.region,
            scale=self.config.vector_scale,
            max_pixels=self.config.max_vector_pixels,
        )
        if gdf.empty:
            logger.info(f"Brak poligonów powodzi dla {result.label}, pominięto eksport")
            return None
        name = vector_export_name(self.config.region_name, result.date, result.direction)
        path = self.exporter.export_vectors(gdf, name)
        report.vector_exports.append(path)
        return path

    def export_zonal_stats(self, result, report):
        """Eksport statystyk strefowych partiami po batch_size punktów"""
        sampler = BatchedZonalSampler(
            self.points, result.raster,
            buffer_radius=self.config.buffer_radius,
            batch_size=self.config.batch_size,
        )
        folder = table_folder_name(result.date, result.direction)
        logger.info(f"Liczba partii dla {result.label}: {sampler.batch_count}")

        def run_batch(number, start, stop):
            try:
                records = sampler.sample_batch(start, number)
                path = self.exporter.export_table(records, number, folder)
            except BatchIndexError:
                raise
            except (FloodMapError, OSError) as e:
                logger.error(f"Przerwano partię {number} ({result.label}): {e}")
                report.failures.append(
                    UnitFailure(type(e).__name__, str(e), result.date, result.direction, number)
                )
                return None
            report.table_exports.append(path)
            return path

        return [p for p in self._map(run_batch, sampler.batches()) if p is not None]

    def run(self) -> RunReport:
        """
        Uruchamia cały potok dla obu kierunków przelotu.

        Returns:
            RunReport: Wyniki, ścieżki eksportów i porzucone jednostki
        """
        report = RunReport()
        if self.permanent_water is None or self.slope is None:
            self.load_auxiliary_layers()

        for direction in OrbitDirection:
            report.results.extend(self.map_direction(direction, report))

        for result in report.results:
            try:
                self.export_vectors(result, report)
            except (FloodMapError, OSError) as e:
                logger.error(f"Nieudany eksport wektorowy {result.label}: {e}")
                report.failures.append(
                    UnitFailure(type(e).__name__, str(e), result.date, result.direction)
                )

            if self.points is not None and len(self.points):
                self.export_zonal_stats(result, report)

        logger.info(
            f"Zakończono: {len(report.results)} map, {len(report.vector_exports)} eksportów "
            f"wektorowych, {len(report.table_exports)} partii, {len(report.failures)} błędów"
        )
        return report
