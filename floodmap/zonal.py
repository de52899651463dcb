"""
Statystyki strefowe maski powodzi w buforach wokół punktów, liczone partiami.
"""

import logging
import math
from datetime import date

from shapely.geometry import box

from floodmap.errors import BatchIndexError
from floodmap.models import ZonalStatRecord

logger = logging.getLogger(__name__)


def batch_count(total, batch_size):
    return int(math.ceil(total / batch_size)) if total else 0


def batch_ranges(total, batch_size):
    """Lista (numer partii, start, stop); numeracja partii od 1"""
    return [
        (i + 1, start, min(start + batch_size, total))
        for i, start in enumerate(range(0, total, batch_size))
    ]


def buffer_bounds(point, radius):
    """Prostokąt ograniczający bufor punktu zamiast samego bufora"""
    return box(*point.buffer(radius).bounds)


class BatchedZonalSampler:
    """
    Próbkowanie rastra powodzi w buforach punktów, partia po partii.
    """

    def __init__(self, points, raster, buffer_radius=15.0, batch_size=1000,
                 band=0, analysis_date=None):
        """
        Args:
            points (PointFeatureSet): Punkty referencyjne
            raster (Raster): Maska powodzi
            buffer_radius (float): Promień bufora w jednostkach CRS rastra
            batch_size (int): Liczba punktów w partii
            band: Banda rastra do próbkowania
            analysis_date (str): Data analizy; domyślnie dzisiejsza
        """
        if batch_size <= 0:
            raise ValueError("Rozmiar partii musi być dodatni")
        self.points = points.to_crs(raster.crs)
        self.raster = raster
        self.buffer_radius = buffer_radius
        self.batch_size = batch_size
        self.values = raster.band(band)
        self.analysis_date = analysis_date or date.today().isoformat()

        if raster.transform.b != 0 or raster.transform.d != 0:
            raise ValueError("Obrócone siatki rastrów nie są obsługiwane")

    def __len__(self):
        return len(self.points)

    @property
    def batch_count(self):
        return batch_count(len(self.points), self.batch_size)

    def batches(self):
        return batch_ranges(len(self.points), self.batch_size)

    def _pixel_window(self, bounds):
        """Zakres wierszy i kolumn pikseli, których środki leżą w prostokącie"""
        minx, miny, maxx, maxy = bounds
        inverse = ~self.raster.transform
        c0, r0 = inverse * (minx, maxy)
        c1, r1 = inverse * (maxx, miny)
        c_lo, c_hi = sorted((c0, c1))
        r_lo, r_hi = sorted((r0, r1))

        rows, cols = self.raster.shape
        col_start = max(int(math.ceil(c_lo - 0.5)), 0)
        col_stop = min(int(math.floor(c_hi - 0.5)) + 1, cols)
        row_start = max(int(math.ceil(r_lo - 0.5)), 0)
        row_stop = min(int(math.floor(r_hi - 0.5)) + 1, rows)
        return slice(row_start, max(row_start, row_stop)), slice(col_start, max(col_start, col_stop))

    def mean_in(self, bounds):
        """Średnia poprawnych pikseli w prostokącie; NaN gdy nie ma żadnego"""
        rows, cols = self._pixel_window(bounds)
        window = self.values[rows, cols]
        valid = self.raster.valid[rows, cols]
        if not valid.any():
            return float('nan')
        return float(window[valid].mean())

    def sample_batch(self, start_index, batch_number=None):
        """
        Oblicza statystyki dla jednej partii punktów.

        Args:
            start_index (int): Indeks pierwszego punktu partii
            batch_number (int): Numer partii (domyślnie wyliczany z indeksu)

        Returns:
            list[ZonalStatRecord]: Rekordy partii

        Raises:
            BatchIndexError: Jeśli indeks początkowy jest poza zbiorem punktów
        """
        total = len(self.points)
        if start_index < 0 or start_index >= total:
            raise BatchIndexError(
                f"Indeks początkowy {start_index} poza zakresem zbioru {total} punktów"
            )
        if batch_number is None:
            batch_number = start_index // self.batch_size + 1

        stop = min(start_index + self.batch_size, total)
        batch = self.points.slice(start_index, stop)
        logger.info(f"Partia {batch_number}: punkty {start_index} - {stop - 1}")

        records = []
        for point_id, point in zip(batch[self.points.id_column], batch.geometry):
            area = buffer_bounds(point, self.buffer_radius)
            records.append(ZonalStatRecord(
                point_id=point_id,
                flood_status=self.mean_in(area.bounds),
                batch_number=batch_number,
                analysis_date=self.analysis_date,
            ))
        return records

    def iter_batches(self):
        """Generator (numer partii, rekordy) dla wszystkich ceil(N / B) partii"""
        for number, start, _ in self.batches():
            yield number, self.sample_batch(start, number)
