"""
Eksport wyników: poligony powodzi (Shapefile) i partie statystyk (CSV).
Każdy eksport jest zapisywany najpierw do katalogu tymczasowego i dopiero
po udanym zapisie przenoszony na miejsce docelowe.
"""

import logging
import os
import shutil
import tempfile

import pandas as pd

from floodmap.models import OrbitDirection
from floodmap.utils import format_date

logger = logging.getLogger(__name__)

TABLE_COLUMNS = ['point_id', 'flood_status', 'batch_number', 'analysis_date']


def vector_export_name(region_name, day, direction):
    """Nazwa eksportu wektorowego: <region>-Floods-<data>-S1-<kierunek>"""
    return f"{region_name}-Floods-{format_date(day)}-S1-{OrbitDirection(direction).value}"


def table_export_name(batch_number):
    return f"flood_analysis_batch_{batch_number}"


def table_folder_name(day, direction):
    return f"{format_date(day)}-{OrbitDirection(direction).value}"


class Exporter:
    """Zapis produktów do katalogu wyjściowego"""

    def __init__(self, output_dir):
        self.output_dir = output_dir

    def _staging(self, target_dir):
        os.makedirs(target_dir, exist_ok=True)
        return tempfile.mkdtemp(prefix='.staging-', dir=target_dir)

    def export_vectors(self, gdf, name):
        """
        Zapisuje poligony jako Shapefile.

        Args:
            gdf (GeoDataFrame): Poligony powodzi
            name (str): Nazwa eksportu (bez rozszerzenia)

        Returns:
            str: Ścieżka do pliku .shp
        """
        staging = self._staging(self.output_dir)
        moved = []
        try:
            gdf.to_file(os.path.join(staging, f"{name}.shp"), driver='ESRI Shapefile')
            for filename in sorted(os.listdir(staging)):
                target = os.path.join(self.output_dir, filename)
                os.replace(os.path.join(staging, filename), target)
                moved.append(target)
        except OSError:
            # Shapefile bez plików towarzyszących jest bezużyteczny
            for target in moved:
                os.remove(target)
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        path = os.path.join(self.output_dir, f"{name}.shp")
        logger.info(f"Eksport wektorowy: {path} ({len(gdf)} poligonów)")
        return path

    def export_table(self, records, batch_number, folder):
        """
        Zapisuje partię rekordów ZonalStatRecord jako CSV.

        Returns:
            str: Ścieżka do pliku .csv
        """
        target_dir = os.path.join(self.output_dir, folder)
        staging = self._staging(target_dir)
        name = f"{table_export_name(batch_number)}.csv"
        try:
            frame = pd.DataFrame([r.to_row() for r in records], columns=TABLE_COLUMNS)
            frame.to_csv(os.path.join(staging, name), index=False)
            os.replace(os.path.join(staging, name), os.path.join(target_dir, name))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        path = os.path.join(target_dir, name)
        logger.info(f"Eksport tabeli: {path} ({len(records)} rekordów)")
        return path
