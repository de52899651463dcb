"""
Punkt wejścia potoku mapowania powodzi Sentinel-1.
"""

import logging

from floodmap.engine import FloodMapper
from floodmap.export import Exporter
from floodmap.utils import describe_dates, setup_logger

logger = setup_logger('floodmap', level=logging.INFO)


def run_pipeline(config, store, region, points=None, output_dir=None):
    """
    Uruchamia pełną analizę: obrazy bazowe, mapy powodzi, eksporty.

    Args:
        config (FloodMapConfig): Konfiguracja ustalona przy starcie
        store (RasterStore): Magazyn scen i warstw pomocniczych
        region: Obszar zainteresowania (shapely)
        points (PointFeatureSet): Punkty referencyjne do statystyk strefowych
        output_dir (str): Katalog eksportu (domyślnie config.output_dir)

    Returns:
        RunReport: Podsumowanie przebiegu
    """
    logger.info("=" * 60)
    logger.info(f"Analiza powodzi SAR: {config.region_name}")
    logger.info(f"Okres bazowy: {describe_dates(config.before_range.start, config.before_range.end)}")
    logger.info(f"Okres monitorowania: {describe_dates(config.during_range.start, config.during_range.end)}")
    logger.info(
        f"Polaryzacja {config.polarization}, orbity {config.orbit_track_ascending} / "
        f"{config.orbit_track_descending}, wygładzanie {config.smoothing_radius:g}"
    )
    logger.info("=" * 60)

    if points is None:
        logger.warning("Nie wczytano punktów referencyjnych, statystyki strefowe pominięte")
    else:
        logger.info(f"Liczba punktów: {len(points)}, partia: {config.batch_size}")

    mapper = FloodMapper(
        config, store, region,
        points=points,
        exporter=Exporter(output_dir or config.output_dir),
    )
    report = mapper.run()

    for failure in report.failures:
        logger.warning(
            f"Porzucona jednostka [{failure.kind}] data={failure.date} "
            f"kierunek={failure.direction} partia={failure.batch_number}: {failure.message}"
        )

    logger.info("=" * 60)
    logger.info("Wszystkie partie zostały przetworzone")
    logger.info("=" * 60)
    return report
