"""
Konfiguracja potoku mapowania powodzi.
Wszystkie parametry są ustalane raz, przy starcie, i przekazywane jawnie.
"""

import json
from dataclasses import dataclass, fields
from typing import Optional

from floodmap.models import DateRange, OrbitDirection

POLARIZATIONS = ("VH", "VV", "HH", "HV")


@dataclass(frozen=True)
class FloodMapConfig:
    """
    Parametry analizy SAR.

    Attributes:
        before_range (DateRange): Okres referencyjny (przed powodzią)
        during_range (DateRange): Okres monitorowania
        region_name (str): Identyfikator regionu używany w nazwach eksportów
        polarization (str): Polaryzacja, VH jest preferowana do mapowania wody
        orbit_track_ascending (int): Orbita względna przelotów wznoszących
        orbit_track_descending (int): Orbita względna przelotów zstępujących
        instrument_mode (str): Tryb pracy radaru, sceny innych trybów są pomijane
        smoothing_radius (float): Promień filtra kołowego (jednostki CRS)
        vector_scale (float): Rozdzielczość wektoryzacji; None oznacza rozmiar piksela rastra
        batch_size (int): Liczba punktów w jednej partii eksportu
        buffer_radius (float): Promień bufora wokół punktu (jednostki CRS)
    """
    before_range: DateRange
    during_range: DateRange
    region_name: str = "BGD"
    sensor: str = "S1_GRD"
    instrument_mode: str = "IW"
    polarization: str = "VH"
    resolution: float = 10.0
    orbit_track_ascending: int = 114
    orbit_track_descending: int = 150
    smoothing_radius: float = 50.0
    histogram_buckets: int = 255
    min_connected_pixels: int = 8
    max_slope: float = 10.0
    permanent_water_months: int = 10
    vector_scale: Optional[float] = None
    max_vector_pixels: int = int(1e8)
    batch_size: int = 1000
    buffer_radius: float = 15.0
    max_workers: int = 1
    output_dir: str = "exports"

    def __post_init__(self):
        """Walidacja po inicjalizacji"""
        for name in ('before_range', 'during_range'):
            value = getattr(self, name)
            if not isinstance(value, DateRange):
                object.__setattr__(self, name, DateRange(*value))

        if self.polarization not in POLARIZATIONS:
            raise ValueError(f"Nieznana polaryzacja: {self.polarization}")
        if not self.region_name:
            raise ValueError("Nazwa regionu nie może być pusta")
        if self.smoothing_radius < 0:
            raise ValueError("Promień wygładzania nie może być ujemny")
        if self.buffer_radius <= 0:
            raise ValueError("Promień bufora musi być dodatni")
        if self.batch_size <= 0:
            raise ValueError("Rozmiar partii musi być dodatni")
        if self.histogram_buckets < 2:
            raise ValueError("Histogram wymaga co najmniej 2 przedziałów")
        if self.min_connected_pixels < 1:
            raise ValueError("Minimalna liczba połączonych pikseli musi być >= 1")
        if not (0 < self.max_slope <= 90):
            raise ValueError(f"Maksymalne nachylenie poza zakresem: {self.max_slope}")
        if not (1 <= self.permanent_water_months <= 12):
            raise ValueError("Liczba miesięcy wody stałej musi być w zakresie 1-12")
        if self.vector_scale is not None and self.vector_scale <= 0:
            raise ValueError("Skala wektoryzacji musi być dodatnia")
        if self.max_vector_pixels <= 0:
            raise ValueError("Limit pikseli wektoryzacji musi być dodatni")
        if self.max_workers < 1:
            raise ValueError("Liczba wątków musi być >= 1")

    def orbit_track(self, direction) -> int:
        """Numer orbity względnej dla danego kierunku przelotu"""
        if OrbitDirection(direction) == OrbitDirection.ASCENDING:
            return self.orbit_track_ascending
        return self.orbit_track_descending

    @classmethod
    def from_dict(cls, options) -> "FloodMapConfig":
        """
        Tworzy konfigurację ze słownika opcji.

        Args:
            options (dict): Opcje; zakresy dat jako pary napisów ISO

        Raises:
            ValueError: Jeśli pojawi się nieznana opcja lub brakuje wymaganej
        """
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Nieznane opcje konfiguracji: {', '.join(sorted(unknown))}")

        values = dict(options)
        for name in ('before_range', 'during_range'):
            if name not in values:
                raise ValueError(f"Brak wymaganej opcji: {name}")
            value = values[name]
            if isinstance(value, dict):
                values[name] = DateRange(value['start'], value['end'])
            elif not isinstance(value, DateRange):
                values[name] = DateRange(*value)
        return cls(**values)


def load_config(path) -> FloodMapConfig:
    """Wczytuje konfigurację z pliku JSON"""
    with open(path) as f:
        return FloodMapConfig.from_dict(json.load(f))
