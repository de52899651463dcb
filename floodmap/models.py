from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Any, List

import numpy as np
import geopandas as gpd
from affine import Affine
from rasterio import features
from rasterio.crs import CRS
from shapely.geometry import mapping

from floodmap.errors import ShapeMismatchError


class OrbitDirection(str, Enum):
    """Kierunek przelotu satelity"""
    ASCENDING = "ASCENDING"
    DESCENDING = "DESCENDING"


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass(frozen=True)
class DateRange:
    """
    Przedział dat [start, end) - koniec nie należy do przedziału.

    Attributes:
        start (date): Pierwszy dzień przedziału
        end (date): Pierwszy dzień poza przedziałem
    """
    start: date
    end: date

    def __post_init__(self):
        object.__setattr__(self, 'start', _as_date(self.start))
        object.__setattr__(self, 'end', _as_date(self.end))
        if self.end <= self.start:
            raise ValueError(f"Pusty przedział dat: {self.start} - {self.end}")

    def contains(self, day) -> bool:
        return self.start <= _as_date(day) < self.end


@dataclass(frozen=True, eq=False)
class Raster:
    """
    Niemutowalna siatka wartości z maską poprawności.

    Attributes:
        data (np.ndarray): Wartości o kształcie (bandy, wiersze, kolumny)
        transform (Affine): Transformacja piksel -> współrzędne CRS
        crs (CRS): Układ odniesienia
        band_names (tuple): Nazwy band
        valid (np.ndarray): Maska (wiersze, kolumny), True tam gdzie są dane
    """
    data: np.ndarray
    transform: Affine
    crs: Any
    band_names: Tuple[str, ...] = ("b1",)
    valid: Optional[np.ndarray] = None

    def __post_init__(self):
        """Walidacja i zamrożenie tablic"""
        data = np.array(self.data, dtype=np.float64)
        if data.ndim == 2:
            data = data[np.newaxis, ...]
        if data.ndim != 3:
            raise ValueError(f"Raster musi mieć 2 lub 3 wymiary, otrzymano {data.ndim}")

        band_names = tuple(self.band_names)
        if len(band_names) != data.shape[0]:
            raise ValueError(
                f"Liczba nazw band ({len(band_names)}) różna od liczby band ({data.shape[0]})"
            )

        if self.valid is None:
            valid = np.ones(data.shape[1:], dtype=bool)
        else:
            valid = np.array(self.valid, dtype=bool)
        if valid.shape != data.shape[1:]:
            raise ValueError(f"Maska {valid.shape} nie pasuje do danych {data.shape[1:]}")

        # NaN w danych zawsze oznacza brak danych
        valid &= np.all(np.isfinite(data), axis=0)

        data.setflags(write=False)
        valid.setflags(write=False)
        object.__setattr__(self, 'data', data)
        object.__setattr__(self, 'valid', valid)
        object.__setattr__(self, 'band_names', band_names)
        object.__setattr__(self, 'crs', CRS.from_user_input(self.crs) if self.crs is not None else None)

    @property
    def shape(self):
        return self.data.shape[1:]

    @property
    def band_count(self):
        return self.data.shape[0]

    @property
    def pixel_count(self):
        return int(self.shape[0] * self.shape[1])

    @property
    def pixel_size(self):
        """Rozmiar piksela w jednostkach CRS (zakłada piksele kwadratowe)"""
        return abs(self.transform.a)

    def band(self, index=0) -> np.ndarray:
        if isinstance(index, str):
            index = self.band_names.index(index)
        return self.data[index]

    def select(self, name, rename=None) -> "Raster":
        """Zwraca raster z jedną bandą (opcjonalnie o nowej nazwie)"""
        return self.with_data(self.band(name), band_names=(rename or name,))

    def with_data(self, data, valid=None, band_names=None) -> "Raster":
        """Nowy raster na tej samej siatce"""
        data = np.asarray(data)
        if band_names is None:
            band_names = self.band_names if data.ndim == 3 else self.band_names[:1]
        return replace(
            self,
            data=data,
            valid=self.valid if valid is None else valid,
            band_names=band_names,
        )

    def same_grid(self, other: "Raster") -> bool:
        return (
            self.shape == other.shape
            and self.transform.almost_equals(other.transform)
            and self.crs == other.crs
        )

    def require_same_grid(self, other: "Raster", name="raster"):
        if not self.same_grid(other):
            raise ShapeMismatchError(
                f"{name}: siatka {other.shape} / {other.crs} nie pasuje do "
                f"{self.shape} / {self.crs}"
            )

    def region_mask(self, region) -> np.ndarray:
        """Maska pikseli, których środki leżą wewnątrz regionu"""
        if region is None:
            return np.ones(self.shape, dtype=bool)
        geoms = getattr(region, 'geoms', [region])
        return features.geometry_mask(
            [mapping(g) for g in geoms],
            out_shape=self.shape,
            transform=self.transform,
            invert=True,
        )

    def positive_count(self) -> int:
        """Liczba poprawnych pikseli o wartości 1 w pierwszej bandzie"""
        return int(np.count_nonzero((self.band(0) == 1) & self.valid))


@dataclass(frozen=True)
class Acquisition:
    """
    Pojedyncza scena radarowa z metadanymi przelotu.

    Attributes:
        raster (Raster): Dane sceny
        acquired (datetime): Czas akwizycji
        orbit_direction (OrbitDirection): Kierunek przelotu
        orbit_track (int): Numer orbity względnej
    """
    raster: Raster
    acquired: datetime
    orbit_direction: OrbitDirection
    orbit_track: int

    def __post_init__(self):
        if not isinstance(self.acquired, datetime):
            object.__setattr__(
                self, 'acquired', datetime.combine(_as_date(self.acquired), datetime.min.time())
            )
        object.__setattr__(self, 'orbit_direction', OrbitDirection(self.orbit_direction))

    @property
    def date(self) -> date:
        return self.acquired.date()


@dataclass(frozen=True)
class RasterTimeSeries:
    """Uporządkowana w czasie kolekcja scen o wspólnym zestawie band"""
    acquisitions: Tuple[Acquisition, ...] = ()

    def __post_init__(self):
        ordered = tuple(sorted(self.acquisitions, key=lambda a: a.acquired))
        object.__setattr__(self, 'acquisitions', ordered)

    def __len__(self):
        return len(self.acquisitions)

    def __iter__(self):
        return iter(self.acquisitions)

    def filter(self, date_range=None, direction=None, track=None, on_date=None) -> "RasterTimeSeries":
        """Filtruje sceny po przedziale dat, dniu, kierunku i numerze orbity"""
        direction = OrbitDirection(direction) if direction is not None else None
        on_date = _as_date(on_date) if on_date is not None else None
        selected = [
            a for a in self.acquisitions
            if (date_range is None or date_range.contains(a.date))
            and (on_date is None or a.date == on_date)
            and (direction is None or a.orbit_direction == direction)
            and (track is None or a.orbit_track == track)
        ]
        return RasterTimeSeries(tuple(selected))

    def distinct_dates(self) -> List[date]:
        """Unikalne dni akwizycji w kolejności chronologicznej"""
        return sorted({a.date for a in self.acquisitions})

    def date_span(self):
        if not self.acquisitions:
            return None
        return self.acquisitions[0].date, self.acquisitions[-1].date


@dataclass(frozen=True)
class Composite:
    """
    Wygładzona kompozycja bazowa wraz z diagnostyką.

    Attributes:
        raster (Raster): Mediana czasowa po filtracji średnią kołową
        image_count (int): Liczba scen użytych w kompozycji
        first_date (date): Data najwcześniejszej sceny
        last_date (date): Data najpóźniejszej sceny
    """
    raster: Raster
    image_count: int
    first_date: date
    last_date: date


@dataclass(frozen=True)
class ChangeDetection:
    """Wynik detekcji zmian dla jednej daty i kierunku"""
    date: date
    direction: OrbitDirection
    mask: Raster
    threshold: float
    tile_count: int


@dataclass(frozen=True)
class FloodResult:
    """
    Maska powodzi dla pary (data, kierunek przelotu).

    Attributes:
        date (date): Data akwizycji
        direction (OrbitDirection): Kierunek przelotu
        raster (Raster): Binarny raster {0, 1} bez pikseli "brak danych"
        threshold (float): Próg Otsu użyty do binaryzacji
    """
    date: date
    direction: OrbitDirection
    raster: Raster
    threshold: Optional[float] = None

    def __post_init__(self):
        values = self.raster.band(0)
        if not self.raster.valid.all():
            raise ValueError("Maska powodzi nie może zawierać pikseli bez danych")
        if not np.isin(values, (0, 1)).all():
            raise ValueError("Maska powodzi może zawierać tylko wartości 0 i 1")

    @property
    def label(self) -> str:
        return f"{self.date.isoformat()}-{OrbitDirection(self.direction).value}"


@dataclass
class PointFeatureSet:
    """
    Uporządkowany zbiór punktów referencyjnych.

    Attributes:
        gdf (GeoDataFrame): Punkty z geometrią typu Point
        id_column (str): Kolumna z identyfikatorem punktu
    """
    gdf: gpd.GeoDataFrame
    id_column: str = "id"

    def __post_init__(self):
        """Walidacja po inicjalizacji"""
        if self.id_column not in self.gdf.columns:
            raise ValueError(f"Brak kolumny identyfikatora: {self.id_column}")
        if len(self.gdf) and not (self.gdf.geometry.geom_type == 'Point').all():
            raise TypeError("Wszystkie geometrie muszą być typu Point")
        self.gdf = self.gdf.reset_index(drop=True)

    def __len__(self):
        return len(self.gdf)

    @property
    def crs(self):
        return self.gdf.crs

    def to_crs(self, crs) -> "PointFeatureSet":
        if crs is None or self.crs is None or self.crs == crs:
            return self
        return PointFeatureSet(self.gdf.to_crs(crs), self.id_column)

    def slice(self, start, stop) -> gpd.GeoDataFrame:
        return self.gdf.iloc[start:stop]


@dataclass(frozen=True)
class ZonalStatRecord:
    """
    Wynik próbkowania maski powodzi w buforze punktu.

    Attributes:
        point_id: Identyfikator punktu
        flood_status (float): Średnia wartość maski w buforze (NaN gdy brak pikseli)
        batch_number (int): Numer partii (od 1)
        analysis_date (str): Data analizy w formacie YYYY-MM-DD
    """
    point_id: Any
    flood_status: float
    batch_number: int
    analysis_date: str

    def to_row(self):
        return {
            'point_id': self.point_id,
            'flood_status': self.flood_status,
            'batch_number': self.batch_number,
            'analysis_date': self.analysis_date,
        }


@dataclass
class UnitFailure:
    """Porzucona jednostka pracy (data / kierunek / partia)"""
    kind: str
    message: str
    date: Optional[date] = None
    direction: Optional[OrbitDirection] = None
    batch_number: Optional[int] = None


@dataclass
class RunReport:
    """Podsumowanie przebiegu potoku"""
    results: List[FloodResult] = field(default_factory=list)
    vector_exports: List[str] = field(default_factory=list)
    table_exports: List[str] = field(default_factory=list)
    failures: List[UnitFailure] = field(default_factory=list)
