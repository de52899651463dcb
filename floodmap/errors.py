"""
Wyjątki domenowe potoku mapowania powodzi.
"""


class FloodMapError(Exception):
    """Bazowy wyjątek dla wszystkich błędów potoku"""


class InvalidInputError(FloodMapError):
    """Raster wejściowy nie spełnia wymagań operacji (np. liczba band)"""


class NoImageryError(FloodMapError):
    """Filtr (data / orbita / ścieżka) nie zwrócił żadnej sceny"""

    def __init__(self, message, date=None, direction=None):
        super().__init__(message)
        self.date = date
        self.direction = direction


class EmptyHistogramError(FloodMapError):
    """Brak poprawnych pikseli w regionie podczas wyznaczania progu"""


class ShapeMismatchError(FloodMapError):
    """Raster pomocniczy nie pokrywa się siatką lub CRS z rasterem głównym"""


class BatchIndexError(FloodMapError, IndexError):
    """Indeks początkowy partii poza zakresem zbioru punktów"""
