"""
Oczyszczanie maski zmian: woda stała, drobne skupiska pikseli, strome zbocza.
"""

import logging

import numpy as np
from scipy import ndimage

logger = logging.getLogger(__name__)

# 8-sąsiedztwo
EIGHT_CONNECTED = np.ones((3, 3), dtype=int)


def permanent_water_from_seasonality(seasonality, months=10):
    """
    Maska wody stałej z warstwy sezonowości (liczba miesięcy z wodą w roku).

    Piksele bez danych w warstwie sezonowości nie są wodą stałą.
    """
    water = (seasonality.band(0) >= months) & seasonality.valid
    return seasonality.with_data(water.astype(np.float64), valid=seasonality.valid,
                                 band_names=('permanent_water',))


def connected_pixel_count(positive):
    """Rozmiar (w pikselach) 8-spójnego skupiska, do którego należy każdy piksel"""
    labels, count = ndimage.label(positive, structure=EIGHT_CONNECTED)
    if count == 0:
        return np.zeros(positive.shape, dtype=np.int64)
    sizes = np.bincount(labels.ravel())
    sizes[0] = 0
    return sizes[labels]


class MaskRefiner:
    """
    Trzy kolejne etapy wygaszania pikseli maski zmian.

    Każdy etap może tylko zmniejszyć liczbę pikseli dodatnich. Piksele bez
    danych, poza regionem lub wygaszone są na końcu ustawiane na 0.
    """

    def __init__(self, permanent_water, slope, region=None, min_connected_pixels=8, max_slope=10.0):
        """
        Args:
            permanent_water (Raster): 1 tam gdzie woda występuje przez większość roku
            slope (Raster): Nachylenie terenu w stopniach
            region: Obszar zainteresowania (shapely) lub None
            min_connected_pixels (int): Minimalny rozmiar skupiska
            max_slope (float): Nachylenie, od którego piksele są odrzucane
        """
        self.permanent_water = permanent_water
        self.slope = slope
        self.region = region
        self.min_connected_pixels = min_connected_pixels
        self.max_slope = max_slope

    def _check_alignment(self, mask):
        mask.require_same_grid(self.permanent_water, "maska wody stałej")
        mask.require_same_grid(self.slope, "nachylenie terenu")

    def _flat_terrain(self):
        # brak danych o nachyleniu traktujemy jak teren stromy
        return self.slope.valid & (self.slope.band(0) < self.max_slope)

    def suppress_permanent_water(self, positive):
        water = self.permanent_water.valid & (self.permanent_water.band(0) == 1)
        return positive & ~water

    def suppress_small_components(self, positive, eligible):
        """
        Usuwa skupiska mniejsze niż min_connected_pixels.

        Spójność liczona jest tylko po pikselach, które przetrwają etap
        nachylenia, dzięki czemu ponowne oczyszczenie wyniku nic nie zmienia.
        """
        counts = connected_pixel_count(positive & eligible)
        return positive & (counts >= self.min_connected_pixels)

    def suppress_steep_slopes(self, positive):
        return positive & self._flat_terrain()

    def stages(self, mask):
        """
        Zwraca listę (nazwa etapu, maska pikseli dodatnich) po kolei.

        Raises:
            ShapeMismatchError: Jeśli rastry pomocnicze nie pasują do maski
        """
        self._check_alignment(mask)
        inside = mask.region_mask(self.region)
        positive = mask.valid & (mask.band(0) == 1) & inside

        result = [('change', positive)]
        positive = self.suppress_permanent_water(positive)
        result.append(('permanent_water', positive))
        positive = self.suppress_small_components(positive, self._flat_terrain())
        result.append(('connectivity', positive))
        positive = self.suppress_steep_slopes(positive)
        result.append(('slope', positive))
        return result

    def refine(self, mask):
        """
        Oczyszcza binarną maskę zmian.

        Args:
            mask (Raster): Binarna maska zmian

        Returns:
            Raster: Maska {0, 1} bez pikseli "brak danych"
        """
        stages = self.stages(mask)
        logger.info("Piksele dodatnie: " + ", ".join(
            f"{name}={int(np.count_nonzero(positive))}" for name, positive in stages
        ))

        final = stages[-1][1]
        return mask.with_data(
            final.astype(np.float64),
            valid=np.ones(mask.shape, dtype=bool),
            band_names=mask.band_names[:1],
        )
