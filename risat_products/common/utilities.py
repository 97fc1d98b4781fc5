# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
Common Enum, dataclasses, errors and other utilities
----------------------------------------------------
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from arepytools.timing.precisedatetime import PreciseDateTime
from numpy.polynomial import Polynomial


class RasterDecodingError(IOError):
    """Unrecoverable failure while decoding a raster container"""


class UnsupportedRasterFormatError(RasterDecodingError):
    """No raster reader is available for the input stream"""


class InvalidCEOSFileError(RasterDecodingError):
    """CEOS legacy binary file cannot be decoded"""


class SARPolarization(Enum):
    """Polarization enum class, linear and compact (circular transmit) channels"""

    HH = "H/H"
    VV = "V/V"
    HV = "H/V"
    VH = "V/H"
    RH = "R/H"
    RV = "R/V"

    @property
    def is_compact(self) -> bool:
        """True for circular transmit channels"""
        return self in (SARPolarization.RH, SARPolarization.RV)


class SARProjection(Enum):
    """Enum class for managing swath projection of product folder"""

    SLANT_RANGE = "SLANT RANGE"
    GROUND_RANGE = "GROUND RANGE"


class OrbitDirection(Enum):
    """Orbit direction: ascending or descending"""

    ASCENDING = "ascending"
    DESCENDING = "descending"


class RasterContainerKind(Enum):
    """Physical container of a raster file, determined once per file"""

    GEO_RASTER = "GeoRaster"
    LEGACY_BINARY = "LegacyBinary"


@dataclass
class ConversionPolynomial:
    """Generic conversion polynomial wrapper"""

    azimuth_reference_time: PreciseDateTime
    origin: float
    polynomial: Polynomial
