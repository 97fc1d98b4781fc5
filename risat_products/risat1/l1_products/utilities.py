# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 reader support module
-----------------------------
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import datetime
from enum import Enum
from pathlib import Path

from arepytools.timing.precisedatetime import PreciseDateTime

from risat_products.common.abstracted_metadata import NO_METADATA_UTC
from risat_products.common.product import MetadataElement
from risat_products.common.utilities import (
    OrbitDirection,
    RasterContainerKind,
    SARPolarization,
    SARProjection,
)

BAND_HEADER_NAME = "BAND_META.txt"
PRODUCT_METADATA = "ProductMetadata"
MISSION = "RISAT1"

GEO_RASTER_EXTENSIONS = ("tif", "tiff")
GEO_RASTER_MARKER = "imagery"
LEGACY_BINARY_EXTENSION = ".001"
LEGACY_BINARY_MARKER = "vdf_"
CHANNEL_FOLDER_MARKER = "scene_"

# channel folders, in traversal order
CHANNEL_FOLDERS_ORDER = (
    SARPolarization.HH,
    SARPolarization.HV,
    SARPolarization.VV,
    SARPolarization.VH,
    SARPolarization.RH,
    SARPolarization.RV,
)

VENDOR_TIME_FORMATS = ("%d-%b-%Y %H:%M:%S", "%d-%b-%Y %H:%M:%S.%f")

FLIP_TO_SAR_GEOMETRY_ENV = "RISAT_PRODUCTS_FLIP_TO_SAR_GEOMETRY"
FLIP_TO_SAR_GEOMETRY = os.environ.get(FLIP_TO_SAR_GEOMETRY_ENV, "false").strip().lower() == "true"


class InvalidRISAT1Product(RuntimeError):
    """Invalid RISAT-1 Product"""


class RISAT1AcquisitionMode(Enum):
    """RISAT-1 acquisition modes, driving band topology"""

    COMPLEX = "COMPLEX"
    DETECTED = "DETECTED"

    @classmethod
    def from_product_type(cls, product_type: str) -> RISAT1AcquisitionMode:
        """Associating correct enum value to product type.

        Parameters
        ----------
        product_type : str
            vendor ProductType field

        Returns
        -------
        RISAT1AcquisitionMode
            COMPLEX for slant range products, else DETECTED
        """
        return cls.COMPLEX if "SLANT" in product_type else cls.DETECTED

    @property
    def projection(self) -> SARProjection:
        """Swath projection for this acquisition mode"""
        return SARProjection.SLANT_RANGE if self == RISAT1AcquisitionMode.COMPLEX else SARProjection.GROUND_RANGE


class PolarizationResolver:
    """Resolving channel tokens to polarizations, one instance per ingestion.

    Compact tokens are checked before the linear ones. Resolving a compact token switches the compact polarimetric
    mode on, and it stays on for the lifetime of the resolver.
    """

    _RESOLUTION_ORDER = (
        SARPolarization.RH,
        SARPolarization.RV,
        SARPolarization.HH,
        SARPolarization.HV,
        SARPolarization.VV,
        SARPolarization.VH,
    )

    def __init__(self) -> None:
        self._compact_pol_mode = False

    @property
    def compact_pol_mode(self) -> bool:
        """True once a compact channel has been resolved"""
        return self._compact_pol_mode

    def resolve(self, token: str) -> SARPolarization | None:
        """Resolving the polarization contained in a channel token, case insensitive.

        Parameters
        ----------
        token : str
            channel token, i.e. a file or product name

        Returns
        -------
        SARPolarization | None
            polarization found in the token, None if unrecognized
        """
        token = token.upper()
        for polarization in self._RESOLUTION_ORDER:
            if polarization.name in token:
                if polarization.is_compact:
                    self._compact_pol_mode = True
                return polarization
        return None

    @staticmethod
    def band_suffix(polarization: SARPolarization) -> str:
        """Band name suffix of a polarization, RCH and RCV for compact channels"""
        if polarization.is_compact:
            return "RC" + polarization.name[1]
        return polarization.name


def classify_raster_file(file_name: str) -> RasterContainerKind | None:
    """Classifying a candidate file from its name.

    Parameters
    ----------
    file_name : str
        candidate file name

    Returns
    -------
    RasterContainerKind | None
        container kind, None if the file is not a data file
    """
    if file_name.endswith(GEO_RASTER_EXTENSIONS) and GEO_RASTER_MARKER in file_name:
        return RasterContainerKind.GEO_RASTER
    if file_name.endswith(LEGACY_BINARY_EXTENSION) and LEGACY_BINARY_MARKER in file_name:
        return RasterContainerKind.LEGACY_BINARY
    return None


def channel_token_from_path(path: str | Path) -> str:
    """Two characters channel token following the channel folder marker in the name of the file parent folder.

    Parameters
    ----------
    path : str | Path
        path to a file inside a channel folder

    Returns
    -------
    str
        channel token, i.e. HH for .../scene_HH/vdf_file.001, empty if the parent folder is not a channel folder
    """
    folder_name = Path(path).parent.name
    if not folder_name.startswith(CHANNEL_FOLDER_MARKER):
        return ""
    return folder_name[len(CHANNEL_FOLDER_MARKER) : len(CHANNEL_FOLDER_MARKER) + 2]


def parse_vendor_time(value: str | None) -> PreciseDateTime:
    """Parsing a vendor time string as dd-MMM-yyyy HH:mm:ss[.ffffff].

    Parameters
    ----------
    value : str | None
        time string

    Returns
    -------
    PreciseDateTime
        parsed time, NO_METADATA_UTC if missing or unparseable
    """
    if value is None:
        return NO_METADATA_UTC

    value = value.upper().strip()
    for time_format in VENDOR_TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, time_format)
        except ValueError:
            continue
        return PreciseDateTime.fromisoformat(parsed.isoformat())
    return NO_METADATA_UTC


def read_band_meta(band_meta_file: str | Path) -> MetadataElement:
    """Reading the vendor BAND_META.txt key=value header.

    Parameters
    ----------
    band_meta_file : str | Path
        path to the BAND_META.txt file

    Returns
    -------
    MetadataElement
        ProductMetadata element, one text attribute per key
    """
    content = Path(band_meta_file).read_text(encoding="UTF-8", errors="replace")
    raw_content = [line.strip() for line in content.splitlines() if line.strip() and not line.strip().startswith("#")]

    element = MetadataElement(PRODUCT_METADATA)
    for line in raw_content:
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        element.add_attribute(key.strip(), value.strip())
    return element


class RISAT1FolderLayout:
    """RISAT-1 product main directory architecture"""

    def __init__(self, path: Path) -> None:
        """Definition of internal architecture of a RISAT-1 product folder.

        Parameters
        ----------
        path : Path
            path to the RISAT-1 product base folder
        """
        self._product_path = path
        self._band_meta_file = path.joinpath(BAND_HEADER_NAME)

    @property
    def product_path(self) -> Path:
        """Product base folder"""
        return self._product_path

    @property
    def band_meta_file(self) -> Path:
        """Path to the BAND_META.txt file"""
        return self._band_meta_file

    def get_channel_folder(self, polarization: str | SARPolarization) -> Path:
        """Channel folder for the input polarization, scene_<POL>.

        Parameters
        ----------
        polarization : str | SARPolarization
            polarization value or name

        Returns
        -------
        Path
            Path to the channel folder, not necessarily existing
        """
        if not isinstance(polarization, SARPolarization):
            polarization = SARPolarization[polarization.upper()]
        return self._product_path.joinpath(CHANNEL_FOLDER_MARKER + polarization.name)

    def iter_candidate_files(self) -> Iterator[Path]:
        """Candidate files of every existing channel folder, folders in fixed order and files sorted by name"""
        for polarization in CHANNEL_FOLDERS_ORDER:
            folder = self.get_channel_folder(polarization)
            if not folder.is_dir():
                continue
            yield from sorted(f for f in folder.iterdir() if f.is_file())

    def get_channel_data_files(self, polarization: str | SARPolarization) -> list[Path]:
        """Data files (GeoRaster or legacy binary) of a channel folder, sorted by name"""
        folder = self.get_channel_folder(polarization)
        if not folder.is_dir():
            return []
        return sorted(f for f in folder.iterdir() if f.is_file() and classify_raster_file(f.name) is not None)


class RISAT1Product:
    """RISAT-1 Product"""

    def __init__(self, path: str | Path) -> None:
        self._product_path = Path(path)
        if self._product_path.name == BAND_HEADER_NAME:
            self._product_path = self._product_path.parent
        self._product_name = self._product_path.name
        self._layout = RISAT1FolderLayout(self._product_path)

        self._product_metadata = read_band_meta(self._layout.band_meta_file)
        self._acq_time = parse_vendor_time(self._product_metadata.get_attribute_string("SceneStartTime"))
        self._product_type = self._product_metadata.get_attribute_string("ProductType", "")
        self._pass = self._product_metadata.get_attribute_string("Node", "").lower()

        self._channels = [p.name for p in CHANNEL_FOLDERS_ORDER if self._layout.get_channel_data_files(p)]

    @property
    def acquisition_time(self) -> PreciseDateTime:
        """Acquisition start time for this product"""
        return self._acq_time

    @property
    def product_type(self) -> str:
        """Vendor product type"""
        return self._product_type

    @property
    def acquisition_mode(self) -> RISAT1AcquisitionMode:
        """Acquisition mode (complex or detected)"""
        return RISAT1AcquisitionMode.from_product_type(self._product_type)

    @property
    def projection(self) -> SARProjection:
        """Swath projection (slant range for complex products, ground range for detected ones)"""
        return self.acquisition_mode.projection

    @property
    def orbit_direction(self) -> OrbitDirection | None:
        """Orbit direction, None if not annotated"""
        try:
            return OrbitDirection(self._pass)
        except ValueError:
            return None

    @property
    def band_meta_file(self) -> Path:
        """Path to the BAND_META.txt file"""
        return self._layout.band_meta_file

    @property
    def data_list(self) -> list[Path]:
        """Raster data files found in the product"""
        return [f for p in CHANNEL_FOLDERS_ORDER for f in self._layout.get_channel_data_files(p)]

    @property
    def metadata_list(self) -> list[Path]:
        """Metadata files of the product"""
        return [self._layout.band_meta_file]

    @property
    def channels_number(self) -> int:
        """Returning the number of channels for this product"""
        return len(self._channels)

    @property
    def channels_list(self) -> list[str]:
        """Returning the list of channels in terms of polarization names"""
        return self._channels

    def get_files_from_channel_name(self, channel_name: str) -> tuple[Path, ...]:
        """Get metadata and raster files associated to input channel name.

        Parameters
        ----------
        channel_name : str
            selected channel name, i.e. HH

        Returns
        -------
        tuple[Path, ...]
            BAND_META.txt path,
            raster files paths of the channel
        """
        return (self._layout.band_meta_file, *self._layout.get_channel_data_files(channel_name))


def is_risat1_product(product: str | Path) -> bool:
    """Check if input path corresponds to a valid RISAT-1 product, basic version.

    Conditions to be met for basic validity:
        - path exists
        - path is a directory (or the BAND_META.txt file itself)
        - BAND_META.txt file exists
        - BAND_META.txt parsing works and the ProductType field is present

    Parameters
    ----------
    product : str | Path
        path to the product to be checked

    Returns
    -------
    bool
        True if it is a valid product, else False
    """
    product = Path(product)
    if product.is_file() and product.name == BAND_HEADER_NAME:
        product = product.parent

    if not product.exists() or not product.is_dir():
        return False

    layout = RISAT1FolderLayout(path=product)
    if not layout.band_meta_file.is_file():
        return False

    try:
        product_metadata = read_band_meta(layout.band_meta_file)
    except Exception:
        return False

    return product_metadata.contains_attribute("ProductType")
