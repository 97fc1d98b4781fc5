# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
Raster product data model
-------------------------

In-memory containers populated by the format readers: a metadata tree made of elements and typed attributes,
bands with lazy pixel access, virtual bands computed on the fly from other bands and the raster product holding
them together with its optional geocoding.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Callable, Union

import numpy as np
from arepytools.timing.precisedatetime import PreciseDateTime

from risat_products.common.utilities import RasterContainerKind

AttributeValue = Union[str, int, float, PreciseDateTime]
PixelSource = Callable[[Union[list, None]], np.ndarray]

UNIT_REAL = "real"
UNIT_IMAGINARY = "imaginary"
UNIT_AMPLITUDE = "amplitude"
UNIT_INTENSITY = "intensity"

DEFAULT_TILE_SIZE = 512


@dataclass
class MetadataAttribute:
    """Named metadata value with unit and description"""

    name: str
    value: AttributeValue
    unit: str = ""
    description: str = ""


class MetadataElement:
    """Node of a metadata tree, holding ordered attributes and ordered child elements"""

    def __init__(self, name: str) -> None:
        self._name = name
        self._attributes: dict[str, MetadataAttribute] = {}
        self._elements: list[MetadataElement] = []

    def __repr__(self) -> str:
        return f"MetadataElement({self._name!r}, attributes={len(self._attributes)}, elements={len(self._elements)})"

    @property
    def name(self) -> str:
        """Element name"""
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def attribute_names(self) -> list[str]:
        """Names of the attributes, in insertion order"""
        return list(self._attributes)

    @property
    def element_names(self) -> list[str]:
        """Names of the child elements, in insertion order"""
        return [e.name for e in self._elements]

    def add_element(self, element: MetadataElement) -> MetadataElement:
        """Appending a child element and returning it"""
        self._elements.append(element)
        return element

    def get_element(self, name: str) -> MetadataElement | None:
        """First child element with the given name, None if missing"""
        for element in self._elements:
            if element.name == name:
                return element
        return None

    def get_elements(self) -> list[MetadataElement]:
        """Child elements, in insertion order"""
        return list(self._elements)

    def contains_attribute(self, name: str) -> bool:
        """Checking if an attribute is defined"""
        return name in self._attributes

    def add_attribute(self, name: str, value: AttributeValue, unit: str = "", description: str = "") -> None:
        """Defining an attribute, replacing any previous definition with the same name"""
        self._attributes[name] = MetadataAttribute(name=name, value=value, unit=unit, description=description)

    def set_attribute(self, name: str, value: AttributeValue) -> None:
        """Setting an attribute value, keeping unit and description if the attribute already exists"""
        if name in self._attributes:
            self._attributes[name].value = value
        else:
            self.add_attribute(name, value)

    def get_attribute(self, name: str) -> MetadataAttribute | None:
        """Attribute with the given name, None if missing"""
        return self._attributes.get(name)

    def get_attribute_value(self, name: str, default: AttributeValue | None = None) -> AttributeValue | None:
        """Raw attribute value, default if missing"""
        attribute = self._attributes.get(name)
        return default if attribute is None else attribute.value

    def get_attribute_string(self, name: str, default: str | None = None) -> str | None:
        """Attribute value as text, default if missing"""
        attribute = self._attributes.get(name)
        return default if attribute is None else str(attribute.value)

    def get_attribute_int(self, name: str, default: int | None = None) -> int | None:
        """Attribute value as integer, default if missing or not convertible"""
        value = self.get_attribute_float(name)
        if value is None:
            return default
        try:
            return int(value)
        except (OverflowError, ValueError):
            return default

    def get_attribute_float(self, name: str, default: float | None = None) -> float | None:
        """Attribute value as float, default if missing or not convertible"""
        attribute = self._attributes.get(name)
        if attribute is None or isinstance(attribute.value, PreciseDateTime):
            return default
        try:
            return float(attribute.value)
        except (TypeError, ValueError):
            return default

    def get_attribute_utc(self, name: str, default: PreciseDateTime | None = None) -> PreciseDateTime | None:
        """Attribute value as PreciseDateTime, default if missing or not a time"""
        attribute = self._attributes.get(name)
        if attribute is None or not isinstance(attribute.value, PreciseDateTime):
            return default
        return attribute.value

    def copy(self) -> MetadataElement:
        """Deep copy of this element and its whole subtree"""
        return copy.deepcopy(self)


@dataclass
class AffineGeoCoding:
    """Map geocoding of a raster, pixel corner (0, 0) at origin and constant pixel size"""

    origin: tuple[float, float]
    pixel_size: tuple[float, float]

    def pixel_to_geo(self, x: float, y: float) -> tuple[float, float]:
        """Converting pixel coordinates to map coordinates.

        Parameters
        ----------
        x : float
            pixel coordinate along samples
        y : float
            pixel coordinate along lines

        Returns
        -------
        tuple[float, float]
            map coordinates (easting or longitude, northing or latitude)
        """
        return self.origin[0] + x * self.pixel_size[0], self.origin[1] + y * self.pixel_size[1]


@dataclass
class TiePointGrid:
    """Coarse grid of values sampled over the raster"""

    name: str
    width: int
    height: int
    offset_x: float
    offset_y: float
    sub_sampling_x: float
    sub_sampling_y: float
    data: np.ndarray
    unit: str = ""


class Band:
    """Raster band with lazy pixel access.

    Pixels are never stored in the band: every read goes through the pixel source, a callable accepting the block
    to read as [first line, first sample, number of lines, number of samples] (None for the full raster).
    """

    def __init__(
        self,
        name: str,
        data_type: np.dtype | str | type,
        width: int,
        height: int,
        source: PixelSource | None = None,
        unit: str = "",
        no_data_value: float = 0,
        no_data_value_used: bool = False,
        description: str = "",
    ) -> None:
        self.name = name
        self.data_type = np.dtype(data_type)
        self.width = width
        self.height = height
        self.unit = unit
        self.no_data_value = no_data_value
        self.no_data_value_used = no_data_value_used
        self.description = description
        self._source = source

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.data_type}, {self.width}x{self.height}, unit={self.unit!r})"

    @property
    def is_virtual(self) -> bool:
        """True if pixels are derived from other bands"""
        return False

    def read(self, block_to_read: list[int] | None = None) -> np.ndarray:
        """Reading band pixels.

        Parameters
        ----------
        block_to_read : list[int] | None, optional
            [first line, first sample, number of lines, number of samples], by default None

        Returns
        -------
        np.ndarray
            pixels with shape (lines, samples), casted to the band data type
        """
        if self._source is None:
            raise RuntimeError(f"band {self.name} has no pixel source")
        return np.asarray(self._source(block_to_read)).astype(self.data_type, copy=False)

    def copy(self, name: str) -> Band:
        """Copying the band definition under a new name, the pixel source is shared"""
        return Band(
            name=name,
            data_type=self.data_type,
            width=self.width,
            height=self.height,
            source=self._source,
            unit=self.unit,
            no_data_value=self.no_data_value,
            no_data_value_used=self.no_data_value_used,
            description=self.description,
        )


class VirtualBand(Band):
    """Band computed on each read from its source bands, never materialized"""

    def __init__(
        self,
        name: str,
        expression: str,
        sources: list[Band],
        function: Callable[..., np.ndarray],
        data_type: np.dtype | str | type = np.float64,
        unit: str = "",
        description: str = "",
    ) -> None:
        super().__init__(
            name=name,
            data_type=data_type,
            width=sources[0].width,
            height=sources[0].height,
            unit=unit,
            description=description,
        )
        self.expression = expression
        self.sources = list(sources)
        self._function = function

    @property
    def is_virtual(self) -> bool:
        return True

    def read(self, block_to_read: list[int] | None = None) -> np.ndarray:
        values = self._function(*[band.read(block_to_read) for band in self.sources])
        return np.asarray(values).astype(self.data_type, copy=False)

    def copy(self, name: str) -> VirtualBand:
        return VirtualBand(
            name=name,
            expression=self.expression,
            sources=self.sources,
            function=self._function,
            data_type=self.data_type,
            unit=self.unit,
            description=self.description,
        )


@dataclass
class RasterProduct:
    """Raster product: bands, metadata tree and optional geocoding"""

    name: str
    product_type: str
    width: int
    height: int
    metadata_root: MetadataElement = field(default_factory=lambda: MetadataElement("metadata"))
    scene_geocoding: AffineGeoCoding | None = None
    preferred_tile_size: tuple[int, int] | None = None
    decoder_kind: RasterContainerKind | None = None
    tie_point_grids: list[TiePointGrid] = field(default_factory=list)
    _bands: dict[str, Band] = field(default_factory=dict, init=False, repr=False)

    @property
    def bands(self) -> list[Band]:
        """Product bands, in insertion order"""
        return list(self._bands.values())

    @property
    def band_names(self) -> list[str]:
        """Product band names, in insertion order"""
        return list(self._bands)

    @property
    def num_bands(self) -> int:
        """Number of bands"""
        return len(self._bands)

    def add_band(self, band: Band) -> Band:
        """Adding a band to the product.

        Parameters
        ----------
        band : Band
            band to be added

        Returns
        -------
        Band
            the added band

        Raises
        ------
        ValueError
            if a band with the same name already exists
        """
        if band.name in self._bands:
            raise ValueError(f"band {band.name} already exists in product {self.name}")
        self._bands[band.name] = band
        return band

    def get_band(self, name: str) -> Band:
        """Band with the given name, KeyError if missing"""
        return self._bands[name]

    def get_band_at(self, index: int) -> Band:
        """Band at the given position"""
        return self.bands[index]

    def add_tie_point_grid(self, grid: TiePointGrid) -> None:
        """Adding a tie point grid"""
        self.tie_point_grids.append(grid)

    def default_tile_size(self) -> tuple[int, int]:
        """Default tiling, square tiles capped to the raster size"""
        return min(DEFAULT_TILE_SIZE, self.height), min(DEFAULT_TILE_SIZE, self.width)

    def transfer_geocoding_to(self, other: RasterProduct) -> None:
        """Copying this product geocoding to another product"""
        other.scene_geocoding = copy.deepcopy(self.scene_geocoding)
