# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 scene files decoding
----------------------------
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import numpy as np

from risat_products.common.ceos import read_ceos_product
from risat_products.common.geotiff import GeoTiffBandStream, is_tiff_stream, read_geotiff_product
from risat_products.common.product import RasterProduct
from risat_products.common.utilities import RasterContainerKind, UnsupportedRasterFormatError
from risat_products.risat1.l1_products.utilities import (
    RISAT1AcquisitionMode,
    RISAT1FolderLayout,
    channel_token_from_path,
    classify_raster_file,
)

logger = logging.getLogger(__name__)

COMPLEX_STREAM_DATA_TYPE = np.int32


@dataclass(frozen=True)
class RasterFileDescriptor:
    """Decoded physical raster file"""

    name: str
    path: Path
    kind: RasterContainerKind
    sub_product: RasterProduct
    band_stream: GeoTiffBandStream | None
    band_count: int
    data_type: np.dtype
    width: int
    height: int


class RISAT1SceneDecoder:
    """Decoding every data file of the channel folders of a product.

    Each candidate file is classified from its name and decoded by the decoder of its container kind. GeoRaster
    files yield a sub-product and a streaming handle, legacy binary files a sub-product only.
    """

    def __init__(self, layout: RISAT1FolderLayout, acquisition_mode: RISAT1AcquisitionMode) -> None:
        self._layout = layout
        self._acquisition_mode = acquisition_mode
        self._descriptors: list[RasterFileDescriptor] = []
        self._decoders: dict[RasterContainerKind, Callable[[Path], RasterFileDescriptor | None]] = {
            RasterContainerKind.GEO_RASTER: self._decode_geo_raster,
            RasterContainerKind.LEGACY_BINARY: self._decode_legacy_binary,
        }

    @property
    def descriptors(self) -> list[RasterFileDescriptor]:
        """Decoded files, in discovery order"""
        return list(self._descriptors)

    @property
    def sub_products(self) -> list[RasterProduct]:
        """Decoded sub-products, GeoRaster files first, then legacy binary ones, discovery order otherwise"""
        return [d.sub_product for d in self._descriptors if d.kind == RasterContainerKind.GEO_RASTER] + [
            d.sub_product for d in self._descriptors if d.kind == RasterContainerKind.LEGACY_BINARY
        ]

    @property
    def band_streams(self) -> dict[str, GeoTiffBandStream]:
        """Streaming handles by logical name, in discovery order"""
        return {d.name: d.band_stream for d in self._descriptors if d.band_stream is not None}

    def decode(self) -> RISAT1SceneDecoder:
        """Decoding all candidate files of the product"""
        for path in self._layout.iter_candidate_files():
            self.add_image_file(path)
        return self

    def add_image_file(self, path: Path) -> RasterFileDescriptor | None:
        """Classifying and decoding a single candidate file.

        Parameters
        ----------
        path : Path
            candidate file path

        Returns
        -------
        RasterFileDescriptor | None
            descriptor of the decoded file, None if the file has been skipped
        """
        kind = classify_raster_file(path.name)
        if kind is None:
            logger.debug("%s is not a data file, ignored", path)
            return None

        logger.debug("decoding %s as %s", path, kind.value)
        descriptor = self._decoders[kind](path)
        if descriptor is not None:
            self._descriptors.append(descriptor)
        return descriptor

    def _decode_geo_raster(self, path: Path) -> RasterFileDescriptor | None:
        with open(path, "rb") as stream:
            if not stream.read(1):
                logger.debug("%s is an empty placeholder, skipped", path)
                return None
            stream.seek(0)
            if not is_tiff_stream(stream):
                raise UnsupportedRasterFormatError(f"Unable to open {path}")

        sub_product = read_geotiff_product(path)
        data_type = COMPLEX_STREAM_DATA_TYPE if self._acquisition_mode == RISAT1AcquisitionMode.COMPLEX else None
        band_stream = GeoTiffBandStream(path, data_type=data_type)

        return RasterFileDescriptor(
            name=band_stream.name,
            path=path,
            kind=RasterContainerKind.GEO_RASTER,
            sub_product=sub_product,
            band_stream=band_stream,
            band_count=band_stream.num_bands,
            data_type=band_stream.data_type,
            width=band_stream.width,
            height=band_stream.height,
        )

    def _decode_legacy_binary(self, path: Path) -> RasterFileDescriptor:
        sub_product = read_ceos_product(path)
        sub_product.name = f"{sub_product.name}_{channel_token_from_path(path)}"

        return RasterFileDescriptor(
            name=sub_product.name,
            path=path,
            kind=RasterContainerKind.LEGACY_BINARY,
            sub_product=sub_product,
            band_stream=None,
            band_count=sub_product.num_bands,
            data_type=sub_product.get_band_at(0).data_type,
            width=sub_product.width,
            height=sub_product.height,
        )
