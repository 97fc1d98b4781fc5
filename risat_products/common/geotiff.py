# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
GeoTIFF raster decoder
----------------------
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import BinaryIO

import numpy as np
import zarr
from tifffile import TiffFile, TiffFileError, imread

from risat_products.common.product import AffineGeoCoding, Band, RasterProduct
from risat_products.common.utilities import RasterContainerKind, UnsupportedRasterFormatError

MODEL_PIXEL_SCALE_TAG = 33550
MODEL_TIEPOINT_TAG = 33922

_TIFF_MAGIC = (b"II*\x00", b"MM\x00*", b"II+\x00", b"MM\x00+")


def is_tiff_stream(stream: BinaryIO) -> bool:
    """Checking TIFF/BigTIFF magic bytes at the current stream position, position is restored.

    Parameters
    ----------
    stream : BinaryIO
        opened binary stream

    Returns
    -------
    bool
        True if the stream holds a TIFF file
    """
    position = stream.tell()
    header = stream.read(4)
    stream.seek(position)
    return header in _TIFF_MAGIC


def _geocoding_from_tags(page) -> AffineGeoCoding | None:
    scale = page.tags.get(MODEL_PIXEL_SCALE_TAG)
    tiepoint = page.tags.get(MODEL_TIEPOINT_TAG)
    if scale is None or tiepoint is None:
        return None

    # tie point: (I, J, K, X, Y, Z), raster to model, Y axis pointing north
    i, j, _, x, y, _ = tiepoint.value[:6]
    scale_x, scale_y = scale.value[:2]
    return AffineGeoCoding(origin=(x - i * scale_x, y + j * scale_y), pixel_size=(scale_x, -scale_y))


class GeoTiffBandStream:
    """Per-band streaming access to a TIFF file through its zarr store.

    Band layout:
        - single page, single sample: one band
        - single page, multiple samples per pixel: one band per sample
        - multiple pages: one band per page
        - complex samples: real and imaginary parts as consecutive bands
    """

    def __init__(self, path: str | Path, data_type: np.dtype | str | type | None = None) -> None:
        self._path = Path(path)
        self._name = self._path.name

        try:
            with TiffFile(self._path) as tif:
                series = tif.series[0]
                shape, axes, native_type = series.shape, series.axes, series.dtype
        except TiffFileError as err:
            raise UnsupportedRasterFormatError(f"Unable to open {self._path}") from err

        if len(shape) == 2:
            self._band_axis = None
        elif len(shape) == 3:
            self._band_axis = 2 if axes.endswith("S") else 0
        else:
            raise UnsupportedRasterFormatError(f"Unsupported raster layout {axes} in {self._path}")

        lines_axis, samples_axis = [a for a in range(len(shape)) if a != self._band_axis]
        self._height, self._width = shape[lines_axis], shape[samples_axis]
        self._native_bands = 1 if self._band_axis is None else shape[self._band_axis]
        self._is_complex = np.issubdtype(native_type, np.complexfloating)

        if data_type is not None:
            self._data_type = np.dtype(data_type)
        elif self._is_complex:
            self._data_type = np.empty(0, dtype=native_type).real.dtype
        else:
            self._data_type = np.dtype(native_type)

    @property
    def name(self) -> str:
        """Logical name, the raster file name"""
        return self._name

    @property
    def path(self) -> Path:
        """Path to the raster file"""
        return self._path

    @property
    def num_bands(self) -> int:
        """Number of bands"""
        return self._native_bands * 2 if self._is_complex else self._native_bands

    @property
    def data_type(self) -> np.dtype:
        """Declared sample data type"""
        return self._data_type

    @property
    def width(self) -> int:
        """Number of samples per line"""
        return self._width

    @property
    def height(self) -> int:
        """Number of lines"""
        return self._height

    def read_band(self, index: int, block_to_read: list[int] | None = None) -> np.ndarray:
        """Reading a single band from the tif file.

        Parameters
        ----------
        index : int
            band index, starting from 0
        block_to_read : list[int] | None, optional
            data block to be read, to be specified as a list of 4 integers, in the form:
                0. first line to be read
                1. first sample to be read
                2. total number of lines to be read
                3. total number of samples to be read

            by default None

        Returns
        -------
        np.ndarray
            numpy array containing the band data, with shape (lines, samples)
        """
        if not 0 <= index < self.num_bands:
            raise IndexError(f"band index {index} out of range for {self._name}")

        native_index = index // 2 if self._is_complex else index
        if block_to_read is None:
            lines, samples = slice(None), slice(None)
        else:
            lines = slice(block_to_read[0], block_to_read[0] + block_to_read[2])
            samples = slice(block_to_read[1], block_to_read[1] + block_to_read[3])

        img_store = imread(self._path, aszarr=True)
        try:
            z = zarr.open(img_store, mode="r")
            if self._band_axis is None:
                target_area = z[lines, samples]
            elif self._band_axis == 0:
                target_area = z[native_index, lines, samples]
            else:
                target_area = z[lines, samples, native_index]
        finally:
            img_store.close()

        if self._is_complex:
            target_area = target_area.imag if index % 2 else target_area.real

        return np.asarray(target_area)


def read_geotiff_product(path: str | Path) -> RasterProduct:
    """Decoding a GeoTIFF file as a raster product.

    Parameters
    ----------
    path : str | Path
        path to the tif file

    Returns
    -------
    RasterProduct
        product with bands band_1 ... band_N, geocoding and preferred tile size when available

    Raises
    ------
    UnsupportedRasterFormatError
        if the file cannot be decoded as TIFF
    """
    path = Path(path)
    stream = GeoTiffBandStream(path)

    with TiffFile(path) as tif:
        page = tif.pages[0]
        geocoding = _geocoding_from_tags(page)
        tile_size = (page.tilelength, page.tilewidth) if page.is_tiled else None

    product = RasterProduct(
        name=path.stem,
        product_type="GeoTIFF",
        width=stream.width,
        height=stream.height,
        scene_geocoding=geocoding,
        preferred_tile_size=tile_size,
        decoder_kind=RasterContainerKind.GEO_RASTER,
    )
    for index in range(stream.num_bands):
        product.add_band(
            Band(
                name=f"band_{index + 1}",
                data_type=stream.data_type,
                width=stream.width,
                height=stream.height,
                source=partial(stream.read_band, index),
            )
        )

    return product
