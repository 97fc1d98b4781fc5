# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
CEOS legacy binary decoder
--------------------------

Minimal CEOS SAR decoder: the volume directory file (vdf_*) is the entry point, the image data are read from the
companion image file (dat_*) in the same folder. Pixels are read block-wise through a memory map of the data
records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from functools import partial
from pathlib import Path

import numpy as np

from risat_products.common.abstracted_metadata import ORIGINAL_PRODUCT_METADATA
from risat_products.common.product import Band, MetadataElement, RasterProduct
from risat_products.common.utilities import InvalidCEOSFileError, RasterContainerKind

logger = logging.getLogger(__name__)

VOLUME_DIRECTORY_PREFIX = "vdf_"
IMAGE_FILE_PREFIX = "dat_"
RECORD_HEADER_SIZE = 12

# format code: (sample type, complex flag)
_SAMPLE_FORMATS = {
    "IU1": (np.dtype("u1"), False),
    "IU2": (np.dtype(">u2"), False),
    "IU4": (np.dtype(">u4"), False),
    "R*4": (np.dtype(">f4"), False),
    "CI*2": (np.dtype("i1"), True),
    "CI*4": (np.dtype(">i2"), True),
    "C*8": (np.dtype(">f4"), True),
}


def _read_record_length(header: bytes) -> int:
    """Record length from the 12 bytes CEOS record header"""
    return int(np.frombuffer(header[8:12], dtype=">u4")[0])


def _ascii_field(record: bytes, start: int, stop: int) -> str:
    return record[start:stop].decode("ascii", errors="replace").strip()


def _int_field(record: bytes, start: int, stop: int, default: int = 0) -> int:
    text = _ascii_field(record, start, stop)
    try:
        return int(text)
    except ValueError:
        return default


@dataclass(frozen=True)
class CEOSImageFileDescriptor:
    """SAR image file descriptor record, first record of the image file"""

    descriptor_length: int
    number_of_records: int
    record_length: int
    bits_per_sample: int
    samples_per_group: int
    bytes_per_group: int
    number_of_lines: int
    pixels_per_line: int
    prefix_bytes: int
    format_code: str

    @staticmethod
    def from_bytes(record: bytes) -> CEOSImageFileDescriptor:
        """Generating the descriptor from the record bytes.

        Parameters
        ----------
        record : bytes
            image file descriptor record

        Returns
        -------
        CEOSImageFileDescriptor
            image file descriptor
        """
        return CEOSImageFileDescriptor(
            descriptor_length=_read_record_length(record),
            number_of_records=_int_field(record, 180, 186),
            record_length=_int_field(record, 186, 192),
            bits_per_sample=_int_field(record, 216, 220),
            samples_per_group=_int_field(record, 220, 224),
            bytes_per_group=_int_field(record, 224, 228),
            number_of_lines=_int_field(record, 236, 244),
            pixels_per_line=_int_field(record, 248, 256),
            prefix_bytes=_int_field(record, 412, 416),
            format_code=_ascii_field(record, 428, 432),
        )

    def to_metadata(self) -> MetadataElement:
        """Image file descriptor as metadata element"""
        element = MetadataElement("Image File Descriptor")
        for item in fields(self):
            element.add_attribute(item.name, getattr(self, item.name))
        return element


class CEOSImageFile:
    """CEOS image file (dat_*) with per-band block access"""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

        with open(self._path, "rb") as f_in:
            header = f_in.read(RECORD_HEADER_SIZE)
            if len(header) < RECORD_HEADER_SIZE:
                raise InvalidCEOSFileError(f"truncated image file descriptor in {self._path}")
            f_in.seek(0)
            record = f_in.read(_read_record_length(header))

        self._descriptor = CEOSImageFileDescriptor.from_bytes(record)
        if self._descriptor.format_code not in _SAMPLE_FORMATS:
            raise InvalidCEOSFileError(f"unsupported sample format {self._descriptor.format_code!r} in {self._path}")

        self._sample_type, self._is_complex = _SAMPLE_FORMATS[self._descriptor.format_code]
        self._lines = self._descriptor.number_of_lines or self._descriptor.number_of_records
        self._samples = self._descriptor.pixels_per_line

        expected_size = self._descriptor.descriptor_length + self._lines * self._descriptor.record_length
        if self._path.stat().st_size < expected_size:
            raise InvalidCEOSFileError(f"image file {self._path} is shorter than its {self._lines} data records")

    @property
    def name(self) -> str:
        """Image file name"""
        return self._path.name

    @property
    def descriptor(self) -> CEOSImageFileDescriptor:
        """Image file descriptor"""
        return self._descriptor

    @property
    def is_complex(self) -> bool:
        """True for complex samples"""
        return self._is_complex

    @property
    def num_bands(self) -> int:
        """2 for complex data (i, q), else 1"""
        return 2 if self._is_complex else 1

    @property
    def data_type(self) -> np.dtype:
        """Native byte order sample data type"""
        return self._sample_type.newbyteorder("=")

    @property
    def width(self) -> int:
        """Number of samples per line"""
        return self._samples

    @property
    def height(self) -> int:
        """Number of lines"""
        return self._lines

    def read_band(self, index: int, block_to_read: list[int] | None = None) -> np.ndarray:
        """Reading a band from the image data records.

        Parameters
        ----------
        index : int
            band index, 0 for detected data, 0 (i) or 1 (q) for complex data
        block_to_read : list[int] | None, optional
            [first line, first sample, number of lines, number of samples], by default None

        Returns
        -------
        np.ndarray
            band pixels with shape (lines, samples)

        Raises
        ------
        IndexError
            if the band index or the block is out of range
        """
        if not 0 <= index < self.num_bands:
            raise IndexError(f"band index {index} out of range for {self.name}")

        if block_to_read is None:
            block_to_read = [0, 0, self._lines, self._samples]
        first_line, first_sample, lines, samples = block_to_read
        if (
            min(first_line, first_sample) < 0
            or min(lines, samples) <= 0
            or first_line + lines > self._lines
            or first_sample + samples > self._samples
        ):
            raise IndexError(
                f"block {block_to_read} out of raster bounds ({self._lines}, {self._samples}) of {self.name}"
            )

        values_per_sample = 2 if self._is_complex else 1
        sample_size = self._sample_type.itemsize * values_per_sample
        start = self._descriptor.prefix_bytes + first_sample * sample_size
        stop = start + samples * sample_size

        records = np.memmap(
            self._path,
            dtype=np.uint8,
            mode="r",
            offset=self._descriptor.descriptor_length,
            shape=(self._lines, self._descriptor.record_length),
        )
        raw = np.ascontiguousarray(records[first_line : first_line + lines, start:stop])
        del records

        data = raw.view(self._sample_type).reshape(raw.shape[0], samples, values_per_sample)
        return data[:, :, index].astype(self.data_type)


def get_image_file_path(volume_directory_file: str | Path) -> Path:
    """Companion image file of a volume directory file.

    Parameters
    ----------
    volume_directory_file : str | Path
        path to the vdf_* file

    Returns
    -------
    Path
        path to the dat_* file in the same folder
    """
    volume_directory_file = Path(volume_directory_file)
    return volume_directory_file.with_name(
        volume_directory_file.name.replace(VOLUME_DIRECTORY_PREFIX, IMAGE_FILE_PREFIX, 1)
    )


def _read_volume_descriptor(path: Path) -> MetadataElement:
    with open(path, "rb") as f_in:
        header = f_in.read(RECORD_HEADER_SIZE)
        if len(header) < RECORD_HEADER_SIZE:
            raise InvalidCEOSFileError(f"truncated volume descriptor in {path}")
        f_in.seek(0)
        record = f_in.read(_read_record_length(header))

    element = MetadataElement("Volume Descriptor")
    element.add_attribute("record_length", len(record))
    element.add_attribute("logical_volume_id", _ascii_field(record, 44, 60))
    return element


def read_ceos_product(volume_directory_file: str | Path) -> RasterProduct:
    """Decoding a CEOS product from its volume directory file.

    Parameters
    ----------
    volume_directory_file : str | Path
        path to the vdf_* file

    Returns
    -------
    RasterProduct
        product with bands i, q (complex data) or Amplitude (detected data) and the decoded CEOS records as
        original product metadata

    Raises
    ------
    InvalidCEOSFileError
        if the image file is missing or cannot be decoded
    """
    volume_directory_file = Path(volume_directory_file)
    image_file_path = get_image_file_path(volume_directory_file)
    if not image_file_path.is_file():
        raise InvalidCEOSFileError(f"image file {image_file_path.name} not found for {volume_directory_file}")

    volume_descriptor = _read_volume_descriptor(volume_directory_file)
    image_file = CEOSImageFile(image_file_path)
    logger.debug(
        "CEOS image file %s: %d x %d, format %s",
        image_file.name,
        image_file.height,
        image_file.width,
        image_file.descriptor.format_code,
    )

    product = RasterProduct(
        name=volume_directory_file.stem,
        product_type="CEOS",
        width=image_file.width,
        height=image_file.height,
        decoder_kind=RasterContainerKind.LEGACY_BINARY,
    )
    original = product.metadata_root.add_element(MetadataElement(ORIGINAL_PRODUCT_METADATA))
    original.add_element(volume_descriptor)
    original.add_element(image_file.descriptor.to_metadata())

    band_names = ["i", "q"] if image_file.is_complex else ["Amplitude"]
    for index, band_name in enumerate(band_names):
        product.add_band(
            Band(
                name=band_name,
                data_type=image_file.data_type,
                width=image_file.width,
                height=image_file.height,
                source=partial(image_file.read_band, index),
            )
        )

    return product
