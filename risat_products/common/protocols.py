# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
Common Protocols to be matched by product objects and raster decoders
---------------------------------------------------------------------
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
from arepytools.timing.precisedatetime import PreciseDateTime


@runtime_checkable
class EOL1ProductProtocol(Protocol):
    """Protocol to define the structure of a L1 main product object across different formats"""

    @property
    def acquisition_time(self) -> PreciseDateTime:
        """Acquisition start time for this product"""

    @property
    def data_list(self) -> list[Path]:
        """Raster data files found in the product"""

    @property
    def metadata_list(self) -> list[Path]:
        """Metadata files of the product"""

    @property
    def channels_number(self) -> int:
        """Number of channels in product"""

    @property
    def channels_list(self) -> list[str]:
        """Channel identifiers (polarization names) available in the product"""

    def get_files_from_channel_name(self, channel_name: str) -> tuple[Path, ...]:
        """Get metadata and raster files on disk for the selected channel.

        Parameters
        ----------
        channel_name : str
            selected channel identifier

        Returns
        -------
        tuple[Path, ...]
            metadata file path,
            raster file paths for that channel
        """


@runtime_checkable
class BandStreamProtocol(Protocol):
    """Low level per-band pixel access to a single raster file, no full decode required"""

    @property
    def name(self) -> str:
        """Logical name of the stream, the raster file name"""

    @property
    def num_bands(self) -> int:
        """Number of bands available in the stream"""

    @property
    def data_type(self) -> np.dtype:
        """Sample data type of the bands"""

    @property
    def width(self) -> int:
        """Number of samples per line"""

    @property
    def height(self) -> int:
        """Number of lines"""

    def read_band(self, index: int, block_to_read: list[int] | None = None) -> np.ndarray:
        """Reading pixels of a single band.

        Parameters
        ----------
        index : int
            band index, starting from 0
        block_to_read : list[int] | None, optional
            [first line, first sample, number of lines, number of samples], by default None

        Returns
        -------
        np.ndarray
            band pixels with shape (lines, samples)
        """
