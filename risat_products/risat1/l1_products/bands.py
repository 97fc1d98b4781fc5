# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 band synthesis
----------------------
"""

from __future__ import annotations

import logging
from functools import partial

import numpy as np

import risat_products.common.abstracted_metadata as absmeta
from risat_products.common.product import (
    UNIT_AMPLITUDE,
    UNIT_IMAGINARY,
    UNIT_INTENSITY,
    UNIT_REAL,
    Band,
    RasterProduct,
    VirtualBand,
)
from risat_products.common.protocols import BandStreamProtocol
from risat_products.common.utilities import RasterContainerKind
from risat_products.risat1.l1_products.metadata import set_compact_pol_mode
from risat_products.risat1.l1_products.utilities import PolarizationResolver, RISAT1AcquisitionMode

logger = logging.getLogger(__name__)

DETECTED_STREAM_DATA_TYPE = np.uint32


def _complex_intensity(real: np.ndarray, imaginary: np.ndarray) -> np.ndarray:
    real = real.astype(np.float64)
    imaginary = imaginary.astype(np.float64)
    return real * real + imaginary * imaginary


def _detected_intensity(amplitude: np.ndarray) -> np.ndarray:
    amplitude = amplitude.astype(np.float64)
    return amplitude * amplitude


def create_virtual_intensity_band(
    product: RasterProduct, band: Band, imaginary_band: Band | None = None, suffix: str = ""
) -> VirtualBand:
    """Adding to the product the intensity band derived from an amplitude band or a real/imaginary pair.

    Parameters
    ----------
    product : RasterProduct
        target product
    band : Band
        amplitude band, or real band when imaginary_band is given
    imaginary_band : Band | None, optional
        imaginary band, by default None
    suffix : str, optional
        intensity band name suffix, by default ""

    Returns
    -------
    VirtualBand
        the intensity band, Intensity<suffix>
    """
    if imaginary_band is None:
        expression = f"{band.name} * {band.name}"
        intensity = VirtualBand(
            name="Intensity" + suffix,
            expression=expression,
            sources=[band],
            function=_detected_intensity,
            unit=UNIT_INTENSITY,
        )
    else:
        expression = f"{band.name} * {band.name} + {imaginary_band.name} * {imaginary_band.name}"
        intensity = VirtualBand(
            name="Intensity" + suffix,
            expression=expression,
            sources=[band, imaginary_band],
            function=_complex_intensity,
            unit=UNIT_INTENSITY,
        )
    intensity.no_data_value_used = True
    intensity.no_data_value = 0
    return product.add_band(intensity)


def _add_band(product: RasterProduct, band: Band, unit: str) -> Band:
    band.unit = unit
    band.no_data_value = 0
    band.no_data_value_used = True
    logger.debug("adding band %s to %s", band.name, product.name)
    return product.add_band(band)


def _free_suffix(product: RasterProduct, prefix: str, suffix: str) -> str:
    """Channel suffix not yet used by a <prefix>_<suffix> band, numbered from 2 on for repeated channel bands"""
    candidate, count = suffix, 1
    while f"{prefix}_{candidate}" in product.band_names:
        count += 1
        candidate = f"{suffix}_{count}"
    return candidate


def propagate_geocoding(product: RasterProduct, sub_products: list[RasterProduct]) -> RasterProduct | None:
    """Transferring geocoding and tiling hint from the first matching sub-product.

    The first sub-product, in discovery order, with the same raster size as the product and carrying a geocoding
    is used. Nothing happens if the product is already geocoded.

    Parameters
    ----------
    product : RasterProduct
        composite product
    sub_products : list[RasterProduct]
        decoded sub-products

    Returns
    -------
    RasterProduct | None
        the sub-product used, None if no transfer happened
    """
    if product.scene_geocoding is not None:
        return None

    for sub_product in sub_products:
        if (
            sub_product.scene_geocoding is not None
            and sub_product.width == product.width
            and sub_product.height == product.height
        ):
            sub_product.transfer_geocoding_to(product)
            product.preferred_tile_size = sub_product.preferred_tile_size or sub_product.default_tile_size()
            return sub_product
    return None


class RISAT1BandSynthesizer:
    """Building the composite band set for one ingestion"""

    def __init__(self, acquisition_mode: RISAT1AcquisitionMode, resolver: PolarizationResolver) -> None:
        self._acquisition_mode = acquisition_mode
        self._resolver = resolver

    @property
    def is_complex(self) -> bool:
        """True for SLC products"""
        return self._acquisition_mode == RISAT1AcquisitionMode.COMPLEX

    def _resolve_suffix(self, token: str) -> str | None:
        polarization = self._resolver.resolve(token)
        if polarization is None:
            logger.debug("unrecognized channel in %s, excluded from bands", token)
            return None
        return self._resolver.band_suffix(polarization)

    def _add_sub_product_bands(self, product: RasterProduct, sub_product: RasterProduct) -> None:
        suffix = self._resolve_suffix(sub_product.name)
        if suffix is None:
            return

        if self.is_complex:
            real_band, imaginary_band = sub_product.get_band_at(0), sub_product.get_band_at(1)
            suffix = _free_suffix(product, real_band.name, suffix)
            real = _add_band(product, real_band.copy(f"{real_band.name}_{suffix}"), UNIT_REAL)
            imaginary = _add_band(product, imaginary_band.copy(f"{imaginary_band.name}_{suffix}"), UNIT_IMAGINARY)
            create_virtual_intensity_band(product, real, imaginary, "_" + suffix)
        else:
            suffix = _free_suffix(product, "Amplitude", suffix)
            amplitude = _add_band(product, sub_product.get_band_at(0).copy(f"Amplitude_{suffix}"), UNIT_AMPLITUDE)
            create_virtual_intensity_band(product, amplitude, suffix="_" + suffix)

    def _add_stream_bands(self, product: RasterProduct, stream: BandStreamProtocol) -> None:
        channel_suffix = self._resolve_suffix(stream.name)
        if channel_suffix is None:
            return

        if not self.is_complex:
            for index in range(stream.num_bands):
                suffix = _free_suffix(product, "Amplitude", channel_suffix)
                amplitude = Band(
                    name=f"Amplitude_{suffix}",
                    data_type=DETECTED_STREAM_DATA_TYPE,
                    width=product.width,
                    height=product.height,
                    source=partial(stream.read_band, index),
                )
                _add_band(product, amplitude, UNIT_AMPLITUDE)
                create_virtual_intensity_band(product, amplitude, suffix="_" + suffix)
            return

        # consecutive bands are paired, real part first
        for index in range(0, stream.num_bands, 2):
            suffix = _free_suffix(product, "i", channel_suffix)
            real = Band(
                name=f"i_{suffix}",
                data_type=stream.data_type,
                width=product.width,
                height=product.height,
                source=partial(stream.read_band, index),
            )
            _add_band(product, real, UNIT_REAL)
            if index + 1 >= stream.num_bands:
                logger.warning("%s: real band %d has no imaginary counterpart", stream.name, index)
                break
            imaginary = Band(
                name=f"q_{suffix}",
                data_type=stream.data_type,
                width=product.width,
                height=product.height,
                source=partial(stream.read_band, index + 1),
            )
            _add_band(product, imaginary, UNIT_IMAGINARY)
            create_virtual_intensity_band(product, real, imaginary, "_" + suffix)

    def _attach_legacy_metadata(self, product: RasterProduct, sub_products: list[RasterProduct]) -> None:
        original = absmeta.get_original_product_metadata(product.metadata_root)
        for sub_product in sub_products:
            if sub_product.decoder_kind != RasterContainerKind.LEGACY_BINARY:
                continue
            suffix = self._resolve_suffix(sub_product.name)
            if suffix is None:
                continue
            channel_metadata = absmeta.get_original_product_metadata(sub_product.metadata_root).copy()
            channel_metadata.name = f"{suffix}_Metadata"
            original.add_element(channel_metadata)

    def synthesize(
        self,
        product: RasterProduct,
        sub_products: list[RasterProduct],
        band_streams: dict[str, BandStreamProtocol],
    ) -> None:
        """Populating the composite product bands.

        Sub-product bands are copied only when no streaming handle is available, otherwise bands come from the
        streaming handles and sub-products are used for metadata and geocoding only.

        Parameters
        ----------
        product : RasterProduct
            composite product, metadata already normalized
        sub_products : list[RasterProduct]
            decoded sub-products, in discovery order
        band_streams : dict[str, BandStreamProtocol]
            streaming handles by logical name, in discovery order
        """
        if sub_products and not band_streams:
            for sub_product in sub_products:
                self._add_sub_product_bands(product, sub_product)

        self._attach_legacy_metadata(product, sub_products)
        propagate_geocoding(product, sub_products)

        for stream in band_streams.values():
            self._add_stream_bands(product, stream)

        if self._resolver.compact_pol_mode:
            set_compact_pol_mode(absmeta.get_abstracted_metadata(product.metadata_root))
