# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 product format reader
-----------------------------
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

import risat_products.common.abstracted_metadata as absmeta
import risat_products.risat1.l1_products.utilities as support
from risat_products.common.product import MetadataElement, RasterProduct
from risat_products.risat1.l1_products.bands import RISAT1BandSynthesizer
from risat_products.risat1.l1_products.metadata import add_abstracted_metadata
from risat_products.risat1.l1_products.scene import RISAT1SceneDecoder

logger = logging.getLogger(__name__)


def read_product_metadata(
    band_meta_file: str | Path, flip_to_sar_geometry: bool | None = None
) -> tuple[MetadataElement, support.RISAT1AcquisitionMode]:
    """Reading RISAT-1 product metadata into a canonical metadata tree.

    Parameters
    ----------
    band_meta_file : str | Path
        path to the BAND_META.txt file
    flip_to_sar_geometry : bool | None, optional
        flip configuration, module configuration if None

    Returns
    -------
    MetadataElement
        metadata root, holding Abstracted_Metadata and Original_Product_Metadata/ProductMetadata
    support.RISAT1AcquisitionMode
        product acquisition mode
    """
    if flip_to_sar_geometry is None:
        flip_to_sar_geometry = support.FLIP_TO_SAR_GEOMETRY

    root = MetadataElement("metadata")
    abs_root = absmeta.add_abstracted_metadata_header(root)
    original = absmeta.add_original_product_metadata(root)
    product_element = original.add_element(support.read_band_meta(band_meta_file))

    acquisition_mode = add_abstracted_metadata(
        abs_root=abs_root, product_element=product_element, flip_to_sar_geometry=flip_to_sar_geometry
    )
    return root, acquisition_mode


def read_product(path: str | Path, flip_to_sar_geometry: bool | None = None) -> RasterProduct:
    """Ingesting a RISAT-1 product into a single normalized raster product.

    Parameters
    ----------
    path : str | Path
        path to the RISAT-1 product folder or to its BAND_META.txt file
    flip_to_sar_geometry : bool | None, optional
        flip configuration, module configuration if None

    Returns
    -------
    RasterProduct
        product with synthesized bands, canonical metadata and, if available, geocoding

    Raises
    ------
    InvalidRISAT1Product
        if the path is not a RISAT-1 product
    RasterDecodingError
        if a data file cannot be decoded
    """
    path = Path(path)
    if not support.is_risat1_product(path):
        raise support.InvalidRISAT1Product(f"{path}")
    if path.is_file():
        path = path.parent

    layout = support.RISAT1FolderLayout(path)
    metadata_root, acquisition_mode = read_product_metadata(
        layout.band_meta_file, flip_to_sar_geometry=flip_to_sar_geometry
    )
    abs_root = absmeta.get_abstracted_metadata(metadata_root)
    logger.info("reading %s product %s", acquisition_mode.value, path)

    scene = RISAT1SceneDecoder(layout=layout, acquisition_mode=acquisition_mode).decode()
    sub_products = scene.sub_products

    if sub_products:
        width, height = sub_products[0].width, sub_products[0].height
    else:
        width = abs_root.get_attribute_int(absmeta.NUM_SAMPLES_PER_LINE)
        height = abs_root.get_attribute_int(absmeta.NUM_OUTPUT_LINES)

    product = RasterProduct(
        name=abs_root.get_attribute_string(absmeta.PRODUCT),
        product_type=abs_root.get_attribute_string(absmeta.PRODUCT_TYPE),
        width=width,
        height=height,
        metadata_root=metadata_root,
    )

    synthesizer = RISAT1BandSynthesizer(acquisition_mode=acquisition_mode, resolver=support.PolarizationResolver())
    synthesizer.synthesize(product=product, sub_products=sub_products, band_streams=scene.band_streams)

    logger.info("%s: %d bands from %d data files", product.name, product.num_bands, len(scene.descriptors))
    return product


def read_channel_data(
    product: RasterProduct,
    band_name: str,
    block_to_read: list[int] | None = None,
) -> np.ndarray:
    """Reading RISAT-1 band data.

    Parameters
    ----------
    product : RasterProduct
        product returned by read_product
    band_name : str
        name of the band to be read, i.e. Amplitude_HH, i_HH, Intensity_HH
    block_to_read : list[int], optional
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
    return product.get_band(band_name).read(block_to_read)


def open_product(path: str | Path) -> support.RISAT1Product:
    """Open a RISAT-1 product.

    Parameters
    ----------
    path : str | Path
        Path to the RISAT-1 product

    Returns
    -------
    RISAT1Product
        RISAT1Product object corresponding to the input product
    """
    path = Path(path)

    if not support.is_risat1_product(product=path):
        raise support.InvalidRISAT1Product(f"{path}")

    return support.RISAT1Product(path=path)
