# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
Canonical metadata schema
-------------------------

Vendor-neutral attribute schema filled by every format normalizer. Each attribute is declared with type, unit,
description and default value; the defaults act as "no metadata" sentinels whenever the vendor value is missing
or cannot be parsed.
"""

from __future__ import annotations

from dataclasses import dataclass

from arepytools.timing.precisedatetime import PreciseDateTime

from risat_products.common.product import AttributeValue, MetadataElement

ABSTRACTED_METADATA = "Abstracted_Metadata"
ORIGINAL_PRODUCT_METADATA = "Original_Product_Metadata"

NO_METADATA = 99999
NO_METADATA_STRING = " "
NO_METADATA_UTC = PreciseDateTime.from_numeric_datetime(year=2000)

# scalar keys
PRODUCT = "PRODUCT"
PRODUCT_TYPE = "PRODUCT_TYPE"
SPH_DESCRIPTOR = "SPH_DESCRIPTOR"
MISSION = "MISSION"
ACQUISITION_MODE = "ACQUISITION_MODE"
ANTENNA_POINTING = "antenna_pointing"
BEAMS = "BEAMS"
PROC_TIME = "PROC_TIME"
PROCESSING_SYSTEM_IDENTIFIER = "Processing_system_identifier"
ABS_ORBIT = "ABS_ORBIT"
PASS = "PASS"
SAMPLE_TYPE = "SAMPLE_TYPE"
MDS1_TX_RX_POLAR = "mds1_tx_rx_polar"
MDS2_TX_RX_POLAR = "mds2_tx_rx_polar"
MDS3_TX_RX_POLAR = "mds3_tx_rx_polar"
MDS4_TX_RX_POLAR = "mds4_tx_rx_polar"
POLAR_TAGS = (MDS1_TX_RX_POLAR, MDS2_TX_RX_POLAR, MDS3_TX_RX_POLAR, MDS4_TX_RX_POLAR)
POLSAR_DATA = "polsarData"
COMPACT_MODE = "compact_mode"
FIRST_LINE_TIME = "first_line_time"
LAST_LINE_TIME = "last_line_time"
RANGE_SPACING = "range_spacing"
AZIMUTH_SPACING = "azimuth_spacing"
RANGE_LOOKS = "range_looks"
AZIMUTH_LOOKS = "azimuth_looks"
RADAR_FREQUENCY = "radar_frequency"
LINE_TIME_INTERVAL = "line_time_interval"
NUM_OUTPUT_LINES = "num_output_lines"
NUM_SAMPLES_PER_LINE = "num_samples_per_line"
SLANT_RANGE_TO_FIRST_PIXEL = "slant_range_to_first_pixel"
ANT_ELEV_CORR_FLAG = "ant_elev_corr_flag"
RANGE_SPREAD_COMP_FLAG = "range_spread_comp_flag"
SRGR_FLAG = "srgr_flag"
STATE_VECTOR_TIME = "STATE_VECTOR_TIME"

# nested record containers and their content
ORBIT_STATE_VECTORS = "Orbit_State_Vectors"
ORBIT_VECTOR = "orbit_vector"
ORBIT_VECTOR_TIME = "time"
ORBIT_VECTOR_X_POS = "x_pos"
ORBIT_VECTOR_Y_POS = "y_pos"
ORBIT_VECTOR_Z_POS = "z_pos"
ORBIT_VECTOR_X_VEL = "x_vel"
ORBIT_VECTOR_Y_VEL = "y_vel"
ORBIT_VECTOR_Z_VEL = "z_vel"
SRGR_COEFFICIENTS = "SRGR_Coefficients"
SRGR_COEF_LIST = "srgr_coef_list"
SRGR_COEF_TIME = "zero_doppler_time"
GROUND_RANGE_ORIGIN = "ground_range_origin"
SRGR_COEF = "srgr_coef"
DOP_COEFFICIENTS = "Doppler_Centroid_Coefficients"
DOP_COEF_LIST = "dop_coef_list"
DOP_COEF_TIME = "zero_doppler_time"
SLANT_RANGE_TIME = "slant_range_time"
DOP_COEF = "dop_coef"
COEFFICIENT = "coefficient"


@dataclass(frozen=True)
class CanonicalAttribute:
    """Declaration of a canonical attribute"""

    key: str
    value_type: type
    unit: str
    description: str
    default: AttributeValue


def _ascii(key: str, description: str, default: str = NO_METADATA_STRING) -> CanonicalAttribute:
    return CanonicalAttribute(key, str, "", description, default)


def _int(key: str, unit: str, description: str, default: int = NO_METADATA) -> CanonicalAttribute:
    return CanonicalAttribute(key, int, unit, description, default)


def _float(key: str, unit: str, description: str) -> CanonicalAttribute:
    return CanonicalAttribute(key, float, unit, description, float(NO_METADATA))


def _utc(key: str, description: str) -> CanonicalAttribute:
    return CanonicalAttribute(key, PreciseDateTime, "utc", description, NO_METADATA_UTC)


CANONICAL_SCHEMA: tuple[CanonicalAttribute, ...] = (
    _ascii(PRODUCT, "Product name"),
    _ascii(PRODUCT_TYPE, "Product type"),
    _ascii(SPH_DESCRIPTOR, "Description"),
    _ascii(MISSION, "Satellite mission"),
    _ascii(ACQUISITION_MODE, "Acquisition mode"),
    _ascii(ANTENNA_POINTING, "Right or left facing"),
    _ascii(BEAMS, "Beams used"),
    _utc(PROC_TIME, "Processed time"),
    _ascii(PROCESSING_SYSTEM_IDENTIFIER, "Processing system identifier"),
    _int(ABS_ORBIT, "", "Absolute orbit"),
    _ascii(PASS, "ASCENDING or DESCENDING"),
    _ascii(SAMPLE_TYPE, "DETECTED or COMPLEX"),
    _ascii(MDS1_TX_RX_POLAR, "Polarization"),
    _ascii(MDS2_TX_RX_POLAR, "Polarization"),
    _ascii(MDS3_TX_RX_POLAR, "Polarization"),
    _ascii(MDS4_TX_RX_POLAR, "Polarization"),
    _int(POLSAR_DATA, "flag", "Polarimetric matrix", default=0),
    _ascii(COMPACT_MODE, "Compact polarimetric mode"),
    _utc(FIRST_LINE_TIME, "First zero doppler azimuth time"),
    _utc(LAST_LINE_TIME, "Last zero doppler azimuth time"),
    _float(RANGE_SPACING, "m", "Range sample spacing"),
    _float(AZIMUTH_SPACING, "m", "Azimuth sample spacing"),
    _float(RANGE_LOOKS, "", "Range looks"),
    _float(AZIMUTH_LOOKS, "", "Azimuth looks"),
    _float(RADAR_FREQUENCY, "MHz", "Radar frequency"),
    _float(LINE_TIME_INTERVAL, "s", "Time per line"),
    _int(NUM_OUTPUT_LINES, "lines", "Raster height"),
    _int(NUM_SAMPLES_PER_LINE, "samples", "Raster width"),
    _float(SLANT_RANGE_TO_FIRST_PIXEL, "m", "Slant range to 1st data sample"),
    _int(ANT_ELEV_CORR_FLAG, "flag", "Antenna elevation applied"),
    _int(RANGE_SPREAD_COMP_FLAG, "flag", "Range spread compensation applied"),
    _int(SRGR_FLAG, "flag", "SRGR applied"),
    _utc(STATE_VECTOR_TIME, "Time of orbit state vector"),
)

_SCHEMA_BY_KEY = {a.key: a for a in CANONICAL_SCHEMA}


def add_abstracted_metadata_header(root: MetadataElement) -> MetadataElement:
    """Creating the canonical metadata element under root, every attribute set to its default.

    Parameters
    ----------
    root : MetadataElement
        product metadata root

    Returns
    -------
    MetadataElement
        the canonical metadata element
    """
    abs_root = root.get_element(ABSTRACTED_METADATA)
    if abs_root is None:
        abs_root = root.add_element(MetadataElement(ABSTRACTED_METADATA))

    for attribute in CANONICAL_SCHEMA:
        abs_root.add_attribute(attribute.key, attribute.default, attribute.unit, attribute.description)

    for container in (ORBIT_STATE_VECTORS, SRGR_COEFFICIENTS, DOP_COEFFICIENTS):
        if abs_root.get_element(container) is None:
            abs_root.add_element(MetadataElement(container))

    return abs_root


def add_original_product_metadata(root: MetadataElement) -> MetadataElement:
    """Original (vendor) metadata element under root, created if missing"""
    original = root.get_element(ORIGINAL_PRODUCT_METADATA)
    if original is None:
        original = root.add_element(MetadataElement(ORIGINAL_PRODUCT_METADATA))
    return original


def get_abstracted_metadata(root: MetadataElement) -> MetadataElement:
    """Canonical metadata element of a product metadata root"""
    abs_root = root.get_element(ABSTRACTED_METADATA)
    if abs_root is None:
        raise KeyError(f"{ABSTRACTED_METADATA} element not found in {root.name}")
    return abs_root


def get_original_product_metadata(root: MetadataElement) -> MetadataElement:
    """Original (vendor) metadata element of a product metadata root, created if missing"""
    return add_original_product_metadata(root)


def set_attribute(abs_root: MetadataElement, key: str, value: AttributeValue) -> None:
    """Setting a canonical attribute, the value is converted to the declared attribute type.

    Parameters
    ----------
    abs_root : MetadataElement
        canonical metadata element
    key : str
        canonical key
    value : AttributeValue
        value to be set
    """
    declaration = _SCHEMA_BY_KEY.get(key)
    if declaration is None:
        abs_root.set_attribute(key, value)
        return

    if declaration.value_type is int and not isinstance(value, int):
        value = int(value)
    elif declaration.value_type is float:
        value = float(value)
    elif declaration.value_type is str:
        value = str(value)
    abs_root.add_attribute(key, value, declaration.unit, declaration.description)


def add_abstracted_attribute(
    element: MetadataElement, key: str, value: AttributeValue, unit: str = "", description: str = ""
) -> None:
    """Adding an attribute outside the scalar schema, i.e. into nested record lists"""
    element.add_attribute(key, value, unit, description)
