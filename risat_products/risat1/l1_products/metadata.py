# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 metadata normalization
------------------------------

Mapping of the vendor ProductMetadata record onto the canonical metadata schema. Vendor values that are missing or
cannot be parsed degrade to the schema sentinels, normalization never fails because of them.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from arepytools.timing.precisedatetime import PreciseDateTime

import risat_products.common.abstracted_metadata as absmeta
from risat_products.common.product import MetadataElement
from risat_products.risat1.l1_products.utilities import (
    MISSION,
    RISAT1AcquisitionMode,
    parse_vendor_time,
)

logger = logging.getLogger(__name__)

RADAR_FREQUENCY_MHZ = 5350
COMPACT_MODE_DESCRIPTION = "Right Circular Hybrid Mode"
PRODUCT_DATE_FORMAT = "%d-%b-%Y_%H.%M"


def _get_string(element: MetadataElement, tag: str) -> str:
    return element.get_attribute_string(tag, absmeta.NO_METADATA_STRING)


def _get_number(element: MetadataElement, tag: str) -> float:
    """Vendor numeric value, NO_METADATA if missing, not a number or not finite"""
    value = element.get_attribute_float(tag)
    if value is None or not math.isfinite(value):
        if element.contains_attribute(tag):
            logger.warning("cannot convert %s=%r to a number", tag, element.get_attribute_string(tag))
        return absmeta.NO_METADATA
    return value


def _get_time(element: MetadataElement | None, tag: str) -> PreciseDateTime:
    """Vendor time value, NO_METADATA_UTC if missing or unparseable"""
    if element is None:
        return absmeta.NO_METADATA_UTC
    time = parse_vendor_time(element.get_attribute_string(tag))
    if time == absmeta.NO_METADATA_UTC and element.contains_attribute(tag):
        logger.warning("cannot parse %s=%r as a time", tag, element.get_attribute_string(tag))
    return time


def get_flag(element: MetadataElement, tag: str) -> int:
    """Parsing a vendor boolean flag.

    Parameters
    ----------
    element : MetadataElement
        vendor metadata element
    tag : str
        flag name

    Returns
    -------
    int
        1 for TRUE or 1, 0 for FALSE or 0, -1 if unknown
    """
    value = element.get_attribute_string(tag, " ").strip().upper()
    if value in ("FALSE", "0"):
        return 0
    if value in ("TRUE", "1"):
        return 1
    return -1


def _format_product_date(time: PreciseDateTime) -> str:
    date = datetime(
        year=time.year,
        month=time.month,
        day=time.day_of_the_month,
        hour=time.hour_of_day,
        minute=time.minute_of_hour,
    )
    return date.strftime(PRODUCT_DATE_FORMAT)


def compose_product_name(
    product_type: str, beam_mode: str, orbit_pass: str, start_time: PreciseDateTime, product_id: str
) -> str:
    """Composing the human readable product identifier.

    Parameters
    ----------
    product_type : str
        vendor product type
    beam_mode : str
        beam mode mnemonic
    orbit_pass : str
        orbit pass, ASCENDING maps to ASC, anything else to DSC
    start_time : PreciseDateTime
        scene start time
    product_id : str
        vendor product id

    Returns
    -------
    str
        RISAT1-<productType>-<beamMode>-<ASC|DSC>-<dd-MMM-yyyy_HH.mm>-<productId>
    """
    pass_str = "ASC" if orbit_pass == "ASCENDING" else "DSC"
    return "-".join([MISSION, product_type, beam_mode, pass_str, _format_product_date(start_time), product_id])


def _set_polarizations(abs_root: MetadataElement, product_element: MetadataElement) -> None:
    """TxRxPol1 and TxRxPol2, upper-cased, filling the polarization tags in order"""
    tags = iter(absmeta.POLAR_TAGS)
    for field in ("TxRxPol1", "TxRxPol2"):
        polarization = product_element.get_attribute_string(field)
        if polarization is not None:
            absmeta.set_attribute(abs_root, next(tags), polarization.upper())


def add_abstracted_metadata(
    abs_root: MetadataElement, product_element: MetadataElement, flip_to_sar_geometry: bool = False
) -> RISAT1AcquisitionMode:
    """Filling the canonical metadata from the vendor ProductMetadata record.

    Parameters
    ----------
    abs_root : MetadataElement
        canonical metadata element, already holding the schema defaults
    product_element : MetadataElement
        vendor ProductMetadata element
    flip_to_sar_geometry : bool, optional
        swap start and stop times for ascending passes, by default False

    Returns
    -------
    RISAT1AcquisitionMode
        acquisition mode derived from the product type
    """
    product_type = _get_string(product_element, "ProductType")
    acquisition_mode = RISAT1AcquisitionMode.from_product_type(product_type)
    is_complex = acquisition_mode == RISAT1AcquisitionMode.COMPLEX
    orbit_pass = _get_string(product_element, "Node").upper()

    absmeta.set_attribute(abs_root, absmeta.SPH_DESCRIPTOR, product_type)
    absmeta.set_attribute(abs_root, absmeta.PRODUCT_TYPE, product_type)
    absmeta.set_attribute(abs_root, absmeta.MISSION, MISSION)
    absmeta.set_attribute(abs_root, absmeta.ACQUISITION_MODE, _get_string(product_element, "ImagingMode"))
    absmeta.set_attribute(
        abs_root, absmeta.ANTENNA_POINTING, _get_string(product_element, "SensorOrientation").lower()
    )
    absmeta.set_attribute(abs_root, absmeta.BEAMS, _get_string(product_element, "NumberOfBeams"))
    absmeta.set_attribute(abs_root, absmeta.PASS, orbit_pass)
    absmeta.set_attribute(abs_root, absmeta.ABS_ORBIT, _get_number(product_element, "ImagingOrbitNo"))
    absmeta.set_attribute(abs_root, absmeta.SAMPLE_TYPE, acquisition_mode.value)
    absmeta.set_attribute(abs_root, absmeta.RADAR_FREQUENCY, RADAR_FREQUENCY_MHZ)

    start_time = _get_time(product_element, "SceneStartTime")
    stop_time = _get_time(product_element, "SceneEndTime")
    if flip_to_sar_geometry and orbit_pass == "ASCENDING":
        start_time, stop_time = stop_time, start_time

    absmeta.set_attribute(
        abs_root,
        absmeta.PRODUCT,
        compose_product_name(
            product_type=product_type,
            beam_mode=_get_string(product_element, "beamModeMnemonic"),
            orbit_pass=orbit_pass,
            start_time=start_time,
            product_id=_get_string(product_element, "productId"),
        ),
    )
    absmeta.set_attribute(
        abs_root,
        absmeta.PROCESSING_SYSTEM_IDENTIFIER,
        _get_string(product_element, "processingFacility") + "-" + _get_string(product_element, "softwareVersion"),
    )
    absmeta.set_attribute(abs_root, absmeta.PROC_TIME, _get_time(product_element, "processingTime"))

    absmeta.set_attribute(abs_root, absmeta.ANT_ELEV_CORR_FLAG, get_flag(product_element, "elevationPatternCorrection"))
    absmeta.set_attribute(
        abs_root, absmeta.RANGE_SPREAD_COMP_FLAG, get_flag(product_element, "rangeSpreadingLossCorrection")
    )
    absmeta.set_attribute(abs_root, absmeta.SRGR_FLAG, 0 if is_complex else 1)

    absmeta.set_attribute(abs_root, absmeta.FIRST_LINE_TIME, start_time)
    absmeta.set_attribute(abs_root, absmeta.LAST_LINE_TIME, stop_time)

    absmeta.set_attribute(abs_root, absmeta.RANGE_LOOKS, _get_number(product_element, "RangeLooks"))
    absmeta.set_attribute(abs_root, absmeta.AZIMUTH_LOOKS, _get_number(product_element, "AzimuthLooks"))
    absmeta.set_attribute(abs_root, absmeta.NUM_OUTPUT_LINES, _get_number(product_element, "NoScans"))
    absmeta.set_attribute(abs_root, absmeta.NUM_SAMPLES_PER_LINE, _get_number(product_element, "NoPixels"))
    absmeta.set_attribute(abs_root, absmeta.RANGE_SPACING, _get_number(product_element, "OutputPixelSpacing"))
    absmeta.set_attribute(abs_root, absmeta.AZIMUTH_SPACING, _get_number(product_element, "OutputLineSpacing"))

    _set_polarizations(abs_root, product_element)

    return acquisition_mode


def set_compact_pol_mode(abs_root: MetadataElement) -> None:
    """Marking the product as compact polarimetric, the mode description is fixed"""
    absmeta.set_attribute(abs_root, absmeta.POLSAR_DATA, 1)
    absmeta.set_attribute(abs_root, absmeta.COMPACT_MODE, COMPACT_MODE_DESCRIPTION)


# nested record lists, not invoked by the RISAT-1 ingestion


def get_vendor_float(element: MetadataElement, tag: str, default: float = 0) -> float:
    """Vendor numeric value stored as attribute or as same-named child element attribute"""
    if element.contains_attribute(tag):
        return element.get_attribute_float(tag, default)
    child = element.get_element(tag)
    if child is None:
        return default
    return child.get_attribute_float(tag, default)


def parse_coefficients(text: str) -> list[float]:
    """Whitespace separated coefficients list"""
    return [float(c) for c in text.split()]


def _add_coefficients(parent: MetadataElement, coefficients: list[float], key: str, description: str) -> None:
    for index, value in enumerate(coefficients, start=1):
        coefficient_element = parent.add_element(MetadataElement(f"{absmeta.COEFFICIENT}.{index}"))
        absmeta.add_abstracted_attribute(coefficient_element, key, value, "", description)


def _elements_named(parent: MetadataElement, name: str) -> list[MetadataElement]:
    return [e for e in parent.get_elements() if e.name.lower() == name.lower()]


def _sorted_by_time(records: list[MetadataElement], tag: str) -> list[tuple[PreciseDateTime, MetadataElement]]:
    timed = [(_get_time(r, tag), r) for r in records]
    return sorted(timed, key=lambda item: item[0])


def add_orbit_state_vectors(abs_root: MetadataElement, orbit_information: MetadataElement) -> None:
    """Building the orbit state vectors record list.

    Every child of the vendor orbit element is a state vector: timeStamp plus xPosition, yPosition, zPosition,
    xVelocity, yVelocity, zVelocity.

    Parameters
    ----------
    abs_root : MetadataElement
        canonical metadata element
    orbit_information : MetadataElement
        vendor orbit information element
    """
    vectors_element = abs_root.get_element(absmeta.ORBIT_STATE_VECTORS)
    state_vectors = orbit_information.get_elements()

    for index, state_vector in enumerate(state_vectors, start=1):
        vector_element = vectors_element.add_element(MetadataElement(f"{absmeta.ORBIT_VECTOR}{index}"))
        vector_element.add_attribute(absmeta.ORBIT_VECTOR_TIME, _get_time(state_vector, "timeStamp"), "utc")
        for key, tag, unit in (
            (absmeta.ORBIT_VECTOR_X_POS, "xPosition", "m"),
            (absmeta.ORBIT_VECTOR_Y_POS, "yPosition", "m"),
            (absmeta.ORBIT_VECTOR_Z_POS, "zPosition", "m"),
            (absmeta.ORBIT_VECTOR_X_VEL, "xVelocity", "m/s"),
            (absmeta.ORBIT_VECTOR_Y_VEL, "yVelocity", "m/s"),
            (absmeta.ORBIT_VECTOR_Z_VEL, "zVelocity", "m/s"),
        ):
            vector_element.add_attribute(key, get_vendor_float(state_vector, tag), unit)

    if state_vectors and abs_root.get_attribute_utc(absmeta.STATE_VECTOR_TIME) == absmeta.NO_METADATA_UTC:
        absmeta.set_attribute(abs_root, absmeta.STATE_VECTOR_TIME, _get_time(state_vectors[0], "timeStamp"))


def add_srgr_coefficients(abs_root: MetadataElement, image_generation_parameters: MetadataElement) -> None:
    """Building the slant range to ground range coefficients record list, ordered by zero doppler time.

    Parameters
    ----------
    abs_root : MetadataElement
        canonical metadata element
    image_generation_parameters : MetadataElement
        vendor element holding slantRangeToGroundRange children
    """
    srgr_element = abs_root.get_element(absmeta.SRGR_COEFFICIENTS)
    segments = _sorted_by_time(
        _elements_named(image_generation_parameters, "slantRangeToGroundRange"), "zeroDopplerAzimuthTime"
    )

    for index, (time, segment) in enumerate(segments, start=1):
        list_element = srgr_element.add_element(MetadataElement(f"{absmeta.SRGR_COEF_LIST}.{index}"))
        list_element.add_attribute(absmeta.SRGR_COEF_TIME, time, "utc")
        absmeta.add_abstracted_attribute(
            list_element,
            absmeta.GROUND_RANGE_ORIGIN,
            get_vendor_float(segment, "groundRangeOrigin"),
            "m",
            "Ground Range Origin",
        )
        coefficients = parse_coefficients(segment.get_attribute_string("groundToSlantRangeCoefficients", ""))
        _add_coefficients(list_element, coefficients, absmeta.SRGR_COEF, "SRGR Coefficient")


def add_doppler_centroid_coefficients(abs_root: MetadataElement, image_generation_parameters: MetadataElement) -> None:
    """Building the doppler centroid coefficients record list, ordered by estimate time.

    Parameters
    ----------
    abs_root : MetadataElement
        canonical metadata element
    image_generation_parameters : MetadataElement
        vendor element holding dopplerCentroid children
    """
    doppler_element = abs_root.get_element(absmeta.DOP_COEFFICIENTS)
    segments = _sorted_by_time(
        _elements_named(image_generation_parameters, "dopplerCentroid"), "timeOfDopplerCentroidEstimate"
    )

    for index, (time, segment) in enumerate(segments, start=1):
        list_element = doppler_element.add_element(MetadataElement(f"{absmeta.DOP_COEF_LIST}.{index}"))
        list_element.add_attribute(absmeta.DOP_COEF_TIME, time, "utc")
        # s to ns
        reference_time = get_vendor_float(segment, "dopplerCentroidReferenceTime") * 1e9
        absmeta.add_abstracted_attribute(
            list_element, absmeta.SLANT_RANGE_TIME, reference_time, "ns", "Slant Range Time"
        )
        coefficients = parse_coefficients(segment.get_attribute_string("dopplerCentroidCoefficients", ""))
        _add_coefficients(list_element, coefficients, absmeta.DOP_COEF, "Doppler Centroid Coefficient")
