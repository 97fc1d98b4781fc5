# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""
RISAT-1 tie point grids
-----------------------

Incidence angle and slant range time tie point grids. Not part of the product ingestion: callers needing the grids
invoke add_tie_point_grids explicitly on an ingested, geocoded product.
"""

from __future__ import annotations

import math

import numpy as np
from arepytools.timing.precisedatetime import PreciseDateTime
from numpy.polynomial import Polynomial
from scipy.constants import speed_of_light

import risat_products.common.abstracted_metadata as absmeta
from risat_products.common.product import MetadataElement, RasterProduct, TiePointGrid
from risat_products.common.utilities import ConversionPolynomial
from risat_products.risat1.l1_products.metadata import get_vendor_float, parse_coefficients
from risat_products.risat1.l1_products.utilities import FLIP_TO_SAR_GEOMETRY, parse_vendor_time

WGS84_SEMI_MAJOR_AXIS = 6378137.0
WGS84_SEMI_MINOR_AXIS = 6356752.314245179
HALF_LIGHT_SPEED = speed_of_light / 2
GRID_SIZE = 11

INCIDENT_ANGLE_GRID = "incident_angle"
SLANT_RANGE_TIME_GRID = "slant_range_time"


def _is_flipped(is_descending: bool, is_antenna_pointing_right: bool, flip_to_sar_geometry: bool) -> bool:
    """Grid columns are reversed for right looking descending and left looking ascending passes"""
    return not flip_to_sar_geometry and is_descending == is_antenna_pointing_right


def _sub_sampling(size: int) -> int:
    return max(1, size // (GRID_SIZE - 1))


def earth_radius_at_latitude(latitude_deg: float) -> float:
    """WGS84 ellipsoid radius at the given geodetic latitude.

    Parameters
    ----------
    latitude_deg : float
        latitude in degrees

    Returns
    -------
    float
        earth radius in meters
    """
    a, b = WGS84_SEMI_MAJOR_AXIS, WGS84_SEMI_MINOR_AXIS
    latitude = math.radians(latitude_deg)
    cos2 = math.cos(latitude) ** 2
    sin2 = math.sin(latitude) ** 2
    e2 = (b * b) / (a * a)
    return a * math.sqrt((cos2 + e2 * e2 * sin2) / (cos2 + e2 * sin2))


def compute_incidence_angle_grid(
    width: int,
    height: int,
    scene_center_latitude: float,
    near_range_incidence_angle: float,
    slant_range_to_first_pixel: float,
    range_spacing: float,
    srgr_flag: bool,
    is_descending: bool,
    is_antenna_pointing_right: bool,
    flip_to_sar_geometry: bool = False,
) -> TiePointGrid:
    """Incidence angle tie point grid, spherical earth with local ellipsoid radius.

    Parameters
    ----------
    width : int
        raster samples
    height : int
        raster lines
    scene_center_latitude : float
        scene center latitude in degrees
    near_range_incidence_angle : float
        incidence angle at first sample in degrees
    slant_range_to_first_pixel : float
        slant range to first sample in meters
    range_spacing : float
        range sample spacing in meters, ground spacing if srgr_flag is set
    srgr_flag : bool
        True for ground range (detected) products
    is_descending : bool
        descending pass
    is_antenna_pointing_right : bool
        right looking antenna
    flip_to_sar_geometry : bool, optional
        disable the columns flip, by default False

    Returns
    -------
    TiePointGrid
        GRID_SIZE x GRID_SIZE incidence angle grid in degrees, constant along lines
    """
    sub_sampling_x = _sub_sampling(width)
    sub_sampling_y = _sub_sampling(height)
    flip = _is_flipped(is_descending, is_antenna_pointing_right, flip_to_sar_geometry)

    rt = earth_radius_at_latitude(scene_center_latitude)
    rt2 = rt * rt
    alpha1 = math.radians(near_range_incidence_angle)
    ground_range_spacing = range_spacing if srgr_flag else range_spacing / math.sin(alpha1)
    delta_psi = ground_range_spacing / rt

    r1 = slant_range_to_first_pixel
    rt_plus_h = math.sqrt(rt2 + r1 * r1 + 2.0 * rt * r1 * math.cos(alpha1))
    rt_plus_h2 = rt_plus_h * rt_plus_h
    theta1 = math.acos((r1 + rt * math.cos(alpha1)) / rt_plus_h)
    psi = alpha1 - theta1

    incidence_angles = np.zeros(GRID_SIZE, dtype=np.float32)
    column = 0
    for i in range(GRID_SIZE * sub_sampling_x):
        ri = math.sqrt(rt2 + rt_plus_h2 - 2.0 * rt * rt_plus_h * math.cos(psi))
        alpha = math.acos((rt_plus_h2 - ri * ri - rt2) / (2.0 * ri * rt))
        if i % sub_sampling_x == 0:
            index = GRID_SIZE - 1 - column if flip else column
            incidence_angles[index] = math.degrees(alpha)
            column += 1

        if not srgr_flag:
            delta_psi = range_spacing / math.sin(alpha) / rt
        psi += delta_psi

    return TiePointGrid(
        name=INCIDENT_ANGLE_GRID,
        width=GRID_SIZE,
        height=GRID_SIZE,
        offset_x=0,
        offset_y=0,
        sub_sampling_x=sub_sampling_x,
        sub_sampling_y=sub_sampling_y,
        data=np.tile(incidence_angles, (GRID_SIZE, 1)),
        unit="deg",
    )


def srgr_segments_from_metadata(image_generation_parameters: MetadataElement) -> list[ConversionPolynomial]:
    """Ground to slant range polynomials of the vendor slantRangeToGroundRange elements, sorted by time.

    Parameters
    ----------
    image_generation_parameters : MetadataElement
        vendor element holding slantRangeToGroundRange children

    Returns
    -------
    list[ConversionPolynomial]
        ground range to slant range conversion polynomials
    """
    segments = [
        ConversionPolynomial(
            azimuth_reference_time=parse_vendor_time(e.get_attribute_string("zeroDopplerAzimuthTime")),
            origin=get_vendor_float(e, "groundRangeOrigin"),
            polynomial=Polynomial(parse_coefficients(e.get_attribute_string("groundToSlantRangeCoefficients", ""))),
        )
        for e in image_generation_parameters.get_elements()
        if e.name.lower() == "slantrangetogroundrange"
    ]
    return sorted(segments, key=lambda s: s.azimuth_reference_time)


def _detect_segment_index(segments: list[ConversionPolynomial], azimuth_time: PreciseDateTime, start: int) -> int:
    """First segment, from start on, whose reference time is not before the azimuth time, else the last one"""
    index = start
    while index < len(segments) and segments[index].azimuth_reference_time < azimuth_time:
        index += 1
    return min(index, len(segments) - 1)


def compute_slant_range_time_grid(
    width: int,
    height: int,
    segments: list[ConversionPolynomial],
    first_line_time: PreciseDateTime,
    line_time_interval: float,
    range_spacing: float,
    is_descending: bool,
    is_antenna_pointing_right: bool,
    flip_to_sar_geometry: bool = False,
) -> TiePointGrid:
    """Slant range time tie point grid from ground to slant range polynomials.

    Slant range is evaluated as P(GR - GR0), GR being the ground range of the sample and GR0 the polynomial
    origin, and converted to two-way time.

    Parameters
    ----------
    width : int
        raster samples
    height : int
        raster lines
    segments : list[ConversionPolynomial]
        ground to slant range polynomials sorted by azimuth reference time
    first_line_time : PreciseDateTime
        first line azimuth time
    line_time_interval : float
        time per raster line in seconds
    range_spacing : float
        ground range sample spacing in meters
    is_descending : bool
        descending pass
    is_antenna_pointing_right : bool
        right looking antenna
    flip_to_sar_geometry : bool, optional
        disable the grid flip, by default False

    Returns
    -------
    TiePointGrid
        GRID_SIZE x GRID_SIZE slant range time grid in nanoseconds
    """
    if not segments:
        raise ValueError("at least one ground to slant range polynomial is required")

    sub_sampling_x = _sub_sampling(width)
    sub_sampling_y = _sub_sampling(height)
    ground_range = np.arange(GRID_SIZE) * sub_sampling_x * range_spacing

    slant_range = np.zeros((GRID_SIZE, GRID_SIZE), dtype=np.float64)
    segment_index = 0
    for line in range(GRID_SIZE):
        line_time = first_line_time + line * sub_sampling_y * line_time_interval
        segment_index = _detect_segment_index(segments, line_time, segment_index)
        segment = segments[segment_index]
        slant_range[line] = segment.polynomial(ground_range - segment.origin)

    slant_range_time = (slant_range.ravel() / HALF_LIGHT_SPEED * 1e9).astype(np.float32)
    if _is_flipped(is_descending, is_antenna_pointing_right, flip_to_sar_geometry):
        slant_range_time = slant_range_time[::-1]

    return TiePointGrid(
        name=SLANT_RANGE_TIME_GRID,
        width=GRID_SIZE,
        height=GRID_SIZE,
        offset_x=0,
        offset_y=0,
        sub_sampling_x=sub_sampling_x,
        sub_sampling_y=sub_sampling_y,
        data=slant_range_time.reshape(GRID_SIZE, GRID_SIZE),
        unit="ns",
    )


def add_tie_point_grids(
    product: RasterProduct, image_generation_parameters: MetadataElement, flip_to_sar_geometry: bool | None = None
) -> None:
    """Adding incidence angle and slant range time grids to an ingested product.

    Parameters
    ----------
    product : RasterProduct
        geocoded product with canonical metadata
    image_generation_parameters : MetadataElement
        vendor element holding sarProcessingInformation/incidenceAngleNearRange and slantRangeToGroundRange
        children
    flip_to_sar_geometry : bool | None, optional
        flip configuration, module configuration if None
    """
    if product.scene_geocoding is None:
        raise ValueError(f"product {product.name} has no geocoding")
    if flip_to_sar_geometry is None:
        flip_to_sar_geometry = FLIP_TO_SAR_GEOMETRY

    abs_root = absmeta.get_abstracted_metadata(product.metadata_root)
    is_descending = abs_root.get_attribute_string(absmeta.PASS) == "DESCENDING"
    is_right = abs_root.get_attribute_string(absmeta.ANTENNA_POINTING) == "right"
    range_spacing = abs_root.get_attribute_float(absmeta.RANGE_SPACING, 0)

    _, scene_center_latitude = product.scene_geocoding.pixel_to_geo(product.width / 2, product.height / 2)
    sar_processing_information = image_generation_parameters.get_element("sarProcessingInformation")
    near_range_incidence_angle = (
        0 if sar_processing_information is None
        else get_vendor_float(sar_processing_information, "incidenceAngleNearRange")
    )

    product.add_tie_point_grid(
        compute_incidence_angle_grid(
            width=product.width,
            height=product.height,
            scene_center_latitude=scene_center_latitude,
            near_range_incidence_angle=near_range_incidence_angle,
            slant_range_to_first_pixel=abs_root.get_attribute_float(absmeta.SLANT_RANGE_TO_FIRST_PIXEL, 0),
            range_spacing=range_spacing,
            srgr_flag=abs_root.get_attribute_int(absmeta.SRGR_FLAG, 0) != 0,
            is_descending=is_descending,
            is_antenna_pointing_right=is_right,
            flip_to_sar_geometry=flip_to_sar_geometry,
        )
    )
    product.add_tie_point_grid(
        compute_slant_range_time_grid(
            width=product.width,
            height=product.height,
            segments=srgr_segments_from_metadata(image_generation_parameters),
            first_line_time=abs_root.get_attribute_utc(absmeta.FIRST_LINE_TIME, absmeta.NO_METADATA_UTC),
            line_time_interval=abs_root.get_attribute_float(absmeta.LINE_TIME_INTERVAL, 0),
            range_spacing=range_spacing,
            is_descending=is_descending,
            is_antenna_pointing_right=is_right,
            flip_to_sar_geometry=flip_to_sar_geometry,
        )
    )
