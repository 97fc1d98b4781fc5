# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""Unittest for common/geotiff.py and common/ceos.py"""

import io
import tempfile
import unittest
from pathlib import Path

import numpy as np

from risat_products.common import ceos, geotiff
from risat_products.common.abstracted_metadata import ORIGINAL_PRODUCT_METADATA
from risat_products.common.utilities import InvalidCEOSFileError, RasterContainerKind, UnsupportedRasterFormatError
from tests.product_fixtures import write_ceos, write_geotiff


class GeoTiffTest(unittest.TestCase):
    """Testing GeoTIFF decoding"""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.folder = Path(self._tmp.name)
        self.detected = np.arange(32 * 32, dtype=np.uint16).reshape(32, 32)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_is_tiff_stream(self) -> None:
        """Magic bytes check, stream position restored"""
        for header in (b"II*\x00rest", b"MM\x00*rest", b"II+\x00rest"):
            stream = io.BytesIO(header)
            self.assertTrue(geotiff.is_tiff_stream(stream))
            self.assertEqual(stream.tell(), 0)
        self.assertFalse(geotiff.is_tiff_stream(io.BytesIO(b"\x89PNG")))
        self.assertFalse(geotiff.is_tiff_stream(io.BytesIO(b"II")))

    def test_detected_product(self) -> None:
        """Single band, geocoding and tiling from tags"""
        path = write_geotiff(self.folder.joinpath("imagery_HH.tif"), self.detected, tile=(16, 16))
        product = geotiff.read_geotiff_product(path)

        self.assertEqual(product.name, "imagery_HH")
        self.assertEqual(product.decoder_kind, RasterContainerKind.GEO_RASTER)
        self.assertEqual((product.width, product.height), (32, 32))
        self.assertEqual(product.band_names, ["band_1"])
        self.assertEqual(product.preferred_tile_size, (16, 16))
        self.assertEqual(product.scene_geocoding.pixel_to_geo(0, 0), (500000.0, 4000000.0))
        self.assertEqual(product.scene_geocoding.pixel_to_geo(2, 3), (500020.0, 3999970.0))
        np.testing.assert_array_equal(product.get_band("band_1").read([4, 8, 2, 3]), self.detected[4:6, 8:11])

    def test_not_geocoded_product(self) -> None:
        """No GeoTIFF tags, no geocoding, striped file"""
        path = write_geotiff(self.folder.joinpath("imagery_HH.tif"), self.detected, geocoded=False)
        product = geotiff.read_geotiff_product(path)
        self.assertIsNone(product.scene_geocoding)
        self.assertIsNone(product.preferred_tile_size)

    def test_two_samples_per_pixel(self) -> None:
        """Samples as bands"""
        data = np.stack([self.detected.astype(np.int16), -self.detected.astype(np.int16)], axis=-1)
        path = write_geotiff(self.folder.joinpath("imagery_HH.tif"), data)

        stream = geotiff.GeoTiffBandStream(path, data_type=np.int32)
        self.assertEqual(stream.num_bands, 2)
        self.assertEqual((stream.width, stream.height), (32, 32))
        self.assertEqual(stream.data_type, np.dtype(np.int32))
        np.testing.assert_array_equal(stream.read_band(1), data[:, :, 1])
        np.testing.assert_array_equal(stream.read_band(0, [1, 2, 3, 4]), data[1:4, 2:6, 0])
        with self.assertRaises(IndexError):
            stream.read_band(2)

    def test_multiple_pages(self) -> None:
        """Pages as bands"""
        data = np.stack([self.detected, self.detected + 1, self.detected + 2])
        path = write_geotiff(self.folder.joinpath("imagery_HH.tif"), data, geocoded=False)

        stream = geotiff.GeoTiffBandStream(path)
        self.assertEqual(stream.num_bands, 3)
        self.assertEqual(stream.data_type, np.dtype(np.uint16))
        np.testing.assert_array_equal(stream.read_band(2, [0, 0, 2, 2]), data[2, :2, :2])

    def test_complex_samples(self) -> None:
        """Complex samples split into real and imaginary bands"""
        data = (self.detected - 500.0 + 1j * (self.detected + 0.5)).astype(np.complex64)
        path = write_geotiff(self.folder.joinpath("imagery_HH.tif"), data, geocoded=False)

        stream = geotiff.GeoTiffBandStream(path)
        self.assertEqual(stream.num_bands, 2)
        self.assertEqual(stream.data_type, np.dtype(np.float32))
        np.testing.assert_array_equal(stream.read_band(0), data.real)
        np.testing.assert_array_equal(stream.read_band(1), data.imag)

    def test_not_a_tiff(self) -> None:
        """Undecodable files raise UnsupportedRasterFormatError"""
        path = self.folder.joinpath("imagery_HH.tif")
        path.write_bytes(b"this is not a tiff file")
        with self.assertRaises(UnsupportedRasterFormatError):
            geotiff.read_geotiff_product(path)


class CEOSTest(unittest.TestCase):
    """Testing CEOS decoding"""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.folder = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_image_file_path(self) -> None:
        """vdf_ prefix replaced by dat_"""
        self.assertEqual(
            ceos.get_image_file_path(Path("/a/scene_HH/vdf_scene.001")), Path("/a/scene_HH/dat_scene.001")
        )

    def test_detected_product(self) -> None:
        """Amplitude band and descriptors as metadata"""
        data = np.arange(5 * 7, dtype=np.uint16).reshape(5, 7) * 1000
        vdf = write_ceos(self.folder, "HH", data, is_complex=False)
        product = ceos.read_ceos_product(vdf)

        self.assertEqual(product.name, "vdf_HH")
        self.assertEqual(product.decoder_kind, RasterContainerKind.LEGACY_BINARY)
        self.assertEqual((product.width, product.height), (7, 5))
        self.assertEqual(product.band_names, ["Amplitude"])
        self.assertIsNone(product.scene_geocoding)
        np.testing.assert_array_equal(product.get_band("Amplitude").read(), data)
        np.testing.assert_array_equal(product.get_band("Amplitude").read([1, 2, 3, 4]), data[1:4, 2:6])

        original = product.metadata_root.get_element(ORIGINAL_PRODUCT_METADATA)
        self.assertEqual(original.element_names, ["Volume Descriptor", "Image File Descriptor"])
        volume_descriptor = original.get_element("Volume Descriptor")
        self.assertEqual(volume_descriptor.get_attribute_string("logical_volume_id"), "RISAT1_TEST")
        descriptor = original.get_element("Image File Descriptor")
        self.assertEqual(descriptor.get_attribute_string("format_code"), "IU2")
        self.assertEqual(descriptor.get_attribute_int("pixels_per_line"), 7)

    def test_complex_product(self) -> None:
        """i and q bands from interleaved pairs"""
        data = np.stack([np.full((3, 4), -7), np.arange(12).reshape(3, 4)], axis=-1).astype(np.int16)
        vdf = write_ceos(self.folder, "VV", data, is_complex=True)
        product = ceos.read_ceos_product(vdf)

        self.assertEqual(product.band_names, ["i", "q"])
        self.assertEqual(product.get_band("i").data_type, np.dtype(np.int16))
        np.testing.assert_array_equal(product.get_band("i").read(), data[:, :, 0])
        np.testing.assert_array_equal(product.get_band("q").read([2, 1, 1, 3]), data[2:3, 1:4, 1])

    def test_block_out_of_bounds(self) -> None:
        """Blocks exceeding the raster raise IndexError"""
        vdf = write_ceos(self.folder, "HH", np.ones((5, 7), dtype=np.uint16), is_complex=False)
        image_file = ceos.CEOSImageFile(ceos.get_image_file_path(vdf))
        for block in ([0, 4, 2, 4], [4, 0, 2, 1], [-1, 0, 1, 1], [0, 0, 0, 3]):
            with self.assertRaises(IndexError, msg=str(block)):
                image_file.read_band(0, block)
        with self.assertRaises(IndexError):
            image_file.read_band(1)
        np.testing.assert_array_equal(image_file.read_band(0, [4, 3, 1, 4]), np.ones((1, 4)))

    def test_missing_image_file(self) -> None:
        """vdf without dat"""
        vdf = write_ceos(self.folder, "HH", np.ones((2, 2), dtype=np.uint16), is_complex=False)
        ceos.get_image_file_path(vdf).unlink()
        with self.assertRaises(InvalidCEOSFileError):
            ceos.read_ceos_product(vdf)

    def test_truncated_image_file(self) -> None:
        """Missing data records"""
        vdf = write_ceos(self.folder, "HH", np.ones((4, 4), dtype=np.uint16), is_complex=False)
        image_file = ceos.get_image_file_path(vdf)
        image_file.write_bytes(image_file.read_bytes()[:800])
        with self.assertRaises(InvalidCEOSFileError):
            ceos.read_ceos_product(vdf)

    def test_empty_volume_descriptor(self) -> None:
        """Volume descriptor shorter than a record header"""
        vdf = write_ceos(self.folder, "HH", np.ones((2, 2), dtype=np.uint16), is_complex=False)
        vdf.write_bytes(b"")
        with self.assertRaises(InvalidCEOSFileError):
            ceos.read_ceos_product(vdf)


if __name__ == "__main__":
    unittest.main()
