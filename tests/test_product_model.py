# SPDX-FileCopyrightText: Aresys S.r.l. <info@aresys.it>
# SPDX-License-Identifier: MIT

"""Unittest for common/product.py and common/abstracted_metadata.py"""

import unittest

import numpy as np
from arepytools.timing.precisedatetime import PreciseDateTime

from risat_products.common import abstracted_metadata as abs_md
from risat_products.common.product import (
    AffineGeoCoding,
    Band,
    MetadataElement,
    RasterProduct,
    VirtualBand,
)


class MetadataElementTest(unittest.TestCase):
    """Testing MetadataElement class"""

    def setUp(self) -> None:
        self.element = MetadataElement("root")
        self.element.add_attribute("text", "abc", unit="u", description="d")
        self.element.add_attribute("number", "12.5")
        self.element.add_attribute("time", PreciseDateTime.fromisoformat("2019-01-01T00:00:00"))

    def test_typed_getters(self) -> None:
        """Conversions and defaults"""
        self.assertEqual(self.element.get_attribute_string("text"), "abc")
        self.assertEqual(self.element.get_attribute_float("number"), 12.5)
        self.assertEqual(self.element.get_attribute_int("number"), 12)
        self.assertEqual(self.element.get_attribute_float("text", -1.0), -1.0)
        self.assertEqual(self.element.get_attribute_int("missing", 7), 7)
        self.assertEqual(self.element.get_attribute_float("time", 0.0), 0.0)
        self.assertEqual(self.element.get_attribute_utc("time"), PreciseDateTime.fromisoformat("2019-01-01T00:00:00"))
        self.assertIsNone(self.element.get_attribute_utc("text"))

    def test_set_attribute_keeps_unit(self) -> None:
        """set_attribute only replaces the value"""
        self.element.set_attribute("text", "xyz")
        attribute = self.element.get_attribute("text")
        self.assertEqual((attribute.value, attribute.unit, attribute.description), ("xyz", "u", "d"))
        self.element.set_attribute("new", 3)
        self.assertEqual(self.element.attribute_names, ["text", "number", "time", "new"])

    def test_elements_and_copy(self) -> None:
        """Child elements order, deep copy independence"""
        child = self.element.add_element(MetadataElement("child"))
        child.add_attribute("a", 1)
        self.element.add_element(MetadataElement("other"))
        self.assertEqual(self.element.element_names, ["child", "other"])
        self.assertIs(self.element.get_element("child"), child)
        self.assertIsNone(self.element.get_element("missing"))

        duplicate = self.element.copy()
        duplicate.get_element("child").set_attribute("a", 2)
        self.assertEqual(child.get_attribute_int("a"), 1)


class CanonicalMetadataTest(unittest.TestCase):
    """Testing canonical metadata helpers"""

    def test_header_defaults(self) -> None:
        """Every schema attribute at its default, nested containers present"""
        root = MetadataElement("metadata")
        abs_root = abs_md.add_abstracted_metadata_header(root)

        self.assertIs(abs_md.get_abstracted_metadata(root), abs_root)
        self.assertEqual(abs_root.attribute_names, [a.key for a in abs_md.CANONICAL_SCHEMA])
        self.assertEqual(abs_root.get_attribute_value(abs_md.PRODUCT), abs_md.NO_METADATA_STRING)
        self.assertEqual(abs_root.get_attribute_value(abs_md.ABS_ORBIT), abs_md.NO_METADATA)
        self.assertEqual(abs_root.get_attribute_value(abs_md.POLSAR_DATA), 0)
        self.assertEqual(abs_root.get_attribute_value(abs_md.FIRST_LINE_TIME), abs_md.NO_METADATA_UTC)
        self.assertEqual(
            abs_root.element_names,
            [abs_md.ORBIT_STATE_VECTORS, abs_md.SRGR_COEFFICIENTS, abs_md.DOP_COEFFICIENTS],
        )

    def test_missing_canonical_element(self) -> None:
        """KeyError without canonical element"""
        with self.assertRaises(KeyError):
            abs_md.get_abstracted_metadata(MetadataElement("metadata"))

    def test_set_attribute_coercion(self) -> None:
        """Values converted to the declared types, units kept"""
        abs_root = abs_md.add_abstracted_metadata_header(MetadataElement("metadata"))
        abs_md.set_attribute(abs_root, abs_md.ABS_ORBIT, "12345")
        abs_md.set_attribute(abs_root, abs_md.RANGE_SPACING, "1.8")
        abs_md.set_attribute(abs_root, abs_md.PASS, 3)

        self.assertEqual(abs_root.get_attribute_value(abs_md.ABS_ORBIT), 12345)
        self.assertEqual(abs_root.get_attribute_value(abs_md.RANGE_SPACING), 1.8)
        self.assertEqual(abs_root.get_attribute(abs_md.RANGE_SPACING).unit, "m")
        self.assertEqual(abs_root.get_attribute_value(abs_md.PASS), "3")

    def test_original_metadata_created_once(self) -> None:
        """Same original element returned"""
        root = MetadataElement("metadata")
        original = abs_md.add_original_product_metadata(root)
        self.assertIs(abs_md.get_original_product_metadata(root), original)
        self.assertEqual(root.element_names, [abs_md.ORIGINAL_PRODUCT_METADATA])


class BandAndProductTest(unittest.TestCase):
    """Testing bands and RasterProduct"""

    def setUp(self) -> None:
        self.pixels = np.arange(12, dtype=np.int16).reshape(3, 4)
        self.reads = []

        def source(block):
            self.reads.append(block)
            if block is None:
                return self.pixels
            return self.pixels[block[0] : block[0] + block[2], block[1] : block[1] + block[3]]

        self.band = Band("i", np.int32, 4, 3, source=source, unit="real")

    def test_band_read(self) -> None:
        """Pixels casted to the band type"""
        data = self.band.read([1, 1, 2, 2])
        self.assertEqual(data.dtype, np.dtype(np.int32))
        np.testing.assert_array_equal(data, [[5, 6], [9, 10]])
        self.assertEqual(self.reads, [[1, 1, 2, 2]])

    def test_band_without_source(self) -> None:
        """RuntimeError on read"""
        with self.assertRaises(RuntimeError):
            Band("x", np.uint8, 1, 1).read()

    def test_band_copy(self) -> None:
        """Renamed copy sharing the pixel source"""
        duplicate = self.band.copy("i_HH")
        self.assertEqual((duplicate.name, duplicate.unit, duplicate.data_type), ("i_HH", "real", np.dtype(np.int32)))
        np.testing.assert_array_equal(duplicate.read(), self.pixels)
        self.assertFalse(duplicate.is_virtual)

    def test_virtual_band(self) -> None:
        """Computed on every read, never stored"""
        virtual = VirtualBand("Intensity", "i * i", [self.band], lambda i: i.astype(np.float64) ** 2)
        self.assertTrue(virtual.is_virtual)
        self.assertEqual((virtual.width, virtual.height), (4, 3))
        np.testing.assert_array_equal(virtual.read([0, 0, 1, 2]), [[0.0, 1.0]])
        np.testing.assert_array_equal(virtual.read([0, 0, 1, 2]), [[0.0, 1.0]])
        self.assertEqual(len(self.reads), 2)
        self.assertEqual(virtual.copy("Intensity_HH").expression, "i * i")

    def test_product_bands(self) -> None:
        """Insertion order kept, duplicated names rejected"""
        product = RasterProduct(name="p", product_type="t", width=4, height=3)
        product.add_band(self.band.copy("b"))
        product.add_band(self.band.copy("a"))
        self.assertEqual(product.band_names, ["b", "a"])
        self.assertEqual(product.num_bands, 2)
        self.assertEqual(product.get_band_at(1).name, "a")
        with self.assertRaises(ValueError):
            product.add_band(self.band.copy("a"))
        with self.assertRaises(KeyError):
            product.get_band("c")

    def test_default_tile_size_and_geocoding_transfer(self) -> None:
        """Tile capped to raster size, geocoding deep copied"""
        product = RasterProduct(
            name="p",
            product_type="t",
            width=1000,
            height=300,
            scene_geocoding=AffineGeoCoding(origin=(0.0, 0.0), pixel_size=(1.0, -1.0)),
        )
        self.assertEqual(product.default_tile_size(), (300, 512))

        other = RasterProduct(name="o", product_type="t", width=1000, height=300)
        product.transfer_geocoding_to(other)
        self.assertEqual(other.scene_geocoding, product.scene_geocoding)
        self.assertIsNot(other.scene_geocoding, product.scene_geocoding)


if __name__ == "__main__":
    unittest.main()
