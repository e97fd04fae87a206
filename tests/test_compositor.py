import unittest
import numpy as np
from models import (
    DimensionMismatchError,
    Plane,
    Volume,
    composite,
    overlay_color,
    plane_layout,
    window_volume,
)


def _mask(shape, voxels):
    """Label volume (Z, Y, X) with the given (z, y, x) voxels set to 1."""
    arr = np.zeros(shape, dtype=np.uint8)
    for z, y, x in voxels:
        arr[z, y, x] = 1
    return Volume.from_array(arr)


class TestOverlayColor(unittest.TestCase):

    def test_cycle(self):
        self.assertEqual(
            [overlay_color(i) for i in range(4)],
            [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 0, 0)],
        )


class TestComposite(unittest.TestCase):

    def setUp(self):
        rng = np.random.default_rng(0)
        self.arr = rng.integers(-1500, 3500, size=(5, 4, 3)).astype(np.int16)  # (Z, Y, X)
        self.scan = Volume.from_array(self.arr)
        self.windowed = window_volume(self.scan)

    def test_pixel_count_for_all_planes_and_slices(self):
        for plane in Plane:
            layout = plane_layout(self.scan.dims, plane)
            for s in range(layout.extent):
                out = composite(self.windowed, [], self.scan.dims, plane, s)
                self.assertEqual((out.width, out.height), (layout.width, layout.height))
                self.assertEqual(len(out.pixels), out.width * out.height * 4)

    def test_scan_only_is_grayscale(self):
        """Without overlays every pixel is (g, g, g, 255) with g the windowed value."""
        out = composite(self.windowed, [], self.scan.dims, Plane.CORONAL, 2)
        rgba = out.as_rgba()
        expected = self.windowed.reshape(5, 4, 3)[:, 2, :]
        for c in range(3):
            np.testing.assert_array_equal(rgba[:, :, c], expected)
        self.assertTrue(np.all(rgba[:, :, 3] == 255))

    def test_single_overlay_blend(self):
        """A marked voxel becomes 0.6 * gray + 0.4 * base color."""
        scan = Volume.from_array(np.full((1, 2, 2), 100, dtype=np.uint8))
        windowed = np.full(4, 100, dtype=np.uint8)
        mask = _mask((1, 2, 2), [(0, 1, 0)])
        out = composite(windowed, [mask], scan.dims, "axial", 0)
        self.assertEqual(out.pixel(0, 1), (162, 60, 60, 255))
        self.assertEqual(out.pixel(1, 1), (100, 100, 100, 255))

    def test_later_overlay_blended_last(self):
        """Two overlays on the same voxel: green (second) is applied over red (first)."""
        scan = Volume.from_array(np.zeros((1, 1, 1), dtype=np.uint8))
        windowed = np.zeros(1, dtype=np.uint8)
        red = _mask((1, 1, 1), [(0, 0, 0)])
        green = _mask((1, 1, 1), [(0, 0, 0)])
        out = composite(windowed, [red, green], scan.dims, "axial", 0)
        self.assertEqual(out.pixel(0, 0), (61, 102, 0, 255))
        # overlay colors follow position, not identity
        self.assertNotEqual(
            composite(windowed, [red], scan.dims, "axial", 0).pixel(0, 0),
            out.pixel(0, 0),
        )

    def test_overlapping_masks_stack_only_on_shared_voxel(self):
        """A marks x=0,1 and B marks x=1,2; only x=1 sees both blends."""
        scan = Volume.from_array(np.zeros((1, 1, 3), dtype=np.uint8))
        windowed = np.zeros(3, dtype=np.uint8)
        a = _mask((1, 1, 3), [(0, 0, 0), (0, 0, 1)])
        b = _mask((1, 1, 3), [(0, 0, 1), (0, 0, 2)])

        out = composite(windowed, [a, b], scan.dims, "axial", 0)
        self.assertEqual(out.pixel(0, 0), (102, 0, 0, 255))
        self.assertEqual(out.pixel(1, 0), (61, 102, 0, 255))
        self.assertEqual(out.pixel(2, 0), (0, 102, 0, 255))

        # reversed order: B becomes red and A green, the shared voxel keeps green on top
        swapped = composite(windowed, [b, a], scan.dims, "axial", 0)
        self.assertEqual(swapped.pixel(0, 0), (0, 102, 0, 255))
        self.assertEqual(swapped.pixel(1, 0), (61, 102, 0, 255))
        self.assertEqual(swapped.pixel(2, 0), (102, 0, 0, 255))

    def test_third_overlay_is_blue(self):
        scan = Volume.from_array(np.zeros((1, 1, 3), dtype=np.uint8))
        windowed = np.zeros(3, dtype=np.uint8)
        overlays = [_mask((1, 1, 3), [(0, 0, i)]) for i in range(3)]
        out = composite(windowed, overlays, scan.dims, "axial", 0)
        self.assertEqual(out.pixel(0, 0), (102, 0, 0, 255))
        self.assertEqual(out.pixel(1, 0), (0, 102, 0, 255))
        self.assertEqual(out.pixel(2, 0), (0, 0, 102, 255))

    def test_overlay_on_sagittal_plane(self):
        # voxel (z=4, y=3, x=1) shows at display (x=y, y=z) on sagittal slice x=1
        mask = _mask((5, 4, 3), [(4, 3, 1)])
        out = composite(self.windowed, [mask], self.scan.dims, Plane.SAGITTAL, 1)
        g = int(self.windowed.reshape(5, 4, 3)[4, 3, 1])
        self.assertEqual(out.pixel(3, 4)[0], int(np.floor(0.6 * g + 0.4 * 255 + 0.5)))
        other = composite(self.windowed, [mask], self.scan.dims, Plane.SAGITTAL, 0)
        np.testing.assert_array_equal(
            other.pixels, composite(self.windowed, [], self.scan.dims, Plane.SAGITTAL, 0).pixels
        )

    def test_signed_and_float_labels(self):
        """Only strictly positive label samples are drawn."""
        labels = Volume.from_array(np.array([[[-1.0, 0.0, 0.5]]], dtype=np.float32))
        scan = Volume.from_array(np.zeros((1, 1, 3), dtype=np.uint8))
        out = composite(np.zeros(3, dtype=np.uint8), [labels], scan.dims, "axial", 0)
        self.assertEqual([out.pixel(x, 0)[0] for x in range(3)], [0, 0, 102])

    def test_dimension_mismatch(self):
        mask = _mask((5, 4, 2), [])
        with self.assertRaises(DimensionMismatchError):
            composite(self.windowed, [mask], self.scan.dims, Plane.AXIAL, 0)

    def test_windowed_length_mismatch(self):
        with self.assertRaises(DimensionMismatchError):
            composite(self.windowed[:-1], [], self.scan.dims, Plane.AXIAL, 0)

    def test_pixels_read_only(self):
        out = composite(self.windowed, [], self.scan.dims, Plane.AXIAL, 0)
        with self.assertRaises(ValueError):
            out.pixels[0] = 1
        self.assertEqual(len(out.tobytes()), out.width * out.height * 4)


if __name__ == '__main__':
    unittest.main()
