import math
import unittest
import torch

from radiorecon.operators import half_spectrum_width
from radiorecon.simulation.toy_datasets import (ramp_phantom, point_source_phantom, random_half_spectrum_mask,
                                                simulate_half_spectrum_data, noisy_ramp_image)

DEVICE = torch.device('cuda' if torch.cuda.is_available() else 'cpu')


class TestToyDatasets(unittest.TestCase):
    def test_ramp_phantom(self):
        ramp = ramp_phantom(5, 3, device=DEVICE)
        self.assertEqual(tuple(ramp.shape), (5, 3))
        self.assertEqual(ramp.dtype, torch.float64)
        torch.testing.assert_close(ramp[:, 0], torch.linspace(0, 1, 5, dtype=torch.float64, device=DEVICE))
        torch.testing.assert_close(ramp[:, 0], ramp[:, 2])
        with self.assertRaises(ValueError):
            ramp_phantom(1, 3)

    def test_point_source_phantom(self):
        image = point_source_phantom(4, 4, [(0, 1, 2.0), (3, 3, 0.5), (0, 1, 1.0)], device=DEVICE)
        self.assertEqual(image[0, 1].item(), 3.0)
        self.assertEqual(image[3, 3].item(), 0.5)
        self.assertEqual(torch.count_nonzero(image).item(), 2)
        with self.assertRaises(ValueError):
            point_source_phantom(4, 4, [(4, 0, 1.0)])

    def test_random_mask_is_seeded(self):
        mask_a = random_half_spectrum_mask(8, 7, fraction=0.4, seed=3)
        mask_b = random_half_spectrum_mask(8, 7, fraction=0.4, seed=3)
        self.assertEqual(tuple(mask_a.shape), (8, half_spectrum_width(7)))
        torch.testing.assert_close(mask_a, mask_b)
        self.assertEqual(mask_a[0, 0].item(), 1.0)
        self.assertTrue(torch.all((mask_a == 0) | (mask_a == 1)))
        with self.assertRaises(ValueError):
            random_half_spectrum_mask(8, 7, fraction=0.0)

    def test_simulated_data(self):
        image = ramp_phantom(6, 6, device=DEVICE)
        mask = random_half_spectrum_mask(6, 6, fraction=0.5, seed=1, device=DEVICE)
        clean = simulate_half_spectrum_data(image, mask)
        torch.testing.assert_close(clean, mask * torch.fft.rfft2(image) / math.sqrt(36))
        noisy = simulate_half_spectrum_data(image, mask, noise_std=0.1, seed=2)
        self.assertEqual(noisy.dtype, torch.complex128)
        self.assertTrue(torch.all(noisy[mask == 0] == 0))
        self.assertGreater(torch.max(torch.abs(noisy - clean)).item(), 0)
        with self.assertRaises(ValueError):
            simulate_half_spectrum_data(image, mask[:, :2])

    def test_noisy_ramp(self):
        ramp, noisy = noisy_ramp_image(8, 8, noise_std=0.1, seed=0)
        torch.testing.assert_close(ramp, ramp_phantom(8, 8))
        self.assertGreater(torch.linalg.norm(noisy - ramp).item(), 0)


if __name__ == '__main__':
    unittest.main()
