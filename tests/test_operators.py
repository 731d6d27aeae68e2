import math
import unittest
import numpy as np
import torch

from radiorecon.operators import (HalfSpectrumFourierOperator, half_spectrum_width,
                                  expand_half_spectrum, compress_full_spectrum)

DEVICE = torch.device('cuda' if torch.cuda.is_available() else 'cpu')


class TestHalfSpectrumPacking(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(1234)

    def _random_image(self, shape):
        return torch.from_numpy(self.rng.standard_normal(shape)).to(DEVICE)

    def test_half_spectrum_width(self):
        self.assertEqual(half_spectrum_width(4), 3)
        self.assertEqual(half_spectrum_width(5), 3)
        self.assertEqual(half_spectrum_width(1), 1)

    def test_expand_matches_full_fft(self):
        for shape in [(4, 4), (5, 7), (6, 3), (3, 8), (1, 5), (7, 1)]:
            with self.subTest(shape=shape):
                img = self._random_image(shape)
                full = expand_half_spectrum(torch.fft.rfft2(img), shape[1])
                torch.testing.assert_close(full, torch.fft.fft2(img))

    def test_compress_expand_round_trip(self):
        for shape in [(8, 8), (5, 6), (6, 5)]:
            with self.subTest(shape=shape):
                full = torch.fft.fft2(self._random_image(shape))
                half = compress_full_spectrum(full)
                self.assertEqual(tuple(half.shape), (shape[0], half_spectrum_width(shape[1])))
                torch.testing.assert_close(compress_full_spectrum(expand_half_spectrum(half, shape[1])), half)

    def test_compress_returns_copy(self):
        full = torch.fft.fft2(self._random_image((4, 4)))
        half = compress_full_spectrum(full)
        half[0, 0] = 0
        self.assertNotEqual(full[0, 0].item(), 0)

    def test_expand_wrong_width_raises(self):
        half = torch.zeros((4, 2), dtype=torch.complex128, device=DEVICE)
        with self.assertRaises(ValueError):
            expand_half_spectrum(half, 4)


class TestHalfSpectrumFourierOperator(unittest.TestCase):
    def setUp(self):
        self.nx, self.ny = 6, 5
        self.ny_h = half_spectrum_width(self.ny)
        rng = np.random.default_rng(7)
        self.x_true = torch.from_numpy(rng.standard_normal((self.nx, self.ny))).to(DEVICE)
        self.full_mask = torch.ones((self.nx, self.ny_h), dtype=torch.float64, device=DEVICE)
        self.observed = self.full_mask * torch.fft.rfft2(self.x_true) / math.sqrt(self.nx * self.ny)
        self.op = HalfSpectrumFourierOperator(self.observed, self.full_mask, (self.nx, self.ny))

    def test_instantiation(self):
        self.assertEqual(self.op.image_shape, (self.nx, self.ny))
        self.assertEqual(self.op.half_shape, (self.nx, self.ny_h))
        self.assertEqual(self.op.num_observed, self.nx * self.ny_h)

    def test_full_spectrum_is_compressed(self):
        full = torch.fft.fft2(self.x_true) / math.sqrt(self.nx * self.ny)
        op_full = HalfSpectrumFourierOperator(full, self.full_mask, (self.nx, self.ny))
        torch.testing.assert_close(op_full.observed, self.op.observed)

    def test_data_term_with_full_mask(self):
        # unitary scaling: F(x) = 1/4 * ||x - x_true||^2
        x = torch.zeros_like(self.x_true)
        expected = 0.25 * torch.sum((x - self.x_true) ** 2).item()
        self.assertAlmostEqual(self.op.data_term(x), expected, places=10)
        self.assertAlmostEqual(self.op.data_term(self.x_true), 0.0, places=10)

    def test_gradient_with_full_mask(self):
        x = torch.from_numpy(np.random.default_rng(8).standard_normal((self.nx, self.ny))).to(DEVICE)
        _, resid = self.op.data_term_and_residual(x)
        torch.testing.assert_close(self.op.gradient(resid), 0.5 * (x - self.x_true))

    def test_gradient_matches_autograd_with_partial_mask(self):
        rng = np.random.default_rng(9)
        mask = torch.from_numpy((rng.random((self.nx, self.ny_h)) < 0.5) * rng.uniform(0.5, 1.5, (self.nx, self.ny_h)))
        noise = torch.from_numpy(rng.standard_normal((self.nx, self.ny_h)) + 1j * rng.standard_normal((self.nx, self.ny_h)))
        observed = (mask * torch.fft.rfft2(self.x_true.cpu()) / math.sqrt(self.nx * self.ny) + 0.1 * noise).to(DEVICE)
        op = HalfSpectrumFourierOperator(observed, mask.to(DEVICE), (self.nx, self.ny))

        x = torch.from_numpy(rng.standard_normal((self.nx, self.ny))).to(DEVICE).requires_grad_(True)
        resid = op.residual(torch.fft.rfft2(x))
        full_resid = expand_half_spectrum(resid, self.ny)
        value = 0.25 * torch.sum(torch.abs(full_resid) ** 2)
        value.backward()

        _, resid_half = op.data_term_and_residual(x.detach())
        torch.testing.assert_close(op.gradient(resid_half), x.grad)
        self.assertAlmostEqual(op.data_term(x.detach()), value.item(), places=10)

    def test_unobserved_bins_ignored(self):
        mask = self.full_mask.clone()
        mask[1, 1] = 0.0
        corrupted = self.observed.clone()
        corrupted[1, 1] += 100.0
        op = HalfSpectrumFourierOperator(corrupted, mask, (self.nx, self.ny))
        self.assertEqual(op.observed[1, 1].item(), 0)
        self.assertEqual(op.num_observed, self.nx * self.ny_h - 1)
        self.assertLess(op.data_term(self.x_true), 1e-20)

    def test_op_shape(self):
        self.assertEqual(tuple(self.op.op(self.x_true).shape), (self.nx, self.ny_h))
        self.assertEqual(tuple(self.op.op_adj(self.observed).shape), (self.nx, self.ny))

    def test_shape_errors(self):
        with self.assertRaises(ValueError):
            HalfSpectrumFourierOperator(self.observed[:, :2], self.full_mask, (self.nx, self.ny))
        with self.assertRaises(ValueError):
            HalfSpectrumFourierOperator(self.observed, self.full_mask[:, :2], (self.nx, self.ny))
        with self.assertRaises(ValueError):
            HalfSpectrumFourierOperator(self.observed, self.full_mask.to(torch.complex128), (self.nx, self.ny))
        with self.assertRaises(ValueError):
            self.op.op(torch.zeros((self.nx + 1, self.ny), dtype=torch.float64, device=DEVICE))
        with self.assertRaises(ValueError):
            self.op.op_adj(torch.zeros((self.nx, self.ny), dtype=torch.complex128, device=DEVICE))


if __name__ == '__main__':
    unittest.main()
