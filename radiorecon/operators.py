"""Module for defining the half-spectrum Fourier operator used for interferometric imaging."""

import math
import torch
import numpy as np
from abc import ABC, abstractmethod


# Operator Base Class
class Operator(ABC):
    @abstractmethod
    def op(self, x): pass
    @abstractmethod
    def op_adj(self, y): pass


def half_spectrum_width(ny: int) -> int:
    """Number of columns kept by a real-to-complex transform of a row of length ny."""
    return ny // 2 + 1


def compress_full_spectrum(full_spectrum: torch.Tensor) -> torch.Tensor:
    """Truncates each row of a full (NX, NY) spectrum to its first NY//2+1 entries."""
    ny = full_spectrum.shape[-1]
    return full_spectrum[..., :half_spectrum_width(ny)].clone()


def expand_half_spectrum(half_spectrum: torch.Tensor, ny: int) -> torch.Tensor:
    """
    Rebuilds the full (NX, NY) spectrum of a real image from its half-spectrum.

    The first NY//2+1 columns are copied. Every remaining bin is the complex
    conjugate of its mirror, full[(NX-i) % NX, NY-j] = conj(half[i, j]). Row 0,
    the self-conjugate row NX/2 (even NX) and column 0 map onto themselves, so
    the same index rule covers even and odd NX and NY.

    Args:
        half_spectrum (torch.Tensor): Complex tensor of shape (..., NX, NY//2+1).
        ny (int): Length of the full last axis.

    Returns:
        torch.Tensor: Complex tensor of shape (..., NX, NY).
    """
    nx, ny_h = half_spectrum.shape[-2], half_spectrum.shape[-1]
    if ny_h != half_spectrum_width(ny):
        raise ValueError(f"Half-spectrum has {ny_h} columns, expected {half_spectrum_width(ny)} for NY={ny}.")

    full_spectrum = torch.empty(half_spectrum.shape[:-1] + (ny,),
                                dtype=half_spectrum.dtype, device=half_spectrum.device)
    full_spectrum[..., :ny_h] = half_spectrum
    if ny > ny_h:
        mirror_rows = (-torch.arange(nx, device=half_spectrum.device)) % nx
        mirror_cols = ny - torch.arange(ny_h, ny, device=half_spectrum.device)
        mirrored = half_spectrum[..., mirror_rows[:, None], mirror_cols[None, :]]
        full_spectrum[..., ny_h:] = torch.conj(mirrored)
    return full_spectrum


class HalfSpectrumFourierOperator(Operator):
    """
    Masked Fourier operator acting on the Hermitian half-spectrum of a real image.

    The design matrix rows are scaled, masked Fourier basis vectors:
        A(x) = mask * rfft2(x) / sqrt(NX*NY)
    Only the NX x (NY//2+1) half-spectrum is stored; the data term counts each
    conjugate pair through the expanded spectrum:
        F(x) = 1/4 * || expand(y - A(x)) ||^2

    Built once per reconstruction and reused every iteration, so the observed
    half-spectrum, the mask and the normalization are computed only once.

    Args:
        observed (torch.Tensor): Observed spectrum, either full (NX, NY) or
            half (NX, NY//2+1). A full spectrum is compressed on construction.
        mask (torch.Tensor): Sampling weights of shape (NX, NY//2+1). Zero marks
            an unobserved bin.
        image_shape (tuple[int, int]): (NX, NY).
        device (str or torch.device, optional): Defaults to the device of `observed`
            when it is a tensor, else 'cpu'.
    """
    def __init__(self,
                 observed: torch.Tensor,
                 mask: torch.Tensor,
                 image_shape: tuple[int, int],
                 device: str | torch.device | None = None):
        if len(image_shape) != 2:
            raise ValueError(f"image_shape must be (NX, NY), got {image_shape}.")
        self.image_shape = tuple(int(n) for n in image_shape)
        self.nx, self.ny = self.image_shape
        self.ny_h = half_spectrum_width(self.ny)
        self.half_shape = (self.nx, self.ny_h)
        self.sqrt_n = math.sqrt(self.nx * self.ny)

        if device is None:
            device = observed.device if isinstance(observed, torch.Tensor) else 'cpu'
        self.device = torch.device(device)

        observed = torch.as_tensor(observed, device=self.device).to(torch.complex128)
        if tuple(observed.shape) == self.image_shape and self.ny != self.ny_h:
            observed = compress_full_spectrum(observed)
        if tuple(observed.shape) != self.half_shape:
            raise ValueError(f"Observed data shape {tuple(observed.shape)} matches neither the full spectrum "
                             f"{self.image_shape} nor the half-spectrum {self.half_shape}.")

        mask = torch.as_tensor(mask, device=self.device)
        if mask.is_complex():
            raise ValueError("mask must be real-valued.")
        mask = mask.to(torch.float64)
        if tuple(mask.shape) != self.half_shape:
            raise ValueError(f"mask shape {tuple(mask.shape)} must match the half-spectrum shape {self.half_shape}.")

        self.mask = mask
        self.observed_bins = mask != 0
        self.observed = torch.where(self.observed_bins, observed, torch.zeros_like(observed))

    @property
    def num_observed(self) -> int:
        """Number of observed half-spectrum bins."""
        return int(self.observed_bins.sum().item())

    def op(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward operation: real image (NX, NY) to masked, scaled half-spectrum (NX, NY//2+1).
        """
        if tuple(x.shape) != self.image_shape:
            raise ValueError(f"Input image shape {tuple(x.shape)} must match {self.image_shape}.")
        return self.mask * torch.fft.rfft2(x) / self.sqrt_n

    def op_adj(self, y: torch.Tensor) -> torch.Tensor:
        """
        Back-projection paired with the 1/4 data term: scales each observed bin by
        mask/(2*sqrt(N)) and applies an unnormalized inverse real FFT.
        Unobserved bins contribute nothing.
        """
        if tuple(y.shape) != self.half_shape:
            raise ValueError(f"Input half-spectrum shape {tuple(y.shape)} must match {self.half_shape}.")
        weighted = torch.where(self.observed_bins,
                               y * self.mask / (2.0 * self.sqrt_n),
                               torch.zeros_like(y))
        return torch.fft.irfft2(weighted, s=self.image_shape, norm='forward')

    def residual(self, spectrum: torch.Tensor) -> torch.Tensor:
        """
        Weighted half-spectrum residual: 0 on unobserved bins, else
        observed - mask * spectrum / sqrt(N), where `spectrum` is rfft2 of the image.
        """
        resid = self.observed - self.mask * spectrum / self.sqrt_n
        return torch.where(self.observed_bins, resid, torch.zeros_like(resid))

    def data_term_and_residual(self, x: torch.Tensor) -> tuple[float, torch.Tensor]:
        """
        Evaluates the data term at x.

        Returns:
            tuple: (1/4 * ||expanded residual||^2, residual half-spectrum).
        """
        resid = self.residual(torch.fft.rfft2(x))
        full_resid = expand_half_spectrum(resid, self.ny)
        value = torch.vdot(full_resid.flatten(), full_resid.flatten()).real.item() / 4.0
        return value, resid

    def gradient(self, resid: torch.Tensor) -> torch.Tensor:
        """Gradient of the data term from its residual half-spectrum."""
        return -self.op_adj(resid)

    def data_term(self, x: torch.Tensor) -> float:
        return self.data_term_and_residual(x)[0]


if __name__ == '__main__':
    print("Running basic HalfSpectrumFourierOperator checks...")
    for shape in [(4, 4), (5, 7), (6, 3)]:
        img = torch.from_numpy(np.random.default_rng(0).standard_normal(shape))
        half = torch.fft.rfft2(img)
        full = expand_half_spectrum(half, shape[1])
        err = torch.max(torch.abs(full - torch.fft.fft2(img))).item()
        print(f"Shape {shape}: max |expand(rfft2) - fft2| = {err:.2e}")

    nx, ny = 8, 8
    truth = torch.zeros(nx, ny, dtype=torch.float64)
    truth[2:5, 3:6] = 1.0
    mask = torch.ones(nx, half_spectrum_width(ny), dtype=torch.float64)
    data = mask * torch.fft.rfft2(truth) / math.sqrt(nx * ny)
    op = HalfSpectrumFourierOperator(data, mask, (nx, ny))
    value, resid = op.data_term_and_residual(torch.zeros(nx, ny, dtype=torch.float64))
    print(f"Data term at zero: {value:.6f} (expected {0.25 * truth.pow(2).sum().item():.6f})")
