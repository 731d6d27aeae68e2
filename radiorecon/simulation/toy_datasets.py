import math
import torch
import numpy as np
from typing import Iterable, Optional, Tuple

from radiorecon.operators import half_spectrum_width


def ramp_phantom(nx: int, ny: int, device: torch.device = torch.device('cpu')) -> torch.Tensor:
    """
    Generates a linear ramp along the first axis, from 0 on row 0 to 1 on row NX-1.

    Returns:
        torch.Tensor: (NX, NY), float64.
    """
    if nx < 2 or ny < 1:
        raise ValueError(f"ramp_phantom needs nx >= 2 and ny >= 1, got ({nx}, {ny}).")
    rows = torch.arange(nx, dtype=torch.float64, device=device) / (nx - 1)
    return rows[:, None].expand(nx, ny).clone()


def point_source_phantom(nx: int, ny: int,
                         sources: Iterable[Tuple[int, int, float]],
                         device: torch.device = torch.device('cpu')) -> torch.Tensor:
    """
    Generates a sky of point sources.

    Args:
        nx, ny: Image dimensions.
        sources: (row, column, flux) triples. Fluxes at the same pixel add up.
        device: PyTorch device.

    Returns:
        torch.Tensor: (NX, NY), float64.
    """
    image = torch.zeros((nx, ny), dtype=torch.float64, device=device)
    for row, col, flux in sources:
        if not (0 <= row < nx and 0 <= col < ny):
            raise ValueError(f"Source position ({row}, {col}) is outside the ({nx}, {ny}) image.")
        image[row, col] += flux
    return image


def random_half_spectrum_mask(nx: int, ny: int, fraction: float = 0.5,
                              seed: Optional[int] = None,
                              device: torch.device = torch.device('cpu')) -> torch.Tensor:
    """
    Generates a random 0/1 sampling mask on the (NX, NY//2+1) half-spectrum.

    The DC bin is always observed.

    Args:
        fraction: Probability that a bin is observed, in (0, 1].
        seed: Seed of the numpy random generator.

    Returns:
        torch.Tensor: (NX, NY//2+1), float64.
    """
    if not 0.0 < fraction <= 1.0:
        raise ValueError(f"fraction must be in (0, 1], got {fraction}.")
    rng = np.random.default_rng(seed)
    mask = (rng.random((nx, half_spectrum_width(ny))) < fraction).astype(np.float64)
    mask[0, 0] = 1.0
    return torch.from_numpy(mask).to(device)


def simulate_half_spectrum_data(image: torch.Tensor, mask: torch.Tensor,
                                noise_std: float = 0.0,
                                seed: Optional[int] = None) -> torch.Tensor:
    """
    Simulates observed half-spectrum data: mask * rfft2(image) / sqrt(NX*NY) + noise.

    Complex Gaussian noise with standard deviation `noise_std` on each of the
    real and imaginary parts is added on observed bins only.

    Returns:
        torch.Tensor: (NX, NY//2+1), complex128. Zero on unobserved bins.
    """
    if image.ndim != 2:
        raise ValueError(f"Expected a 2D image (NX, NY), got shape {tuple(image.shape)}.")
    nx, ny = image.shape
    mask = torch.as_tensor(mask, device=image.device).to(torch.float64)
    if tuple(mask.shape) != (nx, half_spectrum_width(ny)):
        raise ValueError(f"mask shape {tuple(mask.shape)} must be {(nx, half_spectrum_width(ny))}.")

    observed = mask * torch.fft.rfft2(image.to(torch.float64)) / math.sqrt(nx * ny)
    if noise_std > 0:
        rng = np.random.default_rng(seed)
        noise = noise_std * (rng.standard_normal(mask.shape) + 1j * rng.standard_normal(mask.shape))
        observed = observed + torch.from_numpy(noise).to(image.device) * (mask != 0)
    return observed


def noisy_ramp_image(nx: int, ny: int, noise_std: float, seed: Optional[int] = None) -> Tuple[torch.Tensor, torch.Tensor]:
    """Returns (ramp, ramp + Gaussian pixel noise) for denoising experiments."""
    ramp = ramp_phantom(nx, ny)
    rng = np.random.default_rng(seed)
    return ramp, ramp + torch.from_numpy(noise_std * rng.standard_normal((nx, ny)))


if __name__ == '__main__':
    print("--- Testing toy_datasets ---")
    ramp = ramp_phantom(8, 8)
    print(f"Ramp: shape {tuple(ramp.shape)}, min {ramp.min().item()}, max {ramp.max().item()}")
    mask = random_half_spectrum_mask(8, 8, fraction=0.5, seed=0)
    print(f"Mask: shape {tuple(mask.shape)}, observed bins {int(mask.sum().item())}")
    data = simulate_half_spectrum_data(ramp, mask, noise_std=0.01, seed=0)
    print(f"Data: shape {tuple(data.shape)}, dtype {data.dtype}")
