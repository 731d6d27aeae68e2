import torch

def l1_norm(image: torch.Tensor) -> torch.Tensor:
    """Computes the L1 norm of an image (sum of absolute values)."""
    return torch.sum(torch.abs(image))

def soft_threshold(x: torch.Tensor, threshold: float) -> torch.Tensor:
    """Element-wise sign(x_i) * max(|x_i| - threshold, 0)."""
    return torch.sign(x) * torch.clamp(torch.abs(x) - threshold, min=0.0)

def soft_threshold_nonneg(x: torch.Tensor, threshold: float) -> torch.Tensor:
    """Element-wise max(x_i - threshold, 0): L1 prox restricted to the nonnegative orthant."""
    return torch.clamp(x - threshold, min=0.0)

def _neighbour_differences(image: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
    # (x[i,j] - x[i+1,j]) of shape (NX-1, NY) and (x[i,j] - x[i,j+1]) of shape (NX, NY-1)
    if image.ndim != 2:
        raise ValueError(f"Expected a 2D image (NX, NY), got shape {tuple(image.shape)}.")
    return image[:-1, :] - image[1:, :], image[:, :-1] - image[:, 1:]

def total_variation(image: torch.Tensor, isotropic: bool = True) -> torch.Tensor:
    """
    Computes the Total Variation (TV) of a 2D image (NX, NY).

    Isotropic TV sums sqrt(dv^2 + dh^2) over pixels that have both a lower and a
    right neighbour, plus |dv| along the last column and |dh| along the last row.
    Anisotropic TV sums |dv| + |dh| over all neighbour pairs.
    """
    dv, dh = _neighbour_differences(image)
    if not isotropic:
        return torch.sum(torch.abs(dv)) + torch.sum(torch.abs(dh))

    interior = torch.sqrt(dv[:, :-1] ** 2 + dh[:-1, :] ** 2)
    return torch.sum(interior) + torch.sum(torch.abs(dv[:, -1])) + torch.sum(torch.abs(dh[-1, :]))

def total_squared_variation(image: torch.Tensor) -> torch.Tensor:
    """Sum of squared differences between each pixel and its lower and right neighbours."""
    dv, dh = _neighbour_differences(image)
    return torch.sum(dv ** 2) + torch.sum(dh ** 2)

def total_squared_variation_gradient(image: torch.Tensor) -> torch.Tensor:
    """
    Closed-form gradient of `total_squared_variation`.
    Edge pixels only receive contributions from the neighbours they have.
    """
    dv, dh = _neighbour_differences(image)
    grad = torch.zeros_like(image)
    grad[:-1, :] += 2.0 * dv
    grad[1:, :] -= 2.0 * dv
    grad[:, :-1] += 2.0 * dh
    grad[:, 1:] -= 2.0 * dh
    return grad


if __name__ == '__main__':
    print("Testing regularizer value functions...")
    img_hw = torch.randn(32, 32, dtype=torch.float64)
    print(f"L1(HW): {l1_norm(img_hw).item()}")
    print(f"TV_iso(HW): {total_variation(img_hw, isotropic=True).item()}")
    print(f"TV_aniso(HW): {total_variation(img_hw, isotropic=False).item()}")
    print(f"TSV(HW): {total_squared_variation(img_hw).item()}")
    print("Regularizer value function tests completed.")
