import torch
import numpy as np
import matplotlib.pyplot as plt

from radiorecon.reconstructors import MFISTAReconstructor
from radiorecon.optimizers import MFISTAConfig
from radiorecon.simulation.toy_datasets import (point_source_phantom, random_half_spectrum_mask,
                                                simulate_half_spectrum_data)


def run_point_source_example():
    device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')
    print(f"Using device: {device}")

    nx, ny = 32, 32
    sources = [(8, 10, 1.0), (20, 22, 0.7), (21, 23, 0.4), (12, 25, 0.3)]
    sky = point_source_phantom(nx, ny, sources, device=device)

    # 1. Sparse uv coverage and noisy gridded visibilities
    mask = random_half_spectrum_mask(nx, ny, fraction=0.35, seed=0, device=device)
    observed = simulate_half_spectrum_data(sky, mask, noise_std=0.002, seed=1)
    print(f"Observed {int(mask.sum().item())} of {mask.numel()} half-spectrum bins.")

    # 2. Dirty image: zero-filled inverse transform of the observed bins
    dirty = torch.fft.irfft2(observed, s=(nx, ny), norm='ortho')

    # 3. L1 + TSV and L1 + TV reconstructions
    cfg = MFISTAConfig(max_iter=2000, fgp_iterations=50)
    results = {}
    for name, weights in [("L1 + TSV", dict(lambda_l1=1e-3, lambda_tsv=1e-4)),
                          ("L1 + TV", dict(lambda_l1=1e-3, lambda_tv=1e-4))]:
        reconstructor = MFISTAReconstructor(nonneg=True, config=cfg, verbose=False, **weights)
        image, result = reconstructor.reconstruct(observed, mask, image_shape=(nx, ny))
        print(f"\n{name}:")
        print(result.report())
        results[name] = image.cpu().numpy()

    # 4. Display
    panels = [("True sky", sky.cpu().numpy()), ("Dirty image", dirty.cpu().numpy())] + list(results.items())
    fig, axes = plt.subplots(1, len(panels), figsize=(4 * len(panels), 4))
    for ax, (title, img) in zip(axes, panels):
        ax.imshow(np.asarray(img), cmap='inferno', origin='lower')
        ax.set_title(title)
        ax.axis('off')
    plt.tight_layout()
    plt.show()


if __name__ == '__main__':
    run_point_source_example()
