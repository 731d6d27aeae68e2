from .toy_datasets import (
    ramp_phantom,
    point_source_phantom,
    random_half_spectrum_mask,
    simulate_half_spectrum_data,
    noisy_ramp_image
)

__all__ = [
    'ramp_phantom',
    'point_source_phantom',
    'random_half_spectrum_mask',
    'simulate_half_spectrum_data',
    'noisy_ramp_image'
]
