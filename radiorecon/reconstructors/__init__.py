from .mfista_reconstructor import MFISTAReconstructor, mfista_imaging_fft

__all__ = [
    'MFISTAReconstructor',
    'mfista_imaging_fft'
]
