"""
RadioRecon: A Python library for sparse interferometric image reconstruction.
"""

__version__ = "0.1.0"

from .operators import (Operator, HalfSpectrumFourierOperator, half_spectrum_width,
                        expand_half_spectrum, compress_full_spectrum)
from .regularizers.base import Regularizer
from .regularizers.common import (L1Regularizer, NonnegativeL1Regularizer, TSVRegularizer,
                                  TVRegularizer, FGPWorkspace, l1_regularizer)
from .optimizers import (Optimizer, MFISTA, MFISTAConfig, MFISTAOutput, ConfigurationError,
                         LineSearchError, mfista_l1_tv_fft, mfista_l1_tsv_fft)
from .metrics.summary import MFISTAResult, summarize_result
from .reconstructors import MFISTAReconstructor, mfista_imaging_fft

__all__ = [
    'Operator', 'HalfSpectrumFourierOperator', 'half_spectrum_width',
    'expand_half_spectrum', 'compress_full_spectrum',
    'Regularizer', 'L1Regularizer', 'NonnegativeL1Regularizer', 'TSVRegularizer',
    'TVRegularizer', 'FGPWorkspace', 'l1_regularizer',
    'Optimizer', 'MFISTA', 'MFISTAConfig', 'MFISTAOutput', 'ConfigurationError',
    'LineSearchError', 'mfista_l1_tv_fft', 'mfista_l1_tsv_fft',
    'MFISTAResult', 'summarize_result',
    'MFISTAReconstructor', 'mfista_imaging_fft',
]
