# radiorecon.regularizers module

from .base import Regularizer

from .common import (
    L1Regularizer,
    NonnegativeL1Regularizer,
    TSVRegularizer,
    TVRegularizer,
    FGPWorkspace,
    l1_regularizer
)

from .functional import (
    l1_norm,
    soft_threshold,
    soft_threshold_nonneg,
    total_variation,
    total_squared_variation,
    total_squared_variation_gradient
)

__all__ = [
    'Regularizer',
    'L1Regularizer',
    'NonnegativeL1Regularizer',
    'TSVRegularizer',
    'TVRegularizer',
    'FGPWorkspace',
    'l1_regularizer',
    'l1_norm',
    'soft_threshold',
    'soft_threshold_nonneg',
    'total_variation',
    'total_squared_variation',
    'total_squared_variation_gradient'
]
