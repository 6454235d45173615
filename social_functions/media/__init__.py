from .codec import PillowCodec
from .pipeline import MediaDerivativePipeline, derivative_paths, is_derivative_path
from .schemas import DerivativeResult, DerivativeType, RawAsset

__all__ = [
    'DerivativeResult',
    'DerivativeType',
    'MediaDerivativePipeline',
    'PillowCodec',
    'RawAsset',
    'derivative_paths',
    'is_derivative_path',
]
