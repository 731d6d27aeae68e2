from .summary import MFISTAResult, summarize_result

__all__ = [
    'MFISTAResult',
    'summarize_result'
]
