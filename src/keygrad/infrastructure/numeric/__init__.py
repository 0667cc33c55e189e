from ._numeric import all_close, format_array
from ._numerical_gradient import as_output_list, calculate_numerical_gradient

__all__ = [
    all_close.__name__,
    format_array.__name__,
    as_output_list.__name__,
    calculate_numerical_gradient.__name__,
]
