"""
Elementwise operations for ndlineage.
"""

from .elementwise import (
    power,
    maximum,
    minimum,
    equal,
    not_equal,
    greater,
    greater_equal,
    lesser,
    lesser_equal,
)

__all__ = [
    "power",
    "maximum",
    "minimum",
    "equal",
    "not_equal",
    "greater",
    "greater_equal",
    "lesser",
    "lesser_equal",
]
