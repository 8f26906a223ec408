from .scope import ResourceScope, current_scope
from .printing import format_values


def to_scipy(*args, **kwargs):
    from .sparse import to_scipy as _to_scipy

    return _to_scipy(*args, **kwargs)


__all__ = [
    # Scopes
    "ResourceScope",
    "current_scope",

    # Printing
    "format_values",

    # Sparse utils
    "to_scipy",
]
