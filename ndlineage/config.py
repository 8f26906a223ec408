"""
Process-wide configuration

Values are read once from the environment. Explicit arguments (for example a
``ctx`` passed to an allocating call) always take precedence.
"""

import functools
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .core.context import Context, cpu
from .core.errors import UsageError


ENV_DEFAULT_DEVICE = "NDLINEAGE_DEFAULT_DEVICE"
ENV_PRINT_LENGTH = "NDLINEAGE_PRINT_LENGTH"
ENV_PRINT_LAYER_LENGTH = "NDLINEAGE_PRINT_LAYER_LENGTH"


@dataclass(frozen=True)
class Config:
    """
    Binding configuration

    Attributes:
        default_context: Context used when an allocating call gets ctx=None
        print_length: Longest 1-D run printed in full by repr()
        layer_length: Longest outer dimension printed in full by repr()
    """
    default_context: Context = field(default_factory=cpu)
    print_length: int = 1000
    layer_length: int = 10

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        environ = os.environ if environ is None else environ
        kwargs = {}

        device = environ.get(ENV_DEFAULT_DEVICE)
        if device:
            kwargs['default_context'] = Context.from_string(device)

        for key, name in ((ENV_PRINT_LENGTH, 'print_length'),
                          (ENV_PRINT_LAYER_LENGTH, 'layer_length')):
            raw = environ.get(key)
            if raw:
                try:
                    value = int(raw)
                except ValueError:
                    raise UsageError(f"{key} must be an integer, got {raw!r}") from None
                if value <= 0:
                    raise UsageError(f"{key} must be positive, got {value}")
                kwargs[name] = value

        return cls(**kwargs)


@functools.lru_cache(maxsize=None)
def get_config() -> Config:
    """Configuration for this process, read from the environment on first use"""
    return Config.from_env()


def default_context() -> Context:
    return get_config().default_context


def resolve_context(ctx: Optional[Context]) -> Context:
    return ctx if ctx is not None else default_context()
