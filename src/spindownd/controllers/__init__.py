"""Decision logic applied to devices after each update."""

from .spindown import SpindownPolicy

__all__ = [
    "SpindownPolicy",
]
