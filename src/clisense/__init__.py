"""clisense package root."""

from clisense.exceptions import ClisenseError, NeverThrown
from clisense.invariants import never

__all__ = ["__version__", "ClisenseError", "NeverThrown", "never"]

__version__ = "0.1.0"
