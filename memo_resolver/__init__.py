"""Neural intent resolver with persistent answer memory."""

from .core.config import VERSION

__version__ = VERSION
