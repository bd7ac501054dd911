"""Copy a fixed folder onto every newly inserted removable volume."""

from sd_autocopy.__version__ import __version__


__all__ = ["__version__"]
