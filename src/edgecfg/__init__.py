"""edgecfg - keep an edge service configuration in sync with a local working copy."""

__version__ = "0.1.0"
