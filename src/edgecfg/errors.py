"""Exception types for edgecfg."""

from __future__ import annotations


class EdgeCfgError(Exception):
    """Base class for all edgecfg errors."""

    pass


class FatalUserError(EdgeCfgError):
    """The working copy or the input is in a state that requires user action.

    Aborts the current command with a non-zero exit code.
    """

    pass


class DictionaryFormatError(FatalUserError):
    """A dictionary item cannot be represented in the .ini line format."""

    pass


class ConfigError(EdgeCfgError):
    """The project configuration could not be loaded."""

    pass
