from __future__ import annotations


class BridgeError(Exception):
    """Base class for every failure raised by the bridge."""


class ConfigurationError(BridgeError):
    """Invalid or missing settings. Fatal at startup."""


class TransportError(BridgeError):
    """HTTP or bus failure."""


class ParseError(BridgeError):
    """Malformed inbound payload, topic or cloud response."""


class ResolutionError(BridgeError):
    """A command addressed a device identifier that is not in the registry."""
