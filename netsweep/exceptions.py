"""Errors raised by the scanner before any probing starts."""


class NetsweepError(Exception):
    """Base class for scanner errors."""


class ConfigurationError(NetsweepError):
    """The scan cannot start with the given inputs."""


class NoAdapterFoundError(ConfigurationError):
    """No network adapter with a gateway and an IPv4 address was found."""


class NoSubnetMaskError(ConfigurationError):
    """The subnet mask for the local address could not be determined."""


class InvalidMaskError(ConfigurationError, ValueError):
    """Address and subnet mask are unusable together."""


class MissingCallbackError(ConfigurationError, TypeError):
    """A required callback was not supplied."""
