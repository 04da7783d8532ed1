class SsidLocatorError(Exception):
    """Base class for errors raised inside the locator."""


class RegistryUnreadable(SsidLocatorError):
    """The known-networks registry could not be located, read or decoded."""
