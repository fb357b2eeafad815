"""Kernel-level exceptions shared by auth/ and api/."""


class ConfigurationError(ValueError):
    """Raised at startup when configuration is unusable (e.g. a weak signing secret).

    Subclasses ValueError so pydantic model validators and callers that already
    treat bad configuration as ValueError keep working.
    """
