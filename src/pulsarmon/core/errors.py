"""Exception hierarchy for pulsarmon."""


class PulsarMonError(Exception):
    """Base class for all pulsarmon errors."""


class ClusterClientError(PulsarMonError):
    """Raised by cluster clients when a replica or pod refresh fails."""


class MetricRegistrationError(PulsarMonError):
    """Raised when a metric handle cannot be registered with the collector registry."""


class ConfigurationError(PulsarMonError):
    """Raised when settings cannot be turned into a working component."""
