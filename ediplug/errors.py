"""Error taxonomy for the EdiPlug protocol layer"""


class EdiPlugError(Exception):
    """Base class for everything the protocol layer raises."""


class TransportError(EdiPlugError):
    """The device could not be reached (connection refused, timeout, DNS)."""


class MalformedResponse(EdiPlugError):
    """The device replied, but the reply could not be decoded or parsed."""


class RetriesExhausted(EdiPlugError):
    """
    The retry budget ran out without a successful exchange.

    Attributes:
        attempts: Number of times the operation was invoked.
        elapsed: Seconds spent between the first attempt and giving up.
        last_error: The error raised by the final attempt.
    """

    def __init__(self, attempts: int, elapsed: float, last_error: Exception):
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_error = last_error
        super().__init__(
            f"gave up after {attempts} attempts in {elapsed:.1f}s: {last_error}"
        )


class SemanticFailure(EdiPlugError):
    """The device answered, and the answer is a non-success outcome."""


class ConfigurationError(EdiPlugError):
    """A request was rejected before any network call was made."""


class PlugNotFound(ConfigurationError):
    """No plug with the requested name is known."""


class InvalidState(ConfigurationError):
    """The requested state token is not one of the accepted values."""
