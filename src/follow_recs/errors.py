"""Error taxonomy shared by the recommendation core and the follow graph.

Library code raises these; routers translate them into HTTP responses.
"""


class RecommendationError(Exception):
    """Base class for all errors raised by ``follow_recs``."""


class NotFound(RecommendationError):
    """A required user profile does not exist."""


class InvalidArgument(RecommendationError):
    """Caller supplied an argument that can never succeed (self-follow, bad filter)."""


class RetrievalError(RecommendationError):
    """Every candidate strategy failed, or the exclusion set could not be read."""


class TransactionConflict(RecommendationError):
    """A concurrent follow toggle holds the pair; safe to retry."""


class ProviderUnavailable(RecommendationError):
    """The embedding provider is not configured or did not answer."""
