"""Custom exception hierarchy for cryptoagency."""


class AgencyError(Exception):
    """Base for all cryptoagency errors."""


class DatabaseNotInitializedError(AgencyError):
    """The suggestion database was used before initialize()."""


class SuggestionNotFoundError(AgencyError):
    """No suggestion with the given ID exists."""


class DiscoveryNotFoundError(AgencyError):
    """No logged alpha discovery with the given ID exists."""


class StrategicDecisionNotFoundError(AgencyError):
    """No logged strategic decision with the given ID exists."""


class GoalNotFoundError(AgencyError):
    """No goal with the given ID exists in the hierarchy."""


class UnknownTestTypeError(AgencyError):
    """The bench was asked to run a test type it does not know."""


class InvalidFeedbackError(AgencyError):
    """Human feedback is missing fields or has an out-of-range score."""


class AgentNotRegisteredError(AgencyError):
    """The orchestrator has no sub-agent with the given ID."""
