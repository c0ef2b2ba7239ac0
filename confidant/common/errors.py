"""Exception types shared across Confidant modules."""


class ConfidantError(Exception):
    """Base class for all Confidant errors"""


class QueryValidationError(ConfidantError, ValueError):
    """Query request is malformed or missing required fields"""


class ModelServiceError(ConfidantError):
    """The language-model service failed to produce a response"""


class SummarizationError(ConfidantError):
    """A batch of messages could not be summarized"""


class PersonaError(ConfidantError):
    """A persona could not be loaded or found"""
