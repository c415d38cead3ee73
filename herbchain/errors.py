# herbchain/errors.py


class ProvenanceError(Exception):
    """Base class for errors raised by the provenance services."""


class InvalidInput(ProvenanceError):
    """A required field is missing or carries an unknown value. Maps to 400."""


class UpstreamFailure(ProvenanceError):
    """The store, the ledger or the AI provider failed. Maps to 500."""
