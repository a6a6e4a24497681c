"""Exceptions raised by the query engine."""


class EngineError(Exception):
    """Base class for query engine failures."""


class ExpressionError(EngineError, ValueError):
    """An arithmetic expression could not be evaluated."""

    def __init__(self, expression: str, reason: str = "invalid expression"):
        self.expression = expression
        super().__init__(f"{reason}: {expression!r}")


class JoinDepthError(EngineError):
    """A joinTo chain is deeper than MAX_JOIN_DEPTH."""


class JoinCycleError(EngineError):
    """A joinTo chain refers back to a query already in the chain."""


class DocumentNotFoundError(EngineError, LookupError):
    """A referenced document is missing from the document store."""

    def __init__(self, namespace: str, document_id: str):
        self.namespace = namespace
        self.document_id = document_id
        super().__init__(f"{namespace}/{document_id} not found")
