from __future__ import annotations


class MeshGraphError(Exception):
    """Base class for mesh-graph failures."""


class ClientConstructionError(MeshGraphError):
    """The metrics client could not be built. Fatal for the whole request."""


class QueryError(MeshGraphError):
    """A single metrics query failed."""

    def __init__(self, message: str, *, expression: str | None = None):
        super().__init__(message)
        self.expression = expression


class NamespaceEnrichmentError(MeshGraphError):
    """Enrichment of one namespace was aborted by a failing appender."""

    def __init__(self, namespace: str, appender: str, cause: BaseException):
        super().__init__(f"appender [{appender}] failed for namespace [{namespace}]: {cause}")
        self.namespace = namespace
        self.appender = appender
        self.cause = cause
