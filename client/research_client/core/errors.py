"""Failure taxonomy for the research client."""

from __future__ import annotations


class ResearchClientError(Exception):
    """Base class for every failure raised by the client."""


class CredentialError(ResearchClientError):
    """A bearer credential could not be produced for the configured audience."""


class SubmissionError(ResearchClientError):
    """The backend refused or never answered a new research run request."""


class TransportError(ResearchClientError):
    """The live event subscription failed."""


class ExportError(ResearchClientError):
    """The rendering service did not return a document."""


class HistoryError(ResearchClientError):
    """Server-side run history or event retrieval failed."""


class PersistenceError(ResearchClientError):
    """Reading or writing the local run registry failed."""
