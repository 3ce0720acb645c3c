"""
Error taxonomy for the answer pipeline.

Per-item failures (one search term, one image) never surface as these; they
are logged and the item is dropped. Everything here aborts a run.
"""


class PipelineError(Exception):
    """Base class for terminal pipeline failures."""


class ValidationError(PipelineError):
    """The request cannot start: missing question or missing credential."""


class ModelCallError(PipelineError):
    """Language model call failed on every configured path."""


class CredentialRequiredError(ModelCallError):
    """The direct model path was needed but no API key was supplied."""


class EmptyResultError(PipelineError):
    """No usable images survived search and admission."""
