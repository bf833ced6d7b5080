from __future__ import annotations


class PodcastError(Exception):
    """Base class for failures that abort a daily podcast run."""


class ConfigurationError(PodcastError):
    """A required credential, key or setting is missing or invalid."""


class OracleError(PodcastError):
    """An LLM call failed outright or returned no content."""


class OracleResponseError(OracleError):
    """The LLM answered, but the payload does not match the requested schema."""


class CurationError(PodcastError):
    pass


class ScriptGenerationError(PodcastError):
    pass


class SynthesisError(PodcastError):
    pass


class RunInProgressError(PodcastError):
    """Raised when a run is triggered while another one is still going."""
