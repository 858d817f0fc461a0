"""Exception hierarchy for the coding engine.

Clinical problems (ambiguous documentation, sequencing violations) are
reported as warning and error strings on the encode result, never raised.
Exceptions are reserved for failures the engine cannot reason around.
"""


class CodingEngineError(Exception):
    """Base class for coding engine failures."""


class CodeMetadataUnavailableError(CodingEngineError):
    """The code metadata dictionary could not be loaded.

    Raised from the metadata service and propagated untouched to the
    caller: the engine cannot guess Excludes1 or companion rules.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidFindingsError(CodingEngineError):
    """A finding bundle failed validation outside the HTTP layer."""

    def __init__(self, message: str, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
