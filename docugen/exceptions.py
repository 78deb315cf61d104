"""
Error taxonomy shared by the adapters, the shell and the HTTP layer.

Configuration problems and rejected credentials raise; transient AI failures
do not (the generator returns tagged fallback content instead).
"""


class DocuGenError(Exception):
    """Base class for every error raised on purpose by this package."""


class AuthError(DocuGenError):
    """The identity provider rejected credentials or a token, or could not be reached."""


class StoreError(DocuGenError):
    """A read or write against the project/profile store failed."""


class GenerationError(DocuGenError):
    """The text-generation backend is not configured (missing API key)."""


class ExportError(DocuGenError):
    """Encoding a project into a document or slide deck failed."""


class EditorStateError(DocuGenError):
    """An operation was requested that the current view state does not allow."""


class SectionNotFoundError(DocuGenError):
    """The requested section does not exist in the active project."""
