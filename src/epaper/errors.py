"""
E-Paper Errors Module

Exception hierarchy for the e-paper generator. Every failure inside a
generation run is raised as one of these and converted into a failed
GenerationResult at the EPaperGenerator boundary.
"""


class EPaperError(Exception):
    """Base class for all e-paper generation errors."""


class InvalidOptions(EPaperError):
    """Generation options are missing a required field or hold a malformed value."""


class TemplateNotFound(EPaperError):
    """The requested layout template id is not registered."""

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Layout template '{template_id}' not found")


class InvalidTemplate(EPaperError):
    """A layout template failed validation at registration time."""


class NoArticlesFound(EPaperError):
    """The article source returned an empty candidate pool."""

    def __init__(self, message: str = "No articles found matching the criteria"):
        super().__init__(message)


class SourceFetchFailure(EPaperError):
    """A content store query failed (HTTP error, connection error, bad configuration)."""


class RenderFailure(EPaperError):
    """Drawing a section or assembling the document failed."""


class PersistFailure(EPaperError):
    """Writing the rendered document to storage failed."""
