"""
Error taxonomy for the print pipeline.

MalformedInput and MissingRequiredColumn are raised before any rendering
starts. AssetFetchFailure, RenderFailure and EmbedFailure abort an export
mid-sequence; there is no partial output.

Missing or orphan photos are NOT errors: they are reported in the
reconciliation summary.
"""


class BadgeFlowError(Exception):
    """Base class for pipeline errors."""


class MalformedInput(BadgeFlowError, ValueError):
    """Roster file is empty, undecodable or in an unsupported format."""


class MissingRequiredColumn(BadgeFlowError, ValueError):
    """No usable photo-filename column after all header heuristics."""

    def __init__(self, field: str, headers):
        self.field = field
        self.headers = list(headers)
        super().__init__(
            f"Roster is missing a {field!r} column. "
            f"Expected something like 'photo_filename'. Columns: {self.headers}"
        )


class AssetFetchFailure(BadgeFlowError, RuntimeError):
    """Storage could not list or return the requested object."""


class RenderFailure(BadgeFlowError, RuntimeError):
    """The render adapter could not rasterize a card."""


class EmbedFailure(BadgeFlowError, RuntimeError):
    """A rendered image could not be placed into a document."""
