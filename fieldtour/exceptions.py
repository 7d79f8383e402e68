"""
Error taxonomy for fieldtour.

Geometry and state-machine errors are raised synchronously. Routing failures
travel inside outcome objects (see ``models.routing``) and are only raised
when a caller explicitly asks for the value.
"""


class FieldTourError(Exception):
    """Base class for all fieldtour errors."""


class InvalidGeometry(FieldTourError, ValueError):
    """Malformed or insufficient point data."""


class RoutingUnavailable(FieldTourError):
    """Network failure, timeout or non-success answer from the routing service."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class OptimizationDegraded(UserWarning):
    """The delegated optimizer failed and the local heuristic was used instead."""


class PersistenceFailure(FieldTourError):
    """The storage collaborator could not apply a Tour/Stop mutation."""


class TourNotFound(FieldTourError):
    def __init__(self, tour_id):
        super().__init__(f"Tour {tour_id} not found")
        self.tour_id = tour_id


class StopNotFound(FieldTourError):
    def __init__(self, tour_id, site_id):
        super().__init__(f"Stop for site {site_id} not found in tour {tour_id}")
        self.tour_id = tour_id
        self.site_id = site_id


class InvalidStopTransition(FieldTourError):
    """A stop was asked to leave a terminal status."""


class InvalidReorder(FieldTourError, ValueError):
    """A reorder request referenced unknown or duplicated stops."""
