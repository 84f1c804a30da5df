class DispatchError(Exception):
    """Base class for dispatch simulation errors."""


class NoVehiclesAvailable(DispatchError):
    def __init__(self, incident_id: str | None = None):
        self.incident_id = incident_id
        message = "No ambulances available for dispatch."
        if incident_id:
            message = f"{message} Incident {incident_id} remains pending."
        super().__init__(message)


class AdvisoryUnavailable(DispatchError):
    """The advisory provider could not produce a usable decision."""


class RouteUnavailable(DispatchError):
    """The route provider could not produce a road path."""


class InvalidTransition(DispatchError, ValueError):
    pass


class UnknownEntity(DispatchError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown entity"
