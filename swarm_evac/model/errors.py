"""Exception types for the evacuation simulation."""


class SimulationError(Exception):
    """Base class for all simulation errors."""


class ConfigurationError(SimulationError, ValueError):
    """Raised when a scenario is configured inconsistently."""


class OutOfBoundsError(ConfigurationError):
    """Raised when a setup-time position lies outside the modeled room."""


class MalformedGeometryError(ConfigurationError):
    """Raised for degenerate wall segments."""


class DisconnectedRegionError(ConfigurationError):
    """Raised when walls cut a region of the room off from every exit."""


class FieldInvariantError(SimulationError, RuntimeError):
    """Raised when a computed graph distance is shorter than the straight line."""


class SchedulerError(SimulationError, RuntimeError):
    """Raised when the event scheduler contract is violated."""
