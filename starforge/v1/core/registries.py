from typing import Any, Generic, Protocol, TypeVar

from starforge.v1.core.exceptions import HandlerNotFoundError

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        if not name or not name.strip():
            raise ValueError(f"{self.name} registry names must be non-empty")
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise self._missing(name)
        return self._implementations[name]

    def _missing(self, name: str) -> KeyError:
        return KeyError(
            f"No {self.name.lower()} implementation registered with name: {name}"
        )

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that process queued work."""

    async def handle(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """
        Handle a background job.

        Args:
            payload: Job-specific parameters, opaque to the queue

        Returns:
            Optional result dictionary stored with the completed job.
            Raising (or returning an exception instance) fails the job.
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry mapping job types to their handlers.

    Built once at process startup and handed to the worker; there is no
    module-level instance.
    """

    def __init__(self):
        super().__init__("Job")

    def _missing(self, name: str) -> KeyError:
        return HandlerNotFoundError(name)
