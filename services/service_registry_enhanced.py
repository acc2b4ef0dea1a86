"""
Service registry with lazy construction

Repositories, external clients and services are registered under a name
with a factory and the names of the registrations the factory needs. Nothing
is built until the first get(); dependencies are resolved recursively and
passed to the factory as keyword arguments.
"""
from typing import Dict, Any, Callable, Optional, Set, List
from enum import Enum
import threading
import logging

logger = logging.getLogger(__name__)


class ServiceLifecycle(Enum):
    SINGLETON = "singleton"  # built once per registry
    TRANSIENT = "transient"  # built on every get()


class ServiceDescriptor:
    """One registration"""

    def __init__(self, name: str, factory: Optional[Callable] = None, instance: Optional[Any] = None,
                 lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
                 dependencies: Optional[List[str]] = None):
        self.name = name
        self.factory = factory
        self.instance = instance
        self.lifecycle = lifecycle
        self.dependencies = dependencies or []
        self.lock = threading.Lock()


class ServiceRegistryEnhanced:
    """
    Name -> service lookup used as app.services.

    Singletons are built under a per-registration lock. A registration that
    is reached again while its own factory is still running is reported as
    a circular dependency.
    """

    def __init__(self):
        self._descriptors: Dict[str, ServiceDescriptor] = {}
        self._building = threading.local()
        self._lock = threading.Lock()

    def register(self, name: str, service: Any = None, factory: Callable = None,
                 lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
                 dependencies: Optional[List[str]] = None) -> None:
        """
        Register a ready instance or a factory under a name.

        A later registration under the same name wins, which is how tests
        put fakes in place of the real clients.
        """
        if service is None and factory is None:
            raise ValueError(f"Either service instance or factory must be provided for '{name}'")

        with self._lock:
            self._descriptors[name] = ServiceDescriptor(
                name=name, factory=factory, instance=service,
                lifecycle=lifecycle, dependencies=dependencies
            )

    def register_factory(self, name: str, factory: Callable,
                         lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
                         dependencies: Optional[List[str]] = None) -> None:
        self.register(name=name, factory=factory, lifecycle=lifecycle, dependencies=dependencies)

    def register_singleton(self, name: str, factory: Callable, **kwargs) -> None:
        self.register_factory(name, factory, ServiceLifecycle.SINGLETON, **kwargs)

    def register_transient(self, name: str, factory: Callable, **kwargs) -> None:
        self.register_factory(name, factory, ServiceLifecycle.TRANSIENT, **kwargs)

    def get(self, name: str) -> Any:
        """
        Resolve a registration, building it and its dependencies on demand.

        Raises:
            ValueError: unknown name
            RuntimeError: circular dependency
        """
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ValueError(f"Service '{name}' is not registered")

        stack = self._stack()
        if name in stack:
            raise RuntimeError(f"Circular dependency detected: {' -> '.join(stack + [name])}")

        if descriptor.lifecycle == ServiceLifecycle.TRANSIENT:
            return self._build(descriptor)

        if descriptor.instance is None:
            with descriptor.lock:
                if descriptor.instance is None:
                    descriptor.instance = self._build(descriptor)
        return descriptor.instance

    def reset_service(self, name: str) -> None:
        """Drop a built singleton so the next get() runs its factory again."""
        descriptor = self._descriptors.get(name)
        if descriptor is not None and descriptor.factory is not None:
            with descriptor.lock:
                descriptor.instance = None

    def validate_dependencies(self) -> List[str]:
        """Messages for every dependency that names an unregistered service."""
        return [
            f"Service '{name}' depends on unregistered service '{dep}'"
            for name, descriptor in self._descriptors.items()
            for dep in descriptor.dependencies
            if dep not in self._descriptors
        ]

    def get_initialization_order(self) -> List[str]:
        """Registration names with every dependency ahead of its dependents."""
        visited: Set[str] = set()
        order: List[str] = []

        def visit(name: str, path: List[str]):
            if name in path:
                raise RuntimeError(f"Circular dependency detected: {' -> '.join(path + [name])}")
            if name in visited:
                return
            descriptor = self._descriptors.get(name)
            for dep in (descriptor.dependencies if descriptor else []):
                visit(dep, path + [name])
            visited.add(name)
            order.append(name)

        for name in self._descriptors:
            visit(name, [])
        return order

    def _stack(self) -> List[str]:
        if not hasattr(self._building, 'stack'):
            self._building.stack = []
        return self._building.stack

    def _build(self, descriptor: ServiceDescriptor) -> Any:
        if descriptor.factory is None:
            raise ValueError(f"No factory registered for '{descriptor.name}'")

        stack = self._stack()
        stack.append(descriptor.name)
        try:
            deps = {dep: self.get(dep) for dep in descriptor.dependencies}
            instance = descriptor.factory(**deps)
            logger.debug(f"Created service instance: {descriptor.name}")
            return instance
        finally:
            stack.pop()


def create_enhanced_registry() -> ServiceRegistryEnhanced:
    return ServiceRegistryEnhanced()
