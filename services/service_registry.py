"""
Service Registry with lazy loading
Factories are registered at startup and resolved on first use, with their
declared dependencies injected as keyword arguments
"""
from typing import Dict, Any, Callable, Optional, Set, List
import threading
import logging

logger = logging.getLogger(__name__)


class ServiceDescriptor:
    """Describes a service registration"""

    def __init__(self,
                 name: str,
                 factory: Callable,
                 dependencies: Optional[List[str]] = None):
        self.name = name
        self.factory = factory
        self.dependencies = dependencies or []
        self.instance = None
        self.lock = threading.Lock()


class ServiceRegistry:
    """
    Application service registry.

    Features:
    - Lazy instantiation through factories, one instance per application
    - Dependency injection by service name
    - Circular dependency detection
    """

    def __init__(self):
        self._descriptors: Dict[str, ServiceDescriptor] = {}
        self._resolving = threading.local()
        self._lock = threading.Lock()

    def register_singleton(self,
                           name: str,
                           factory: Callable,
                           dependencies: Optional[List[str]] = None) -> None:
        """
        Register a factory function for lazy service instantiation.

        Args:
            name: Service identifier
            factory: Callable returning the service; receives each dependency
                as a keyword argument named after it
            dependencies: Services this factory depends on
        """
        if factory is None:
            raise ValueError(f"A factory must be provided for '{name}'")
        with self._lock:
            self._descriptors[name] = ServiceDescriptor(name, factory, dependencies)

    def get(self, name: str) -> Any:
        """
        Get a service by name, creating it and its dependencies if needed.

        Raises:
            ValueError: If service is not registered
            RuntimeError: If circular dependency detected
        """
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ValueError(f"Service '{name}' is not registered")

        stack = self._stack()
        if name in stack:
            raise RuntimeError(f"Circular dependency detected: {' -> '.join(stack + [name])}")

        if descriptor.instance is None:
            with descriptor.lock:
                if descriptor.instance is None:
                    descriptor.instance = self._create_instance(descriptor)
        return descriptor.instance

    def _stack(self) -> List[str]:
        if not hasattr(self._resolving, 'stack'):
            self._resolving.stack = []
        return self._resolving.stack

    def _create_instance(self, descriptor: ServiceDescriptor) -> Any:
        stack = self._stack()
        stack.append(descriptor.name)
        try:
            dependencies = {dep: self.get(dep) for dep in descriptor.dependencies}
            instance = descriptor.factory(**dependencies)
            logger.debug(f"Created service instance: {descriptor.name}")
            return instance
        finally:
            stack.pop()

    def has(self, name: str) -> bool:
        """Check if a service is registered"""
        return name in self._descriptors

    def validate_dependencies(self) -> List[str]:
        """
        Validate all service dependencies are registered.

        Returns:
            List of validation errors (empty if valid)
        """
        return [
            f"Service '{name}' depends on unregistered service '{dep}'"
            for name, descriptor in self._descriptors.items()
            for dep in descriptor.dependencies
            if dep not in self._descriptors
        ]

    def get_initialization_order(self) -> List[str]:
        """
        Order services so each comes after its dependencies (topological sort).

        Raises:
            RuntimeError: If circular dependency exists
        """
        visited: Set[str] = set()
        order: List[str] = []

        def visit(name: str, path: List[str]):
            if name in path:
                raise RuntimeError(f"Circular dependency detected: {' -> '.join(path + [name])}")
            if name in visited:
                return
            descriptor = self._descriptors.get(name)
            for dep in descriptor.dependencies if descriptor else []:
                visit(dep, path + [name])
            visited.add(name)
            order.append(name)

        for name in self._descriptors:
            visit(name, [])
        return order
