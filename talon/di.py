"""
Minimal dependency injection container.

The application only needs "resolve instance by token" to obtain
controller instances; any object with a ``resolve`` method satisfies
``Resolver``.
"""

from typing import Any, Callable, Dict, Optional, Protocol, Type, Union, runtime_checkable

from .faults import DependencyFault


Token = Union[Type[Any], str]


@runtime_checkable
class Resolver(Protocol):
    def resolve(self, token: Token) -> Any:
        ...


class _Provider:
    __slots__ = ("factory", "singleton", "instance", "resolved")

    def __init__(self, factory: Callable[["Container"], Any], singleton: bool):
        self.factory = factory
        self.singleton = singleton
        self.instance: Any = None
        self.resolved = False


class Container:
    """
    Token -> provider registry.

    Example:
        container = Container()
        container.register_instance(ItemRepo, ItemRepo())
        container.register_factory(ItemsController, lambda c: ItemsController(c.resolve(ItemRepo)))
        controller = container.resolve(ItemsController)
    """

    def __init__(self):
        self._providers: Dict[str, _Provider] = {}

    @staticmethod
    def _token_to_key(token: Token, tag: Optional[str] = None) -> str:
        if isinstance(token, str):
            key = token
        elif isinstance(token, type):
            key = f"{token.__module__}.{token.__qualname__}"
        else:
            key = str(token)
        return f"{key}#{tag}" if tag else key

    def register(self, token: Token, instance_or_factory: Any, singleton: bool = True) -> None:
        """
        Register ``token``.

        A class is instantiated with no arguments, any other callable is
        called with the container, everything else is used as-is.
        """
        if isinstance(instance_or_factory, type):
            self.bind(token, instance_or_factory, singleton=singleton)  # type: ignore[arg-type]
        elif callable(instance_or_factory):
            self.register_factory(token, instance_or_factory, singleton=singleton)
        else:
            self.register_instance(token, instance_or_factory)

    def register_instance(self, token: Token, instance: Any, tag: Optional[str] = None) -> None:
        provider = _Provider(lambda _: instance, singleton=True)
        provider.instance = instance
        provider.resolved = True
        self._providers[self._token_to_key(token, tag)] = provider

    def register_factory(
        self,
        token: Token,
        factory: Callable[["Container"], Any],
        singleton: bool = True,
        tag: Optional[str] = None,
    ) -> None:
        self._providers[self._token_to_key(token, tag)] = _Provider(factory, singleton)

    def bind(self, interface: Type[Any], implementation: Type[Any], singleton: bool = True) -> None:
        """Resolve ``interface`` by instantiating ``implementation`` with no arguments."""
        self.register_factory(interface, lambda _: implementation(), singleton=singleton)

    def is_registered(self, token: Token, tag: Optional[str] = None) -> bool:
        return self._token_to_key(token, tag) in self._providers

    def resolve(self, token: Token, *, tag: Optional[str] = None, optional: bool = False) -> Any:
        """
        Resolve ``token``.

        Raises:
            DependencyFault: Nothing registered and ``optional`` is False
        """
        provider = self._providers.get(self._token_to_key(token, tag))
        if provider is None:
            if optional:
                return None
            raise DependencyFault(token)

        if provider.singleton and provider.resolved:
            return provider.instance
        instance = provider.factory(self)
        if provider.singleton:
            provider.instance = instance
            provider.resolved = True
        return instance
