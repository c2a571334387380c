"""
Tests for ServiceCollection / ServiceScope.
"""

import pytest

from db.context import DataContext
from di.container import ServiceCollection, ServiceScope, DependencyResolutionError


class Clock:
    pass


class Greeter:
    def __init__(self, clock: Clock, greeting: str = "hello"):
        self.clock = clock
        self.greeting = greeting


class NeedsContext:
    def __init__(self, context: DataContext):
        self.context = context


class Untyped:
    def __init__(self, something):
        self.something = something


class Broken:
    def __init__(self):
        raise RuntimeError("cannot build")


class TestServiceCollection:

    def test_add_scoped_defaults_to_self(self):
        services = ServiceCollection().add_scoped(Clock)
        assert services.get_registration(Clock) is Clock
        assert Clock in services
        assert len(services) == 1
        assert services.service_types == [Clock]

    def test_override_replaces_registration(self):
        def factory(scope):
            return Clock()

        services = ServiceCollection().add_scoped(Clock).add_scoped(Clock, factory)
        assert services.get_registration(Clock) is factory
        assert len(services) == 1

    def test_missing_registration(self):
        with pytest.raises(DependencyResolutionError):
            ServiceCollection().get_registration(Clock)
        assert not ServiceCollection().is_registered(Clock)


class TestServiceScope:

    def test_constructor_injection(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(Clock).add_scoped(Greeter)
        scope = services.create_scope(data_context)

        greeter = scope.resolve(Greeter)
        assert isinstance(greeter.clock, Clock)
        assert greeter.greeting == "hello"
        assert greeter.clock is scope.resolve(Clock)

    def test_instances_are_scoped(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(Clock)
        first = services.create_scope(data_context)
        second = services.create_scope(data_context)

        assert first.resolve(Clock) is first.resolve(Clock)
        assert first.resolve(Clock) is not second.resolve(Clock)

    def test_context_is_always_resolvable(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(NeedsContext)
        scope = services.create_scope(data_context)

        assert isinstance(scope, ServiceScope)
        assert scope.context is data_context
        assert scope.resolve(DataContext) is data_context
        assert scope.resolve(NeedsContext).context is data_context

    def test_factory_receives_scope(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(NeedsContext, lambda scope: NeedsContext(scope.context))
        assert services.create_scope(data_context).resolve(NeedsContext).context is data_context

    def test_unregistered_dependency(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(Greeter)
        with pytest.raises(DependencyResolutionError, match="Clock"):
            services.create_scope(data_context).resolve(Greeter)

    def test_missing_type_hint(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(Untyped)
        with pytest.raises(DependencyResolutionError, match="something"):
            services.create_scope(data_context).resolve(Untyped)

    def test_creation_failure_is_wrapped(self, data_context: DataContext):
        services = ServiceCollection().add_scoped(Broken)
        with pytest.raises(DependencyResolutionError) as exc_info:
            services.create_scope(data_context).resolve(Broken)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
