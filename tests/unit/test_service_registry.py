"""
Tests for the enhanced service registry
"""

import pytest
from unittest.mock import Mock
from services.service_registry_enhanced import ServiceRegistryEnhanced


class TestServiceRegistryEnhanced:

    @pytest.fixture
    def registry(self):
        return ServiceRegistryEnhanced()

    def test_singleton_factory_runs_once(self, registry):
        factory = Mock(side_effect=lambda: object())
        registry.register_singleton('thing', factory)

        assert registry.get('thing') is registry.get('thing')
        factory.assert_called_once()

    def test_transient_builds_each_time(self, registry):
        registry.register_transient('thing', lambda: object())
        assert registry.get('thing') is not registry.get('thing')

    def test_dependencies_are_passed_as_kwargs(self, registry):
        registry.register('db_session', service='session')
        registry.register_factory('repo', lambda db_session: ('repo', db_session), dependencies=['db_session'])

        assert registry.get('repo') == ('repo', 'session')

    def test_registering_instance_replaces_factory(self, registry):
        registry.register_singleton('client', lambda: 'real')
        registry.register('client', service='fake')
        assert registry.get('client') == 'fake'

    def test_register_requires_service_or_factory(self, registry):
        with pytest.raises(ValueError):
            registry.register('empty')

    def test_unknown_service(self, registry):
        with pytest.raises(ValueError):
            registry.get('missing')

    def test_circular_dependency_detected(self, registry):
        registry.register_factory('a', lambda b: b, dependencies=['b'])
        registry.register_factory('b', lambda a: a, dependencies=['a'])

        with pytest.raises(RuntimeError, match='Circular dependency'):
            registry.get('a')
        with pytest.raises(RuntimeError):
            registry.get_initialization_order()

    def test_validate_dependencies(self, registry):
        registry.register_factory('svc', lambda repo: repo, dependencies=['repo'])
        assert registry.validate_dependencies() == ["Service 'svc' depends on unregistered service 'repo'"]

    def test_initialization_order(self, registry):
        registry.register_factory('svc', lambda repo: repo, dependencies=['repo'])
        registry.register_factory('repo', lambda: 'r')
        order = registry.get_initialization_order()
        assert order.index('repo') < order.index('svc')

    def test_reset_service_rebuilds(self, registry):
        registry.register_singleton('thing', lambda: object())
        first = registry.get('thing')
        registry.reset_service('thing')
        assert registry.get('thing') is not first

    def test_application_registry_is_complete(self, app):
        services = app.services
        assert services.validate_dependencies() == []
        for name in ('invitation', 'lead_intake', 'conversation', 'inbound_message',
                     'outbound_message', 'user_management', 'conversation_bootstrap'):
            assert services.get(name) is not None
