"""
Controller metadata: store, definitions, validation specs.
"""

import pytest
from pydantic import BaseModel

from talon.controller.metadata import (
    CONTROLLER_PATH,
    ROUTE_OPTIONS,
    VALIDATION_SLOTS,
    MetadataStore,
    ParameterSlot,
    RouteDefinition,
    RouteDefinitions,
    ValidationSpec,
)


class ItemParams(BaseModel):
    id: int


class OtherParams(BaseModel):
    slug: str


class CreateItem(BaseModel):
    title: str


# ============================================================================
# MetadataStore
# ============================================================================

class TestMetadataStore:

    def test_set_and_get(self, store):
        class Target:
            pass

        store.set(Target, CONTROLLER_PATH, "/items")
        assert store.get(Target, CONTROLLER_PATH) == "/items"

    def test_missing_returns_default(self, store):
        class Target:
            pass

        assert store.get(Target, CONTROLLER_PATH) is None
        assert store.get(Target, CONTROLLER_PATH, default="x") == "x"

    def test_member_scoping(self, store):
        class Target:
            pass

        store.set(Target, ROUTE_OPTIONS, "class-level")
        store.set(Target, ROUTE_OPTIONS, "member-level", member="show")
        assert store.get(Target, ROUTE_OPTIONS) == "class-level"
        assert store.get(Target, ROUTE_OPTIONS, member="show") == "member-level"

    def test_targets_compare_by_identity(self, store):
        def a():
            pass

        def b():
            pass

        store.set(a, ROUTE_OPTIONS, 1)
        assert store.has(a, ROUTE_OPTIONS)
        assert not store.has(b, ROUTE_OPTIONS)
        assert a in store
        assert b not in store

    def test_last_write_wins(self, store):
        def f():
            pass

        store.set(f, ROUTE_OPTIONS, 1)
        store.set(f, ROUTE_OPTIONS, 2)
        assert store.get(f, ROUTE_OPTIONS) == 2
        assert store.keys(f) == [(None, ROUTE_OPTIONS)]


# ============================================================================
# ValidationSpec / RouteDefinition
# ============================================================================

class TestValidationSpec:

    def test_slots_follow_validation_order(self):
        spec = ValidationSpec(body=CreateItem, params=ItemParams)
        assert [slot for slot, _ in spec.slots()] == [ParameterSlot.PARAMS, ParameterSlot.BODY]

    def test_validation_slot_order(self):
        assert VALIDATION_SLOTS == (
            ParameterSlot.PARAMS,
            ParameterSlot.QUERY,
            ParameterSlot.BODY,
            ParameterSlot.HEADERS,
        )

    def test_specs_are_hashable(self):
        assert hash(ValidationSpec(body=CreateItem)) == hash(ValidationSpec(body=CreateItem))


class TestRouteDefinition:

    def test_defaults(self):
        route = RouteDefinition(method_name="show")
        assert route.method is None
        assert route.path is None
        assert route.authenticated is False
        assert route.validations == []
        assert route.permissions == []
        assert route.middlewares == []
        assert route.extra_data == {}
        assert route.parameter_indices == {}

    def test_first_spec_for_slot_wins(self):
        first = ValidationSpec(params=ItemParams)
        second = ValidationSpec(params=OtherParams, body=CreateItem)
        route = RouteDefinition(method_name="show", validations=[first, second])

        assert route.validation_for(ParameterSlot.PARAMS) == (ItemParams, first)
        assert route.validation_for(ParameterSlot.BODY) == (CreateItem, second)
        assert route.validation_for(ParameterSlot.QUERY) is None

    def test_definitions_find(self):
        show = RouteDefinition(method_name="show")
        definitions = RouteDefinitions(base_path="/items", routes=[show])
        assert definitions.find("show") is show
        assert definitions.find("missing") is None
