"""Tests for config_bag module."""

from dataclasses import dataclass

import pytest

from presigner.config_bag import ConfigBag, FrozenLayer, Layer, storage_key


@dataclass(frozen=True)
class Region:
    name: str


@dataclass(frozen=True)
class Keyed:
    target: str

    @property
    def storage_key(self):
        return ("keyed", self.target)


class TestStorageKey:
    """Tests for storage_key function."""

    def test_defaults_to_type(self):
        """Values without a storage_key are stored under their type."""
        assert storage_key(Region("us-east-1")) is Region

    def test_uses_named_key(self):
        """Values naming a storage_key are stored under it."""
        assert storage_key(Keyed("a")) == ("keyed", "a")


class TestLayer:
    """Tests for Layer."""

    def test_store_and_load(self):
        """Should load what was stored."""
        layer = Layer("test").store_put(Region("us-east-1"))
        assert layer.load(Region) == Region("us-east-1")

    def test_store_put_overwrites_by_type(self):
        """A second value of the same type replaces the first."""
        layer = Layer("test")
        layer.store_put(Region("us-east-1"))
        layer.store_put(Region("eu-west-1"))
        assert layer.load(Region) == Region("eu-west-1")

    def test_keyed_values_coexist(self):
        """Values with different keys do not overwrite each other."""
        layer = Layer("test").store_put(Keyed("a")).store_put(Keyed("b"))
        assert layer.load(("keyed", "a")) == Keyed("a")
        assert layer.load(("keyed", "b")) == Keyed("b")

    def test_unset(self):
        """unset should remove a value."""
        layer = Layer("test").store_put(Region("us-east-1"))
        layer.unset(Region)
        assert layer.load(Region) is None

    def test_load_missing_returns_none(self):
        """Loading an absent key returns None."""
        assert Layer("test").load(Region) is None


class TestFrozenLayer:
    """Tests for FrozenLayer."""

    def test_freeze_keeps_name_and_values(self):
        """Freezing should keep the name and values."""
        frozen = Layer("plugin").store_put(Region("us-east-1")).freeze()

        assert isinstance(frozen, FrozenLayer)
        assert frozen.name == "plugin"
        assert frozen.load(Region) == Region("us-east-1")
        assert len(frozen) == 1

    def test_frozen_layer_is_a_snapshot(self):
        """Later writes to the layer do not affect the frozen copy."""
        layer = Layer("plugin").store_put(Region("us-east-1"))
        frozen = layer.freeze()

        layer.store_put(Region("eu-west-1"))

        assert frozen.load(Region) == Region("us-east-1")

    def test_frozen_values_cannot_be_assigned(self):
        """The underlying mapping is read-only."""
        frozen = Layer("plugin").freeze()
        with pytest.raises(TypeError):
            frozen._values[Region] = Region("x")


class TestConfigBag:
    """Tests for ConfigBag."""

    def test_load_from_frozen_layer(self):
        """Values in frozen layers are visible."""
        bag = ConfigBag.of_layers(Layer("a").store_put(Region("us-east-1")).freeze())
        assert bag.load(Region) == Region("us-east-1")

    def test_latest_layer_wins(self):
        """The most recently pushed layer takes precedence."""
        bag = ConfigBag.of_layers(
            Layer("a").store_put(Region("us-east-1")).freeze(),
            Layer("b").store_put(Region("eu-west-1")).freeze(),
        )
        assert bag.load(Region) == Region("eu-west-1")

    def test_interceptor_state_wins_over_frozen_layers(self):
        """Writes during a request shadow plugin layers."""
        bag = ConfigBag.of_layers(Layer("a").store_put(Region("us-east-1")).freeze())

        bag.interceptor_state().store_put(Region("ap-south-1"))

        assert bag.load(Region) == Region("ap-south-1")

    def test_falls_through_to_lower_layers(self):
        """Keys absent from upper layers resolve from lower ones."""
        bag = ConfigBag.of_layers(
            Layer("a").store_put(Region("us-east-1")).freeze(),
            Layer("b").store_put(Keyed("x")).freeze(),
        )
        assert bag.load(Region) == Region("us-east-1")

    def test_store_put_writes_interceptor_state(self):
        """store_put on the bag writes to the interceptor-state layer."""
        bag = ConfigBag.base()
        bag.store_put(Region("us-east-1"))
        assert bag.interceptor_state().load(Region) == Region("us-east-1")

    def test_push_layer(self):
        """push_layer adds a layer above existing ones."""
        bag = ConfigBag.of_layers(Layer("a").store_put(Region("us-east-1")).freeze())
        bag.push_layer(Layer("b").store_put(Region("eu-west-1")).freeze())
        assert bag.load(Region) == Region("eu-west-1")
        assert bag.layer_names == ["a", "b", "interceptor_state"]

    def test_load_missing_returns_none(self):
        """Absent keys load as None."""
        assert ConfigBag.base().load(Region) is None

    def test_freeze_merges_latest_wins(self):
        """freeze flattens the stack with the latest write winning."""
        bag = ConfigBag.of_layers(
            Layer("a").store_put(Region("us-east-1")).store_put(Keyed("x")).freeze(),
        )
        bag.store_put(Region("eu-west-1"))

        merged = bag.freeze()

        assert merged.load(Region) == Region("eu-west-1")
        assert merged.load(("keyed", "x")) == Keyed("x")

    def test_bags_do_not_share_state(self):
        """Bags built from the same layers have independent state."""
        frozen = Layer("a").store_put(Region("us-east-1")).freeze()
        first = ConfigBag.of_layers(frozen)
        second = ConfigBag.of_layers(frozen)

        first.store_put(Region("eu-west-1"))

        assert second.load(Region) == Region("us-east-1")
