"""Layered, type-indexed configuration store.

Stages of the request pipeline hand settings to each other through a
ConfigBag instead of through globals. A bag is a stack of layers:

- Frozen layers contributed by runtime plugins (read-only)
- One mutable "interceptor state" layer on top, written during a request

Values are stored under a key, which is the value's type unless the value
names a different key through a `storage_key` attribute. Loading a key
returns the value from the topmost layer that has one.
"""

from types import MappingProxyType
from typing import Any, Hashable, Iterator, Mapping, Optional, Type, TypeVar

T = TypeVar("T")


def storage_key(value: Any) -> Hashable:
    """Return the key `value` is stored under."""
    key = getattr(value, "storage_key", None)
    return key if key is not None else type(value)


class FrozenLayer:
    """An immutable snapshot of a Layer."""

    def __init__(self, name: str, values: Mapping[Hashable, Any]):
        self.name = name
        self._values = MappingProxyType(dict(values))

    def load(self, key: Hashable) -> Optional[Any]:
        return self._values.get(key)

    def keys(self) -> Iterator[Hashable]:
        return iter(self._values)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FrozenLayer({self.name!r}, {len(self)} entries)"


class Layer:
    """A named, mutable set of config values."""

    def __init__(self, name: str):
        self.name = name
        self._values: dict[Hashable, Any] = {}

    def store_put(self, value: Any) -> "Layer":
        """Store `value`, replacing any earlier value under the same key."""
        self._values[storage_key(value)] = value
        return self

    def unset(self, key: Hashable) -> "Layer":
        self._values.pop(key, None)
        return self

    def load(self, key: Hashable) -> Optional[Any]:
        return self._values.get(key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def freeze(self) -> FrozenLayer:
        return FrozenLayer(self.name, self._values)

    def __repr__(self) -> str:
        return f"Layer({self.name!r}, {len(self._values)} entries)"


class ConfigBag:
    """A stack of frozen layers with a mutable interceptor-state layer on top.

    Example:
        >>> bag = ConfigBag.of_layers(plugin_layer.freeze())
        >>> bag.interceptor_state().store_put(HeaderSerializationSettings())
        >>> bag.load(HeaderSerializationSettings)
    """

    def __init__(self, layers: Optional[list[FrozenLayer]] = None):
        self._frozen: list[FrozenLayer] = list(layers or [])
        self._state = Layer("interceptor_state")

    @classmethod
    def of_layers(cls, *layers: FrozenLayer) -> "ConfigBag":
        return cls(list(layers))

    @classmethod
    def base(cls) -> "ConfigBag":
        return cls()

    def push_layer(self, layer: FrozenLayer) -> "ConfigBag":
        """Add a frozen layer above the existing frozen layers."""
        self._frozen.append(layer)
        return self

    def interceptor_state(self) -> Layer:
        """The mutable layer that request stages write to."""
        return self._state

    def store_put(self, value: Any) -> "ConfigBag":
        self._state.store_put(value)
        return self

    def load_key(self, key: Hashable) -> Optional[Any]:
        """Return the most recently layered value for `key`, or None."""
        if key in self._state:
            return self._state.load(key)
        for layer in reversed(self._frozen):
            if key in layer:
                return layer.load(key)
        return None

    def load(self, cls: Type[T]) -> Optional[T]:
        """Return the most recently layered value of type `cls`, or None."""
        return self.load_key(cls)

    def freeze(self, name: str = "merged") -> FrozenLayer:
        """Flatten the whole stack into one frozen layer, latest write wins."""
        merged: dict[Hashable, Any] = {}
        for layer in self._frozen:
            for key in layer.keys():
                merged[key] = layer.load(key)
        merged.update(self._state._values)
        return FrozenLayer(name, merged)

    @property
    def layer_names(self) -> list[str]:
        return [layer.name for layer in self._frozen] + [self._state.name]
