"""ScriptRust environments: lexically scoped name bindings."""

from __future__ import annotations

from dataclasses import dataclass

from .ast import Pos
from .errors import ScriptRuntimeError
from .values import Value


@dataclass
class Binding:
    value: Value
    moved: bool = False


class Environment:
    """One scope. The parent link is used for lookup only."""

    def __init__(self, parent: Environment | None = None) -> None:
        self.parent = parent
        self._vars: dict[str, Binding] = {}

    def child(self) -> Environment:
        return Environment(self)

    def define(self, name: str, value: Value) -> None:
        """Bind name in this scope, shadowing any outer binding."""
        self._vars[name] = Binding(value)

    def has_local(self, name: str) -> bool:
        return name in self._vars

    def find(self, name: str) -> Binding | None:
        env: Environment | None = self
        while env is not None:
            binding = env._vars.get(name)
            if binding is not None:
                return binding
            env = env.parent
        return None

    def lookup(self, name: str, pos: Pos | None = None) -> Binding:
        binding = self.find(name)
        if binding is None:
            raise ScriptRuntimeError(f"unknown identifier '{name}'", pos)
        return binding

    def get(self, name: str, pos: Pos | None = None) -> Value:
        return self.lookup(name, pos).value

    def assign(self, name: str, value: Value, pos: Pos | None = None) -> None:
        """Rebind the nearest existing binding of name."""
        binding = self.lookup(name, pos)
        binding.value = value
        binding.moved = False

    def mark_moved(self, name: str) -> None:
        binding = self.find(name)
        if binding is not None:
            binding.moved = True

    def is_moved(self, name: str) -> bool:
        binding = self.find(name)
        return binding is not None and binding.moved
