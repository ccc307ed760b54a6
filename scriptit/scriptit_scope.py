"""
Runtime scope frames for ScriptIt.
"""
from typing import Any, Dict, List, Optional

from scriptit.scriptit_datatypes import (
    EvaluationError, FunctionDef, UndefinedForMutation, function_key
)


class Scope:
    """One frame of the scope chain.

    Lookups (`get`, `get_function`) walk every ancestor. Mutation (`set`)
    walks ancestors too, but stops at a frame whose `barrier` is set; a
    function call frame is created with the barrier on, so a function can
    read the caller's variables but only ever mutate its own locals.
    """

    def __init__(self, parent: Optional['Scope'] = None, barrier: bool = False):
        self.bindings: Dict[str, Any] = {}
        self.functions: Dict[str, FunctionDef] = {}
        self.parent = parent
        self.barrier = barrier

    def __repr__(self):
        names = ", ".join(self.bindings)
        return f"<Scope vars=[{names}] fns={len(self.functions)} barrier={self.barrier}>"

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    # --- variables ---

    def find_owner(self, name: str) -> Optional['Scope']:
        """Returns the nearest frame that binds `name`, ignoring barriers."""
        scope = self
        while scope is not None:
            if name in scope.bindings:
                return scope
            scope = scope.parent
        return None

    def get(self, name: str, default: Any = None) -> Any:
        owner = self.find_owner(name)
        if owner is not None:
            return owner.bindings[name]
        return default

    def define(self, name: str, value: Any):
        self.bindings[name] = value

    def _mutable_owner(self, name: str) -> Optional['Scope']:
        scope = self
        while scope is not None:
            if name in scope.bindings:
                return scope
            if scope.barrier:
                return None
            scope = scope.parent
        return None

    def can_set(self, name: str) -> bool:
        return self._mutable_owner(name) is not None

    def set(self, name: str, value: Any, line: int = -1):
        owner = self._mutable_owner(name)
        if owner is None:
            raise UndefinedForMutation(name, line)
        owner.bindings[name] = value

    def names(self) -> List[str]:
        """All visible variable names, nearest frame first."""
        seen: List[str] = []
        scope = self
        while scope is not None:
            for name in scope.bindings:
                if name not in seen:
                    seen.append(name)
            scope = scope.parent
        return seen

    # --- functions ---

    def define_function(self, fn: FunctionDef):
        self.functions[fn.key] = fn

    def declare_function(self, name: str, params: List[str], is_ref: Optional[List[bool]] = None):
        key = function_key(name, len(params))
        existing = self.functions.get(key)
        if existing is not None and existing.body is not None:
            raise EvaluationError(
                f"Function '{name}' with {len(params)} params is already defined (cannot re-declare)"
            )
        if existing is None:
            self.functions[key] = FunctionDef(name, list(params), list(is_ref or [False] * len(params)))

    def get_function(self, name: str, arity: int) -> Optional[FunctionDef]:
        key = function_key(name, arity)
        scope = self
        while scope is not None:
            fn = scope.functions.get(key)
            if fn is not None:
                return fn
            scope = scope.parent
        return None

    def has_function(self, name: str, arity: int) -> bool:
        return self.get_function(name, arity) is not None

    def clear(self):
        self.bindings.clear()
        self.functions.clear()
