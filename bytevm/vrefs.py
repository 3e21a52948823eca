from __future__ import annotations
from typing import Dict, List
from .errors import UnknownVariable, DanglingReference
from .stack import OperandStack

class VarRefTable:
    """Names bound to fixed operand-stack indexes.

    Bindings are recorded by VREFSTART declarations and survive the run.
    The index is captured at declaration time, so the slot it names may have
    been popped by the time the name is resolved.
    """

    def __init__(self):
        self._refs: Dict[str, int] = {}

    def declare(self, name: str, index: int) -> None:
        self._refs[name] = index

    def index_of(self, name: str) -> int:
        if name not in self._refs:
            raise UnknownVariable(f"Unknown variable {name}")
        return self._refs[name]

    def resolve(self, name: str, stack: OperandStack) -> int:
        idx = self.index_of(name)
        val = stack.get(idx)
        if val is None:
            raise DanglingReference(f"Variable {name} points to empty slot {idx} (stack depth {len(stack)})")
        return val

    def names(self) -> List[str]:
        return list(self._refs)

    def __contains__(self, name) -> bool:
        return name in self._refs

    def __len__(self) -> int:
        return len(self._refs)
