from __future__ import annotations
from typing import List, Optional, Tuple
from .errors import StackUnderflow
from .opcodes import U32_MAX

class OperandStack:
    """Unsigned 32-bit value stack, touched only at the top by the engine."""

    def __init__(self):
        self._data: List[int] = []

    def push(self, value: int) -> None:
        if not 0 <= value <= U32_MAX:
            raise ValueError(f"{value} is outside the u32 domain")
        self._data.append(value)

    def pop(self) -> int:
        if not self._data:
            raise StackUnderflow("pop from empty stack")
        return self._data.pop()

    def pop2(self) -> Tuple[int, int]:
        """Pop the top two values, returned as (a, b) with b the former top."""
        if len(self._data) < 2:
            raise StackUnderflow(f"need 2 operands, stack has {len(self._data)}")
        b = self._data.pop(); a = self._data.pop()
        return a, b

    def get(self, index: int) -> Optional[int]:
        if 0 <= index < len(self._data):
            return self._data[index]
        return None

    def peek_all(self) -> Tuple[int, ...]:
        return tuple(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"OperandStack({self._data!r})"
