from __future__ import annotations
from typing import Optional

class VMError(Exception):
    """Base class for every failure that aborts a run.

    ``pos`` is the absolute offset of the failing instruction in the stream
    and ``opcode`` its name. Components below the dispatcher raise without
    them; the dispatcher fills them in on the way out.
    """
    def __init__(self, message: str, pos: Optional[int] = None, opcode: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.pos = pos
        self.opcode = opcode

    def attach(self, pos: int, opcode: Optional[str]) -> "VMError":
        if self.pos is None: self.pos = pos
        if self.opcode is None: self.opcode = opcode
        return self

    def __str__(self) -> str:
        where = []
        if self.opcode is not None: where.append(self.opcode)
        if self.pos is not None: where.append(f"@{self.pos}")
        return f"{self.message} [{' '.join(where)}]" if where else self.message

class StreamMalformed(VMError): pass
class StackUnderflow(VMError): pass
class ArithmeticFault(VMError): pass
class UnknownVariable(VMError): pass
class DanglingReference(VMError): pass
class UnknownCallback(VMError): pass
class CallbackFailed(VMError): pass
class FuelExhausted(VMError): pass
