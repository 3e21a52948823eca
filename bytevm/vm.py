from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from .opcodes import OPS, U32_MAX
from .errors import VMError, ArithmeticFault, FuelExhausted
from .decoder import Instr, decode, find_loop_end
from .stack import OperandStack
from .vrefs import VarRefTable
from .callbacks import CallbackTable
from .loader import CodeLike, as_code

class VM:
    """Straight-line stack machine over a flat byte stream.

    ``execute()`` runs from offset 0 until STOP or end of stream. Any
    VMError aborts the run and leaves the machine halted; the stack and
    variable table stay readable afterwards.
    """

    def __init__(self, code: CodeLike, callbacks: Union[CallbackTable, Iterable[Callable[[], Any]]] = (),
                 *, trace: bool = False, fuel: Optional[int] = None):
        self.code = as_code(code)
        self.callbacks = callbacks if isinstance(callbacks, CallbackTable) else CallbackTable(callbacks)
        self.stack = OperandStack()
        self.vrefs = VarRefTable()
        self.ip = 0
        self.halted = False
        self.fuel = fuel
        self.steps = 0
        self.trace_enabled = trace
        self.trace_log: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(__name__)
        self._handlers = self._build_handlers()

    def _build_handlers(self) -> Dict[int, Callable[[Instr, int], Optional[int]]]:
        handlers = {}
        for op in OPS:
            if op.marker: continue
            fn = getattr(self, "_op_" + op.name.lower(), None)
            if fn is None:
                raise NotImplementedError(f"No handler for opcode {op.name}")
            handlers[op.code] = fn
        return handlers

    # ---------------------------
    # Running
    # ---------------------------
    def execute(self) -> Optional[List[dict]]:
        self.logger.info("run: %d bytes, %d callbacks", len(self.code), len(self.callbacks))
        while self.step():
            pass
        self.logger.info("halted at %d after %d instructions, stack depth %d", self.ip, self.steps, len(self.stack))
        return self.trace_log if self.trace_enabled else None

    def step(self) -> bool:
        """Execute one top-level instruction. False once the machine has halted."""
        if self.halted: return False
        if self.ip >= len(self.code):
            self.halted = True; return False
        try:
            self.ip = self._exec_at(self.ip, len(self.code))
        except VMError:
            self.halted = True
            raise
        if self.ip >= len(self.code): self.halted = True
        return not self.halted

    def _exec_at(self, pos: int, end: int) -> int:
        ins = decode(self.code, pos, end)
        self.steps += 1
        if self.fuel is not None and self.steps > self.fuel:
            raise FuelExhausted(f"Fuel exhausted after {self.fuel} instructions", pos, ins.op.name)
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("%d: %s %s", pos, ins.op.name, " ".join(ins.operands()))
        entry = None
        if self.trace_enabled:
            entry = {"ip": pos, "op": ins.op.name, "stack_before": list(self.stack.peek_all())}
            self.trace_log.append(entry)
        try:
            nxt = self._handlers[ins.op.code](ins, end)
        except VMError as e:
            raise e.attach(pos, ins.op.name)
        finally:
            if entry is not None:
                entry["stack_after"] = list(self.stack.peek_all())
        return ins.end if nxt is None else nxt

    def _run_window(self, start: int, stop: int) -> None:
        pos = start
        while pos < stop and not self.halted:
            pos = self._exec_at(pos, stop)

    # ---------------------------
    # Handlers: return the next offset, or None to fall through to ins.end
    # ---------------------------
    def _op_stop(self, ins: Instr, end: int):
        self.halted = True

    def _op_push(self, ins: Instr, end: int):
        self.stack.push(ins.arg)

    def _op_pop(self, ins: Instr, end: int):
        self.stack.pop()

    def _op_vrefstart(self, ins: Instr, end: int):
        self.vrefs.declare(ins.name, ins.arg)

    def _op_add(self, ins: Instr, end: int):
        a, b = self.stack.pop2()
        if a + b > U32_MAX: raise ArithmeticFault(f"ADD overflow: {a} + {b}")
        self.stack.push(a + b)

    def _op_sub(self, ins: Instr, end: int):
        a, b = self.stack.pop2()
        if b > a: raise ArithmeticFault(f"SUB underflow: {a} - {b}")
        self.stack.push(a - b)

    def _op_mul(self, ins: Instr, end: int):
        a, b = self.stack.pop2()
        if a * b > U32_MAX: raise ArithmeticFault(f"MUL overflow: {a} * {b}")
        self.stack.push(a * b)

    def _op_div(self, ins: Instr, end: int):
        a, b = self.stack.pop2()
        if b == 0: raise ArithmeticFault(f"Division by zero: {a} / 0")
        self.stack.push(a // b)

    def _op_call(self, ins: Instr, end: int):
        self.callbacks.invoke(ins.arg)

    def _op_loopn(self, ins: Instr, end: int):
        body = ins.end
        close = find_loop_end(self.code, body, end, ins.pos)
        self.logger.debug("loop @%d: %d x [%d, %d)", ins.pos, ins.arg, body, close)
        for _ in range(ins.arg):
            self._run_window(body, close)
            if self.halted: break
        return close + 1

    # ---------------------------
    # Introspection
    # ---------------------------
    def peek_all(self):
        return self.stack.peek_all()

    def resolve(self, name: str) -> int:
        return self.vrefs.resolve(name, self.stack)
