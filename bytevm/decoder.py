from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from .opcodes import OPS, Opcode, LOOPN, LOOPEND, STOP, VREFSTART, VREFNAMEEND, VREFEND
from .errors import StreamMalformed

# LOOPN bodies run by recursion; nesting past this is rejected as malformed
MAX_LOOP_DEPTH = 64

@dataclass(frozen=True)
class Instr:
    op: Opcode
    pos: int
    size: int
    arg: Optional[int] = None      # literal, count, callback id or stack index
    name: Optional[str] = None     # VREFSTART only

    @property
    def end(self) -> int:
        return self.pos + self.size

    def operands(self) -> List[str]:
        if self.name is not None:
            return [self.name, str(self.arg)]
        return [] if self.arg is None else [str(self.arg)]

def _is_name_byte(b: int) -> bool:
    return b < 0x80 and chr(b).isalnum()

def decode(code: bytes, pos: int, end: Optional[int] = None) -> Instr:
    """Decode the instruction starting at ``pos``; nothing at or past ``end`` is read."""
    n = len(code) if end is None else end
    tag = code[pos]
    op = OPS.get(tag)
    if op is None:
        raise StreamMalformed(f"Unknown opcode byte {tag}", pos)
    if op.marker:
        raise StreamMalformed(f"Unexpected {op.name} where an instruction was expected", pos, op.name)
    if tag == VREFSTART:
        return _decode_vref(code, pos, n, op)
    if op.width and pos + op.width >= n:
        raise StreamMalformed(f"{op.name} missing operand at end of stream", pos, op.name)
    arg = code[pos + 1] if op.width else None
    return Instr(op, pos, 1 + op.width, arg)

def _decode_vref(code: bytes, pos: int, n: int, op: Opcode) -> Instr:
    i = pos + 1; chars = []
    while True:
        if i >= n:
            raise StreamMalformed("Unterminated variable name", pos, op.name)
        b = code[i]; i += 1
        if b == VREFNAMEEND: break
        if not _is_name_byte(b):
            raise StreamMalformed(f"Invalid variable name byte {b:#04x} at {i-1}", pos, op.name)
        chars.append(chr(b))
    if not chars:
        raise StreamMalformed("Empty variable name", pos, op.name)
    if i >= n:
        raise StreamMalformed(f"Variable {''.join(chars)} missing stack index", pos, op.name)
    idx = code[i]; i += 1
    if i >= n or code[i] != VREFEND:
        raise StreamMalformed(f"Variable {''.join(chars)} missing VREFEND", pos, op.name)
    i += 1
    return Instr(op, pos, i - pos, idx, "".join(chars))

def find_loop_end(code: bytes, start: int, end: Optional[int] = None, opener: Optional[int] = None) -> int:
    """Offset of the LOOPEND closing a body that begins at ``start``.

    Instructions are decoded while scanning, so an operand byte equal to the
    LOOPEND tag is skipped, and nested LOOPN/LOOPEND pairs are matched.
    """
    n = len(code) if end is None else end
    depth = 1; i = start
    while i < n:
        if code[i] == LOOPEND:
            depth -= 1
            if depth == 0: return i
            i += 1; continue
        ins = decode(code, i, n)
        if ins.op.code == LOOPN:
            depth += 1
            if depth > MAX_LOOP_DEPTH:
                raise StreamMalformed(f"Loops nested deeper than {MAX_LOOP_DEPTH}", i, "LOOPN")
        i = ins.end
    raise StreamMalformed("LOOPN without matching LOOPEND", opener, "LOOPN")

def walk(code: bytes) -> Iterator[Tuple[Instr, int]]:
    """Yield (instruction, loop depth) in stream order without executing.

    LOOPEND closing an open loop is yielded as an instruction of its own.
    The walk ends where execution would: right after a STOP at depth 0, or
    after the outermost LOOPEND around a STOP whose enclosing loops all have
    nonzero counts (the VM scans that far before running the body).
    """
    opens: List[Tuple[int, int]] = []
    halting = False
    i = 0
    while i < len(code):
        if code[i] == LOOPEND:
            if not opens:
                raise StreamMalformed("LOOPEND without LOOPN", i, "LOOPEND")
            opens.pop()
            yield Instr(OPS["LOOPEND"], i, 1), len(opens)
            if halting and not opens: return
            i += 1; continue
        ins = decode(code, i)
        yield ins, len(opens)
        if ins.op.code == LOOPN:
            opens.append((i, ins.arg))
            if len(opens) > MAX_LOOP_DEPTH:
                raise StreamMalformed(f"Loops nested deeper than {MAX_LOOP_DEPTH}", i, "LOOPN")
        elif ins.op.code == STOP:
            if not opens: return
            if all(count for _, count in opens): halting = True
        i = ins.end
    if opens:
        raise StreamMalformed("LOOPN without matching LOOPEND", opens[-1][0], "LOOPN")
