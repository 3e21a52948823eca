from __future__ import annotations

class Opcode:
    __slots__ = ("name", "code", "width", "marker")
    def __init__(self, name: str, code: int, width: int = 0, marker: bool = False):
        self.name = name; self.code = code
        self.width = width; self.marker = marker
    def __repr__(self) -> str:
        return f"Opcode({self.name}={self.code})"

class OpTable:
    """Closed byte -> Opcode registry.

    ``width`` is the number of fixed operand bytes that follow the tag.
    ``marker`` opcodes only terminate a VREFSTART or LOOPN construct and are
    never valid where an instruction is expected.
    """
    def __init__(self):
        self.by_name = {}
        self.by_code = {}
    def add(self, name: str, code: int, width: int = 0, marker: bool = False):
        if name in self.by_name or code in self.by_code:
            raise ValueError("Duplicate opcode")
        if not 0 <= code <= 0xFF:
            raise ValueError(f"Opcode {name} does not fit in a byte")
        oc = Opcode(name, code, width, marker)
        self.by_name[name] = oc; self.by_code[code] = oc
        return oc
    def emit(self, name: str) -> int:
        return self.by_name[name].code
    def get(self, code: int):
        return self.by_code.get(code)
    def __getitem__(self, key):
        return self.by_name[key] if isinstance(key, str) else self.by_code[key]
    def __contains__(self, key):
        return key in (self.by_name if isinstance(key, str) else self.by_code)
    def __iter__(self):
        return iter(self.by_code.values())
    def __len__(self):
        return len(self.by_code)
    @property
    def names(self):
        return list(self.by_name.keys())

OPS = OpTable()

# Order is the wire format; codes must stay stable.
OPS.add("STOP", 0)
OPS.add("PUSH", 1, width=1)          # literal byte
OPS.add("POP", 2)
OPS.add("VREFSTART", 3)              # name bytes..., VREFNAMEEND, index, VREFEND
OPS.add("VREFNAMEEND", 4, marker=True)
OPS.add("VREFEND", 5, marker=True)
OPS.add("ADD", 6)
OPS.add("SUB", 7)
OPS.add("MUL", 8)
OPS.add("DIV", 9)
OPS.add("LOOPN", 10, width=1)        # repeat count, then body up to LOOPEND
OPS.add("LOOPEND", 11, marker=True)
OPS.add("CALL", 12, width=1)         # callback id

STOP = OPS.emit("STOP")
PUSH = OPS.emit("PUSH")
POP = OPS.emit("POP")
VREFSTART = OPS.emit("VREFSTART")
VREFNAMEEND = OPS.emit("VREFNAMEEND")
VREFEND = OPS.emit("VREFEND")
ADD = OPS.emit("ADD")
SUB = OPS.emit("SUB")
MUL = OPS.emit("MUL")
DIV = OPS.emit("DIV")
LOOPN = OPS.emit("LOOPN")
LOOPEND = OPS.emit("LOOPEND")
CALL = OPS.emit("CALL")

U32_MAX = 0xFFFFFFFF
