from __future__ import annotations
from typing import Any, Dict, Optional
from .decoder import walk
from .errors import UnknownCallback
from .loader import CodeLike, as_code

def verify(code: CodeLike, callback_count: Optional[int] = None) -> Dict[str, Any]:
    """Check a stream's encoding without running it.

    Raises StreamMalformed on the first bad encoding, and UnknownCallback
    for a CALL id past ``callback_count`` when one is given. Returns a
    summary of what the stream contains.
    """
    code = as_code(code)
    instructions = 0
    max_depth = 0
    declared = []
    callback_ids = set()
    for ins, depth in walk(code):
        instructions += 1
        name = ins.op.name
        if name == "LOOPN":
            max_depth = max(max_depth, depth + 1)
        elif name == "VREFSTART":
            if ins.name not in declared: declared.append(ins.name)
        elif name == "CALL":
            if callback_count is not None and ins.arg >= callback_count:
                raise UnknownCallback(f"Callback id {ins.arg} out of range (table has {callback_count})", ins.pos, name)
            callback_ids.add(ins.arg)
    return {
        "bytes": len(code),
        "instructions": instructions,
        "max_loop_depth": max_depth,
        "declared": declared,
        "callback_ids": sorted(callback_ids),
    }
