from __future__ import annotations
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple
from .errors import UnknownCallback, CallbackFailed

Callback = Callable[[], object]

class CallbackTable:
    """Host actions addressed by position.

    The table is frozen at construction. A VM holds a reference to it and
    never copies or mutates it, so one table can back any number of VMs.
    """

    def __init__(self, callbacks: Iterable[Callback] = (), names: Optional[Iterable[str]] = None):
        self._fns: Tuple[Callback, ...] = tuple(callbacks)
        for i, fn in enumerate(self._fns):
            if not callable(fn):
                raise TypeError(f"callback {i} is not callable: {fn!r}")
        self._ids: Dict[str, int] = {}
        if names is not None:
            names = list(names)
            if len(names) != len(self._fns):
                raise ValueError(f"{len(names)} names for {len(self._fns)} callbacks")
            for i, name in enumerate(names):
                if name in self._ids:
                    raise ValueError(f"Duplicate callback name {name!r}")
                self._ids[name] = i

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Callback]) -> "CallbackTable":
        # insertion order fixes the ids
        return cls(mapping.values(), names=mapping.keys())

    def id_of(self, name: str) -> int:
        if name not in self._ids:
            raise UnknownCallback(f"No callback named {name!r}")
        return self._ids[name]

    def invoke(self, fid: int) -> None:
        if not 0 <= fid < len(self._fns):
            raise UnknownCallback(f"Callback id {fid} out of range (table has {len(self._fns)})")
        try:
            self._fns[fid]()
        except Exception as e:
            raise CallbackFailed(f"Callback {fid} raised {type(e).__name__}: {e}") from e

    def __len__(self) -> int:
        return len(self._fns)
