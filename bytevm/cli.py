from __future__ import annotations
import argparse, sys, json, logging
from .loader import load_code
from .decoder import walk
from .verifier import verify
from .errors import VMError, UnknownVariable, DanglingReference
from .vm import VM

def disasm(code: bytes) -> str:
    out = []
    for ins, depth in walk(code):
        row = [f"{ins.pos:04d}", "  " * depth + ins.op.name]
        row.extend(ins.operands())
        out.append(" ".join(row))
    return "\n".join(out)

def main(argv=None):
    ap = argparse.ArgumentParser(prog="bytevm")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run")
    r.add_argument("src")
    r.add_argument("--trace", action="store_true")
    r.add_argument("--verify", action="store_true")
    r.add_argument("--fuel", type=int, default=1_000_000)
    r.add_argument("--var", action="append", default=[], metavar="NAME")

    v = sub.add_parser("verify")
    v.add_argument("src")

    d = sub.add_parser("disasm")
    d.add_argument("src")

    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        code = load_code(args.src)
    except OSError as e:
        print(f"[error] {e}", file=sys.stderr); return 1

    try:
        if args.cmd == "run":
            if args.verify:
                verify(code, callback_count=0)
            vm = VM(code, trace=args.trace, fuel=args.fuel)
            trace = vm.execute()
            rc = 0
            print(json.dumps(list(vm.peek_all())))
            for name in args.var:
                try:
                    print(f"{name} = {vm.resolve(name)}")
                except (UnknownVariable, DanglingReference) as e:
                    print(f"{name}: {e}", file=sys.stderr); rc = 2
            if args.trace:
                print(json.dumps(trace, indent=2))
            return rc
        elif args.cmd == "verify":
            print(json.dumps(verify(code), indent=2))
        elif args.cmd == "disasm":
            print(disasm(code))
    except VMError as e:
        print(f"[error] {type(e).__name__}: {e}", file=sys.stderr); return 2
    return 0

if __name__ == "__main__":
    sys.exit(main())
