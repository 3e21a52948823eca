"""
Tests for the static verifier and the bytevm command line
"""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr

from bytevm.opcodes import (STOP, PUSH, POP, VREFSTART, VREFNAMEEND, VREFEND,
                            ADD, DIV, LOOPN, LOOPEND, CALL)
from bytevm.verifier import verify
from bytevm.decoder import MAX_LOOP_DEPTH
from bytevm.vm import VM
from bytevm.cli import main, disasm
from bytevm.errors import StreamMalformed, UnknownCallback

DEMO = bytes([PUSH, 6, PUSH, 8, PUSH, 2, DIV, ADD,
              VREFSTART, *b"global", VREFNAMEEND, 0, VREFEND,
              PUSH, 15, ADD, LOOPN, 5, PUSH, 5, LOOPEND, STOP])


class TestVerifier(unittest.TestCase):

    def test_report(self):
        rep = verify(DEMO)
        self.assertEqual(rep["bytes"], len(DEMO))
        self.assertEqual(rep["instructions"], 12)
        self.assertEqual(rep["max_loop_depth"], 1)
        self.assertEqual(rep["declared"], ["global"])
        self.assertEqual(rep["callback_ids"], [])

    def test_nested_depth(self):
        rep = verify([LOOPN, 2, LOOPN, 2, LOOPN, 2, LOOPEND, LOOPEND, LOOPEND])
        self.assertEqual(rep["max_loop_depth"], 3)

    def test_callback_bounds(self):
        code = [CALL, 0, CALL, 3]
        self.assertEqual(verify(code)["callback_ids"], [0, 3])
        with self.assertRaises(UnknownCallback) as cm:
            verify(code, callback_count=2)
        self.assertEqual(cm.exception.pos, 2)

    def test_rejects_malformed(self):
        bad = [
            [PUSH],
            [0x20],
            [LOOPEND],
            [LOOPN, 1, PUSH, 1],
            [VREFSTART, ord("x"), VREFNAMEEND, 0],
            [VREFSTART, ord("_"), VREFNAMEEND, 0, VREFEND],
        ]
        for code in bad:
            with self.assertRaises(StreamMalformed, msg=code):
                verify(code)

    def test_ignores_bytes_after_stop(self):
        self.assertEqual(verify([PUSH, 1, STOP, 0xAB])["instructions"], 2)

    def test_stop_inside_loop_ends_walk(self):
        code = [LOOPN, 1, STOP, LOOPEND, 0xEE]
        VM(code).execute()
        self.assertEqual(verify(code)["instructions"], 3)
        nested = [LOOPN, 2, LOOPN, 3, STOP, LOOPEND, PUSH, 1, LOOPEND, 0xEE]
        VM(nested).execute()
        self.assertEqual(verify(nested)["instructions"], 6)

    def test_stop_in_skipped_loop_does_not_end_walk(self):
        # count 0: the STOP never runs, so the VM goes on to decode 0xEE
        code = [LOOPN, 2, LOOPN, 0, STOP, LOOPEND, LOOPEND, 0xEE]
        with self.assertRaises(StreamMalformed):
            VM(code).execute()
        with self.assertRaises(StreamMalformed):
            verify(code)

    def test_nesting_limit(self):
        code = [LOOPN, 1] * (MAX_LOOP_DEPTH + 1) + [LOOPEND] * (MAX_LOOP_DEPTH + 1)
        with self.assertRaises(StreamMalformed) as cm:
            verify(code)
        self.assertEqual(cm.exception.pos, 2 * MAX_LOOP_DEPTH)
        ok = [LOOPN, 1] * MAX_LOOP_DEPTH + [LOOPEND] * MAX_LOOP_DEPTH
        self.assertEqual(verify(ok)["max_loop_depth"], MAX_LOOP_DEPTH)

    def test_does_not_execute(self):
        # would underflow at run time but is well-formed
        self.assertEqual(verify([POP, ADD])["instructions"], 2)


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write(self, code, name="prog.bin"):
        path = os.path.join(self.tmp.name, name)
        with open(path, "wb") as f:
            f.write(bytes(code))
        return path

    def cli(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = main(list(argv))
        return rc, out.getvalue(), err.getvalue()

    def test_run(self):
        rc, out, err = self.cli("run", self.write(DEMO), "--var", "global")
        self.assertEqual(rc, 0)
        lines = out.splitlines()
        self.assertEqual(json.loads(lines[0]), [25, 5, 5, 5, 5, 5])
        self.assertEqual(lines[1], "global = 25")

    def test_run_unknown_var(self):
        rc, out, err = self.cli("run", self.write([PUSH, 1]), "--var", "nope")
        self.assertEqual(rc, 2)
        self.assertIn("nope", err)

    def test_run_trace(self):
        rc, out, err = self.cli("run", self.write([PUSH, 1, PUSH, 2, ADD]), "--trace")
        self.assertEqual(rc, 0)
        first, rest = out.split("\n", 1)
        self.assertEqual(json.loads(first), [3])
        trace = json.loads(rest)
        self.assertEqual([e["op"] for e in trace], ["PUSH", "PUSH", "ADD"])

    def test_run_failure(self):
        rc, out, err = self.cli("run", self.write([PUSH, 1, PUSH, 0, DIV]))
        self.assertEqual(rc, 2)
        self.assertIn("ArithmeticFault", err)
        self.assertIn("@4", err)

    def test_run_verify_rejects_calls(self):
        rc, out, err = self.cli("run", self.write([CALL, 0]), "--verify")
        self.assertEqual(rc, 2)
        self.assertIn("UnknownCallback", err)

    def test_run_fuel(self):
        rc, out, err = self.cli("run", self.write([LOOPN, 200, LOOPN, 200, PUSH, 1, POP, LOOPEND, LOOPEND]),
                                "--fuel", "1000")
        self.assertEqual(rc, 2)
        self.assertIn("FuelExhausted", err)

    def test_verify_command(self):
        rc, out, err = self.cli("verify", self.write(DEMO))
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(out)["declared"], ["global"])

    def test_disasm(self):
        code = [PUSH, 1, LOOPN, 2, PUSH, 3, LOOPEND, STOP]
        self.assertEqual(disasm(bytes(code)).splitlines(), [
            "0000 PUSH 1",
            "0002 LOOPN 2",
            "0004   PUSH 3",
            "0006 LOOPEND",
            "0007 STOP",
        ])
        rc, out, err = self.cli("disasm", self.write(code))
        self.assertEqual(rc, 0)
        self.assertIn("0004   PUSH 3", out)

    def test_disasm_vref(self):
        line = disasm(bytes([VREFSTART, *b"x1", VREFNAMEEND, 4, VREFEND]))
        self.assertEqual(line, "0000 VREFSTART x1 4")

    def test_missing_file(self):
        rc, out, err = self.cli("run", os.path.join(self.tmp.name, "absent.bin"))
        self.assertEqual(rc, 1)
        self.assertIn("[error]", err)


if __name__ == "__main__":
    unittest.main()
