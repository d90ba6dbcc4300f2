import re
import sys
import unittest
from pathlib import Path
from subprocess import PIPE, run

import msbgen


_TOKEN = re.compile(r"<<|<|\(|\)|\?|:|x|-?\d+")
_COMMENT = re.compile(r"/\*.*?\*/")


def _eval_expr(text: str, x: int) -> int:
    """
    Minimal evaluator for the emitted conditional expression.
    Supports exactly the forms msbgen writes: ( x < 1<<m ? a : b ), x < 0 ? a : b, and integers.
    """

    tokens = _TOKEN.findall(_COMMENT.sub(" ", text))

    def expect(idx: int, tok: str) -> int:
        if tokens[idx] != tok:
            raise ValueError(f"expected {tok!r} at {idx}, got {tokens[idx]!r}")
        return idx + 1

    def parse(idx: int):
        tok = tokens[idx]
        if tok == "(":
            idx = expect(idx + 1, "x")
            idx = expect(idx, "<")
            idx = expect(idx, "1")
            idx = expect(idx, "<<")
            bound = 1 << int(tokens[idx])
            idx = expect(idx + 1, "?")
            then_val, idx = parse(idx)
            idx = expect(idx, ":")
            else_val, idx = parse(idx)
            idx = expect(idx, ")")
            return (then_val if x < bound else else_val), idx
        if tok == "x":
            idx = expect(idx + 1, "<")
            idx = expect(idx, "0")
            idx = expect(idx, "?")
            neg = int(tokens[idx])
            idx = expect(idx + 1, ":")
            zero = int(tokens[idx])
            return (neg if x < 0 else zero), idx + 1
        return int(tok), idx + 1

    value, next_idx = parse(0)
    if next_idx != len(tokens):
        raise ValueError("trailing tokens")
    return value


def _expected_msb(x: int, bits: int) -> int:
    if x < 0:
        return bits
    return x.bit_length() - 1


class TestDecisionTree(unittest.TestCase):
    def test_four_bit_tree_covers_every_value(self):
        tree = msbgen.build_tree(4)
        for x in range(-16, 16):
            self.assertEqual(msbgen.evaluate(tree, x, 4), _expected_msb(x, 4), msg=f"x={x}")

    def test_examples(self):
        tree = msbgen.build_tree(4)
        self.assertEqual(msbgen.evaluate(tree, 5, 4), 2)
        self.assertEqual(msbgen.evaluate(tree, 8, 4), 3)
        self.assertEqual(msbgen.evaluate(tree, 15, 4), 3)
        self.assertEqual(msbgen.evaluate(tree, 0, 4), -1)
        self.assertEqual(msbgen.evaluate(tree, -1, 4), 4)
        self.assertEqual(msbgen.evaluate(tree, -16, 4), 4)

    def test_wider_trees(self):
        for bits in (1, 2, 3, 5, 7, 8, 13, 16):
            tree = msbgen.build_tree(bits)
            for x in range(-(1 << bits), 1 << bits):
                self.assertEqual(msbgen.evaluate(tree, x, bits), _expected_msb(x, bits), msg=f"bits={bits} x={x}")

    def test_one_leaf_per_bit_plus_sign_leaf(self):
        for bits in (0, 1, 4, 31, 63):
            positions = [leaf.position for leaf in msbgen.leaves(msbgen.build_tree(bits))]
            self.assertEqual(positions, list(range(-1, bits)))

    def test_midpoint_split(self):
        tree = msbgen.build_tree(4)
        self.assertIsInstance(tree, msbgen.Branch)
        self.assertEqual(tree.middle, 2)
        self.assertEqual(tree.low.middle, 1)
        self.assertEqual(tree.low.low.middle, 0)
        self.assertEqual(tree.high.middle, 3)

    def test_depth_is_logarithmic(self):
        self.assertEqual(msbgen.depth(msbgen.build_tree(0)), 0)
        self.assertEqual(msbgen.depth(msbgen.build_tree(4)), 3)
        self.assertEqual(msbgen.depth(msbgen.build_tree(31)), 5)
        self.assertEqual(msbgen.depth(msbgen.build_tree(63)), 6)

    def test_negative_width_rejected(self):
        with self.assertRaises(msbgen.MsbGenError):
            msbgen.build_tree(-1)


class TestRendering(unittest.TestCase):
    def test_zero_width(self):
        self.assertEqual(msbgen.generate(0), "x < 0 ? 0 : -1 /* 1 */\n")

    def test_two_bit_text(self):
        expected = (
            "( x < 1<<1 ?\n"
            "\t( x < 1<<0 ?\n"
            "\t\tx < 0 ? 2 : -1 /* 3 */\n"
            "\t:\n"
            "\t\t0 /* 2 */\n"
            "\t)\n"
            ":\n"
            "\t1 /* 1 */\n"
            ")\n"
        )
        self.assertEqual(msbgen.generate(2), expected)

    def test_rendered_text_evaluates_correctly(self):
        text = msbgen.generate(4)
        for x in range(-16, 16):
            self.assertEqual(_eval_expr(text, x), _expected_msb(x, 4), msg=f"x={x}")

        text = msbgen.generate(9, 3)
        for x in range(-512, 512):
            self.assertEqual(_eval_expr(text, x), _expected_msb(x, 9), msg=f"x={x}")

    def test_indentation_offset(self):
        plain = msbgen.generate(6, 0).splitlines()
        shifted = msbgen.generate(6, 2).splitlines()
        self.assertEqual(len(plain), len(shifted))
        for a, b in zip(plain, shifted):
            self.assertEqual(b, "\t\t" + a)

    def test_idempotent(self):
        self.assertEqual(msbgen.generate(32, 1), msbgen.generate(32, 1))

    def test_negative_tabs_rejected(self):
        with self.assertRaises(msbgen.MsbGenError):
            msbgen.render(msbgen.build_tree(3), 3, -1)


class TestCommandLine(unittest.TestCase):
    script = Path(__file__).resolve().parents[1] / "src" / "msbgen.py"

    def _run(self, *args: str):
        return run([sys.executable, str(self.script), *args], stdout=PIPE, stderr=PIPE, encoding="utf-8")

    def test_prints_tree(self):
        proc = self._run("4", "1")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertEqual(proc.stdout, msbgen.generate(4, 1))
        self.assertTrue(proc.stdout.startswith("\t( x < 1<<2 ?\n"))

    def test_tabs_default_to_zero(self):
        proc = self._run("3")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertEqual(proc.stdout, msbgen.generate(3))

    def test_malformed_arguments(self):
        for args in (("abc",), ("-3",), ("4", "x"), ("4", "-1"), ()):
            proc = self._run(*args)
            self.assertEqual(proc.returncode, 2, msg=f"args={args}")
            self.assertEqual(proc.stdout, "")
            self.assertIn("usage", proc.stderr)


if __name__ == "__main__":
    unittest.main()
