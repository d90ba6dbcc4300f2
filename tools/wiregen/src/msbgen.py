#!/usr/bin/env python3
"""
msbgen: Generate a binary decision tree finding the MSB of a signed integer.

Usage: msbgen.py BITS [TABS]

The expression is written in terms of a free variable ``x``. For a signed
``x`` of BITS bits it evaluates to the index of the highest set bit, to -1
when ``x == 0`` and to BITS when ``x < 0``. TABS adds extra indentation to
every emitted line so the output can be pasted into nested code.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Union


class MsbGenError(ValueError):
    pass


@dataclass(frozen=True)
class Leaf:
    position: int  # -1 for the sign leaf
    level: int


@dataclass(frozen=True)
class Branch:
    middle: int
    low: "Node"
    high: "Node"
    level: int


Node = Union[Leaf, Branch]


def _build(lo: int, hi: int, level: int) -> Node:
    if lo == hi:
        return Leaf(lo - 1, level)
    middle = (lo + hi) // 2
    return Branch(middle, _build(lo, middle, level + 1), _build(middle + 1, hi, level + 1), level)


def build_tree(max_bits: int) -> Node:
    """Bisect the candidate range [0, max_bits]; range value v stands for MSB v - 1."""
    if max_bits < 0:
        raise MsbGenError(f"bit width must be >= 0, got {max_bits}")
    return _build(0, max_bits, 0)


def evaluate(node: Node, x: int, max_bits: int) -> int:
    while isinstance(node, Branch):
        node = node.low if x < 1 << node.middle else node.high
    if node.position < 0:
        return max_bits if x < 0 else -1
    return node.position


def leaves(node: Node) -> Iterator[Leaf]:
    if isinstance(node, Leaf):
        yield node
        return
    yield from leaves(node.low)
    yield from leaves(node.high)


def depth(node: Node) -> int:
    if isinstance(node, Leaf):
        return 0
    return 1 + max(depth(node.low), depth(node.high))


def _render(node: Node, max_bits: int, tabs: int, out: List[str]) -> None:
    indent = "\t" * (tabs + node.level)
    if isinstance(node, Leaf):
        if node.position < 0:
            out.append(f"{indent}x < 0 ? {max_bits} : -1 /* {node.level + 1} */")
        else:
            out.append(f"{indent}{node.position} /* {node.level} */")
        return
    out.append(f"{indent}( x < 1<<{node.middle} ?")
    _render(node.low, max_bits, tabs, out)
    out.append(f"{indent}:")
    _render(node.high, max_bits, tabs, out)
    out.append(f"{indent})")


def render(node: Node, max_bits: int, tabs: int = 0) -> str:
    if tabs < 0:
        raise MsbGenError(f"indentation must be >= 0, got {tabs}")
    out: List[str] = []
    _render(node, max_bits, tabs, out)
    return "".join(line + "\n" for line in out)


def generate(max_bits: int, tabs: int = 0) -> str:
    return render(build_tree(max_bits), max_bits, tabs)


def _non_negative_int(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value}")
    return value


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate an MSB decision tree for a signed integer.")
    parser.add_argument("bits", type=_non_negative_int, help="Bit width of the signed type.")
    parser.add_argument("tabs", type=_non_negative_int, nargs="?", default=0, help="Extra indentation (tabs).")
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        sys.stdout.write(generate(args.bits, args.tabs))
    except MsbGenError as e:
        print(f"msbgen.py: ERROR: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
