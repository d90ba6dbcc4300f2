#!/usr/bin/env python3
"""
readergen: Enumerate the wired bitstream index readers and emit their expansion commands.

Design goals:
- Deterministic output (stable ordering, collision-free class names)
- One preprocessor invocation per valid coding-scheme combination
- Never runs the preprocessor; it only describes what to run
- Python stdlib only

Each line of output expands the generic reader template into one specialised
source file, e.g.

    gcc -E -C -P -DSKIPS -Afrequencies=GAMMA ... -DCLASSNAME=SkipGamma... -c <template> > <output>
"""

from __future__ import annotations

import argparse
import enum
import json
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


DEFAULT_EXPANDER = "gcc"
EXPANDER_FLAGS = ("-E", "-C", "-P")

AXES = ("frequencies", "pointers", "counts", "positions")


class ReaderGenError(RuntimeError):
    pass


class CodingScheme(enum.Enum):
    NONE = "none"
    UNARY = "unary"
    GAMMA = "gamma"
    SHIFTED_GAMMA = "shifted_gamma"
    DELTA = "delta"
    GOLOMB = "golomb"
    SKEWED_GOLOMB = "skewed_golomb"
    INTERPOLATIVE = "interpolative"

    @property
    def canonical_name(self) -> str:
        return self.value

    @property
    def capitalized(self) -> str:
        # Only the first character changes: SHIFTED_GAMMA -> "Shifted_gamma".
        name = self.canonical_name
        return name[:1].upper() + name[1:]

    @classmethod
    def parse(cls, text: str) -> "CodingScheme":
        try:
            return cls[text.strip().upper()]
        except KeyError:
            raise ReaderGenError(f"Unknown coding scheme: {text!r}") from None


S = CodingScheme


@dataclass(frozen=True)
class Family:
    name: str
    suffix: str
    frequencies: Tuple[CodingScheme, ...]
    pointers: Tuple[CodingScheme, ...]
    counts: Tuple[CodingScheme, ...]
    positions: Tuple[CodingScheme, ...]
    skips: Tuple[bool, ...] = (False,)
    payloads: bool = False


STANDARD = Family(
    name="standard",
    suffix="BitStreamIndexReader",
    frequencies=(S.GAMMA, S.SHIFTED_GAMMA, S.DELTA),
    pointers=(S.GAMMA, S.SHIFTED_GAMMA, S.DELTA, S.GOLOMB),
    counts=(S.NONE, S.UNARY, S.GAMMA, S.SHIFTED_GAMMA, S.DELTA),
    positions=(
        S.NONE,
        S.GAMMA,
        S.SHIFTED_GAMMA,
        S.DELTA,
        S.GOLOMB,
        S.SKEWED_GOLOMB,
        S.INTERPOLATIVE,
    ),
    skips=(True, False),
    payloads=True,
)

# The high-performance readers have no skip axis: no "Skip" prefix, no SKIPS macro.
HIGH_PERFORMANCE = Family(
    name="high-performance",
    suffix="BitStreamHPIndexReader",
    frequencies=(S.GAMMA, S.SHIFTED_GAMMA, S.DELTA),
    pointers=(S.GAMMA, S.SHIFTED_GAMMA, S.DELTA, S.GOLOMB),
    counts=(S.UNARY, S.GAMMA, S.SHIFTED_GAMMA, S.DELTA),
    positions=(S.GAMMA, S.SHIFTED_GAMMA, S.DELTA),
)

FAMILIES: Dict[str, Family] = {f.name: f for f in (STANDARD, HIGH_PERFORMANCE)}


@dataclass(frozen=True)
class Macro:
    kind: str  # flag letter: "D" (define) or "A" (assertion)
    name: str
    value: Optional[str] = None

    def flag(self) -> str:
        if self.value is None:
            return f"-{self.kind}{self.name}"
        return f"-{self.kind}{self.name}={self.value}"


@dataclass(frozen=True)
class Variant:
    family: Family
    has_skips: bool
    frequencies: CodingScheme
    pointers: CodingScheme
    counts: CodingScheme = CodingScheme.NONE
    positions: CodingScheme = CodingScheme.NONE
    is_payload: bool = False

    @property
    def class_name(self) -> str:
        parts = ["Skip" if self.has_skips else "", self.frequencies.capitalized, self.pointers.capitalized]
        if self.is_payload:
            parts.append("Payload")
        else:
            parts.extend([self.counts.capitalized, self.positions.capitalized])
        parts.append(self.family.suffix)
        return "".join(parts)

    @property
    def macros(self) -> Tuple[Macro, ...]:
        out: List[Macro] = []
        if self.has_skips:
            out.append(Macro("D", "SKIPS"))
        for axis in AXES:
            out.append(Macro("A", axis, getattr(self, axis).name))
        out.append(Macro("D", "CLASSNAME", self.class_name))
        if self.is_payload:
            out.append(Macro("D", "PAYLOADS"))
        return tuple(out)


@dataclass(frozen=True)
class Layout:
    index_dir: str = "src/it/unimi/di/big/mg4j/index"
    wired_subdir: str = "wired"
    template_ext: str = ".c"
    output_ext: str = ".java"

    def template_path(self, family: Family) -> str:
        return f"{self.index_dir}/{family.suffix}{self.template_ext}"

    def generic_output_path(self, family: Family) -> str:
        return f"{self.index_dir}/{family.suffix}{self.output_ext}"

    def variant_output_path(self, class_name: str) -> str:
        return f"{self.index_dir}/{self.wired_subdir}/{class_name}{self.output_ext}"


@dataclass(frozen=True)
class ExpansionRequest:
    class_name: str
    template_path: str
    output_path: str
    macros: Tuple[Macro, ...] = field(default_factory=tuple)


def is_valid(counts: CodingScheme, positions: CodingScheme) -> bool:
    """Positions cannot be decoded without counts; counts alone are always fine."""
    return positions is CodingScheme.NONE or counts is not CodingScheme.NONE


def enumerate_variants(family: Family) -> List[Variant]:
    out: List[Variant] = []
    for skips in family.skips:
        for frequencies in family.frequencies:
            for pointers in family.pointers:
                for counts in family.counts:
                    for positions in family.positions:
                        if not is_valid(counts, positions):
                            continue
                        out.append(Variant(family, skips, frequencies, pointers, counts, positions))
                if family.payloads:
                    out.append(Variant(family, skips, frequencies, pointers, is_payload=True))
    return out


def _check_unique(names: Iterable[str], what: str) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ReaderGenError(f"Duplicate {what}: {name}")
        seen.add(name)


def enumerate_all(families: Sequence[Family]) -> List[Variant]:
    out: List[Variant] = []
    for family in families:
        out.extend(enumerate_variants(family))
    _check_unique((v.class_name for v in out), "class name")
    return out


def generic_request(family: Family, layout: Layout) -> ExpansionRequest:
    return ExpansionRequest(
        class_name=family.suffix,
        template_path=layout.template_path(family),
        output_path=layout.generic_output_path(family),
        macros=(Macro("D", "GENERIC"), Macro("D", "CLASSNAME", family.suffix)),
    )


def variant_request(variant: Variant, layout: Layout) -> ExpansionRequest:
    name = variant.class_name
    return ExpansionRequest(
        class_name=name,
        template_path=layout.template_path(variant.family),
        output_path=layout.variant_output_path(name),
        macros=variant.macros,
    )


def build_requests(families: Sequence[Family], layout: Optional[Layout] = None) -> List[ExpansionRequest]:
    layout = layout or Layout()
    variants = enumerate_all(families)

    requests: List[ExpansionRequest] = []
    for family in families:
        requests.append(generic_request(family, layout))
        requests.extend(variant_request(v, layout) for v in variants if v.family is family)

    _check_unique((r.output_path for r in requests), "output path")
    return requests


def render_request(request: ExpansionRequest, expander: str = DEFAULT_EXPANDER) -> str:
    tokens = [expander, *EXPANDER_FLAGS]
    tokens.extend(m.flag() for m in request.macros)
    tokens.extend(["-c", request.template_path, ">", request.output_path])
    return " ".join(tokens)


def render_requests(requests: Iterable[ExpansionRequest], expander: str = DEFAULT_EXPANDER) -> str:
    return "".join(render_request(r, expander) + "\n" for r in requests)


def render_class_list(requests: Iterable[ExpansionRequest]) -> str:
    return "".join(r.class_name + "\n" for r in requests)


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ReaderGenError(f"Missing axes file: {path}") from e
    except json.JSONDecodeError as e:
        raise ReaderGenError(f"Invalid JSON in axes file: {path}: {e}") from e


def _expect_type(value: Any, expected: type, *, where: str) -> None:
    if not isinstance(value, expected):
        raise ReaderGenError(f"{where}: expected {expected.__name__}, got {type(value).__name__}")


def apply_axes(families: Dict[str, Family], spec: Dict[str, Any], *, source: str = "<axes>") -> Dict[str, Family]:
    """
    Override axis value lists from a mapping such as

        {"families": {"high-performance": {"positions": ["GAMMA", "DELTA"]}}}

    Axes not mentioned keep their defaults. The skip axis is a list of booleans
    and is only accepted for families that already have one. Families without
    payload variants never accept NONE.
    """

    _expect_type(spec, dict, where=source)
    overrides = spec.get("families")
    _expect_type(overrides, dict, where=f"{source}: families")

    out = dict(families)
    for fam_name, axes in overrides.items():
        if fam_name not in out:
            raise ReaderGenError(f"{source}: unknown family {fam_name!r}")
        _expect_type(axes, dict, where=f"{source}: {fam_name}")
        family = out[fam_name]

        changes: Dict[str, Any] = {}
        for axis, values in axes.items():
            where = f"{source}: {fam_name}.{axis}"
            _expect_type(values, list, where=where)
            if not values:
                raise ReaderGenError(f"{where}: expected a non-empty list")
            if axis == "skips":
                if len(family.skips) < 2:
                    raise ReaderGenError(f"{where}: family has no skip axis")
                for v in values:
                    _expect_type(v, bool, where=where)
                changes[axis] = tuple(values)
            elif axis in AXES:
                schemes = tuple(CodingScheme.parse(str(v)) for v in values)
                if not family.payloads and CodingScheme.NONE in schemes:
                    raise ReaderGenError(f"{where}: NONE is not allowed in family {fam_name!r}")
                changes[axis] = schemes
            else:
                raise ReaderGenError(f"{where}: unknown axis")
        out[fam_name] = replace(family, **changes)
    return out


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="\n") as f:
        f.write(text)


def _summary(families: Sequence[Family], requests: Sequence[ExpansionRequest]) -> List[str]:
    lines = []
    for family in families:
        variants = enumerate_variants(family)
        payloads = sum(1 for v in variants if v.is_payload)
        lines.append(
            f"readergen: {family.name}: {len(variants) - payloads} variants, {payloads} payload variants, 1 generic"
        )
    lines.append(f"readergen: {len(requests)} expansion requests")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Emit preprocessor commands for the wired bitstream index readers.")
    parser.add_argument("--expander", default=DEFAULT_EXPANDER, help="Preprocessor program (default: gcc).")
    parser.add_argument("--index-dir", default=Layout.index_dir, help="Directory holding the reader templates.")
    parser.add_argument("--wired-subdir", default=Layout.wired_subdir, help="Subdirectory for specialised readers.")
    parser.add_argument(
        "--family",
        action="append",
        choices=sorted(FAMILIES),
        default=None,
        help="Reader family to emit (repeatable; defaults to all, standard first).",
    )
    parser.add_argument("--axes", default="", help="Optional JSON file overriding axis value lists.")
    parser.add_argument("--list-classes", action="store_true", help="Print class names instead of commands.")
    parser.add_argument("--out", default="", help="Write output to this file instead of stdout.")
    parser.add_argument("--verbose", action="store_true", help="Print a per-family summary to stderr.")
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        families = dict(FAMILIES)
        if args.axes:
            axes_path = Path(args.axes)
            families = apply_axes(families, _read_json(axes_path), source=axes_path.as_posix())

        # Keep the declared family order regardless of the order given on the command line.
        selected = [f for name, f in families.items() if not args.family or name in args.family]
        layout = Layout(index_dir=args.index_dir.rstrip("/"), wired_subdir=args.wired_subdir.strip("/"))
        requests = build_requests(selected, layout)
    except ReaderGenError as e:
        print(f"readergen.py: ERROR: {e}", file=sys.stderr)
        return 2

    text = render_class_list(requests) if args.list_classes else render_requests(requests, args.expander)
    if args.out:
        _write_text(Path(args.out), text)
    else:
        sys.stdout.write(text)

    if args.verbose:
        for line in _summary(selected, requests):
            print(line, file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
