#!/usr/bin/env python3
"""Simple validator for the maze generator.

The script runs :func:`generator.generate_layout` with the provided
parameters (or loads a layout previously exported to JSON) and performs a
series of sanity checks on the result:

* The open-wall graph is a spanning tree (connected, ``size**2 - 1`` edges).
* Every pair of adjacent cells agrees on the wall between them.
* No perimeter-facing wall survives trimming.
* Exactly one start at ``(0, 0)`` and one finish at the opposite corner.
* Segments describe exactly the walls in ``cell_walls`` and tile into
  ``polygon_data`` in painter's order.
"""

from __future__ import annotations

import argparse
from collections import Counter
from pathlib import Path
from typing import List, Sequence, Set, Tuple

import generator
import wall_segments
from wall_segments import BOTTOM, LEFT, RIGHT, TOP, MazeLayout, Orientation


def open_edges(layout: MazeLayout) -> List[Tuple[Tuple[int, int], Tuple[int, int]]]:
    """Edges between horizontally/vertically adjacent cells with no wall."""
    edges = []
    for row in range(layout.size):
        for col in range(layout.size):
            walls = layout.cell_wall_bits(col, row)
            if col + 1 < layout.size and walls[RIGHT] == 0:
                edges.append(((col, row), (col + 1, row)))
            if row + 1 < layout.size and walls[BOTTOM] == 0:
                edges.append(((col, row), (col, row + 1)))
    return edges


def check_symmetry(layout: MazeLayout) -> None:
    for row in range(layout.size):
        for col in range(layout.size):
            walls = layout.cell_wall_bits(col, row)
            if col + 1 < layout.size:
                other = layout.cell_wall_bits(col + 1, row)
                assert walls[RIGHT] == other[LEFT], f"asymmetric wall at ({col},{row}) right"
            if row + 1 < layout.size:
                other = layout.cell_wall_bits(col, row + 1)
                assert walls[BOTTOM] == other[TOP], f"asymmetric wall at ({col},{row}) bottom"


def check_spanning_tree(layout: MazeLayout) -> None:
    edges = open_edges(layout)
    expected = layout.size * layout.size - 1
    assert len(edges) == expected, f"expected {expected} open edges, got {len(edges)}"

    adjacency = {}
    for a, b in edges:
        adjacency.setdefault(a, []).append(b)
        adjacency.setdefault(b, []).append(a)
    seen: Set[Tuple[int, int]] = {(0, 0)}
    stack = [(0, 0)]
    while stack:
        for nxt in adjacency.get(stack.pop(), []):
            if nxt not in seen:
                seen.add(nxt)
                stack.append(nxt)
    assert len(seen) == layout.size * layout.size, (
        f"maze is disconnected: reached {len(seen)} of {layout.size ** 2} cells"
    )


def check_boundary(layout: MazeLayout) -> None:
    last = layout.size - 1
    for row in range(layout.size):
        for col in range(layout.size):
            walls = layout.cell_wall_bits(col, row)
            assert not (row == 0 and walls[TOP]), f"top boundary wall at ({col},{row})"
            assert not (col == last and walls[RIGHT]), f"right boundary wall at ({col},{row})"
            assert not (row == last and walls[BOTTOM]), f"bottom boundary wall at ({col},{row})"
            assert not (col == 0 and walls[LEFT]), f"left boundary wall at ({col},{row})"


def check_roles(layout: MazeLayout) -> None:
    roles = Counter(role for _, _, role in layout.cells)
    assert roles["start"] == 1, f"expected 1 start, got {roles['start']}"
    assert roles["finish"] == 1, f"expected 1 finish, got {roles['finish']}"
    last = layout.size - 1
    for col, row, role in layout.cells:
        if role == "start":
            assert (col, row) == (0, 0), f"start at ({col},{row})"
        if role == "finish":
            assert (col, row) == (last, last), f"finish at ({col},{row})"


def check_segments(layout: MazeLayout) -> None:
    covered = set()
    for seg in layout.segments():
        assert seg.length >= 1, f"empty segment {seg}"
        for offset in range(seg.length):
            if seg.orientation == Orientation.ROW:
                cell, side = (seg.start + offset, seg.index - 1), RIGHT
            else:
                cell, side = (seg.index, seg.start + offset), BOTTOM
            assert layout.cell_wall_bits(*cell)[side] == 1, f"{seg} covers an open wall"
            covered.add((cell, side))

    walls = {
        ((col, row), side)
        for row in range(layout.size)
        for col in range(layout.size)
        for side in (RIGHT, BOTTOM)
        if layout.cell_wall_bits(col, row)[side]
    }
    assert covered == walls, "segments do not match cell walls"

    tiles = layout.tiles()
    expected = wall_segments.order_tiles(wall_segments.split_segments(layout.segments()))
    assert tiles == expected, "polygon_data is not the depth-ordered tiling of the segments"


def validate(layout: MazeLayout) -> None:
    check_symmetry(layout)
    check_spanning_tree(layout)
    check_boundary(layout)
    check_roles(layout)
    check_segments(layout)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate generated maze")
    parser.add_argument("size", type=int, nargs="?", default=None, help="Grid size (>= 2); optional with --layout")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--layout", type=Path, default=None, help="Validate an exported JSON layout instead")
    args = parser.parse_args(argv)
    if args.size is None and args.layout is None:
        parser.error("size is required unless --layout is given")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        if args.layout is not None:
            layout = wall_segments.load_layout(args.layout)
            if args.size is not None and layout.size != args.size:
                raise ValueError(f"布局尺寸 {layout.size} 与参数 {args.size} 不符")
        else:
            layout = generator.generate_layout(generator.MazeConfig(size=args.size, seed=args.seed))
    except (ValueError, OSError) as e:
        print(f"错误: {e}")
        return 1

    validate(layout)

    print("All checks passed. Generated", layout.segment_count, "segments,", layout.tile_count, "tiles.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
