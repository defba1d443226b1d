from pathlib import Path
import json
import sys

import numpy as np
import pytest

# Ensure the project root is on the Python path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from generator import MazeConfig, MazeGenerator, generate_layout, trim_boundary
from wall_segments import (
    BOTTOM,
    RIGHT,
    Orientation,
    WallSegment,
    build_layout,
    consolidate_walls,
    depth_key,
    export_layout,
    find_runs,
    load_layout,
    order_tiles,
    split_segments,
)

ROW, COLUMN = Orientation.ROW, Orientation.COLUMN


def test_find_runs_breaks_on_gap():
    assert find_runs([1, 1, 0, 1, 1, 1, 0]) == [(0, 2), (3, 3)]


def test_find_runs_closes_at_end_of_sequence():
    assert find_runs([0, 1, 1]) == [(1, 2)]
    assert find_runs([1]) == [(0, 1)]
    assert find_runs([0, 0, 0]) == []
    assert find_runs([]) == []


def test_consolidate_rows_and_columns():
    """行墙段取右墙（index = 行号 + 1），列墙段取下墙（index = 列号）。"""
    matrix = np.zeros((7, 7, 4), dtype=np.uint8)
    matrix[:, 0, RIGHT] = [1, 1, 0, 1, 1, 1, 0]
    matrix[2, :, BOTTOM] = [0, 1, 1, 1, 0, 0, 1]

    segments = consolidate_walls(matrix)

    assert segments == [
        WallSegment(ROW, 1, 0, 2),
        WallSegment(ROW, 1, 3, 3),
        WallSegment(COLUMN, 2, 1, 3),
        WallSegment(COLUMN, 2, 6, 1),
    ]


def test_consolidate_lists_rows_before_columns():
    matrix = np.zeros((3, 3, 4), dtype=np.uint8)
    matrix[0, 0, BOTTOM] = 1
    matrix[1, 2, RIGHT] = 1
    segments = consolidate_walls(matrix)
    assert [s.orientation for s in segments] == [ROW, COLUMN]
    assert segments[0] == WallSegment(ROW, 3, 1, 1)
    assert segments[1] == WallSegment(COLUMN, 0, 0, 1)


def test_split_segment_into_tiles():
    tiles = split_segments([WallSegment(COLUMN, 4, 3, 3)])
    assert tiles == [
        WallSegment(COLUMN, 4, 3, 1),
        WallSegment(COLUMN, 4, 4, 1),
        WallSegment(COLUMN, 4, 5, 1),
    ]


def test_split_passes_unit_segments_through():
    segment = WallSegment(ROW, 2, 5, 1)
    assert split_segments([segment]) == [segment]


def test_depth_key_sign_convention():
    assert depth_key(WallSegment(ROW, 3, 1)) == -2
    assert depth_key(WallSegment(COLUMN, 3, 1)) == 2


def test_order_tiles_descending_and_stable():
    tiles = [
        WallSegment(ROW, 1, 0),     # -1
        WallSegment(ROW, 1, 3),     # 2
        WallSegment(COLUMN, 2, 1),  # 1
        WallSegment(COLUMN, 0, 0),  # 0
        WallSegment(ROW, 2, 2),     # 0
    ]
    assert order_tiles(tiles) == [
        WallSegment(ROW, 1, 3),
        WallSegment(COLUMN, 2, 1),
        WallSegment(COLUMN, 0, 0),
        WallSegment(ROW, 2, 2),
        WallSegment(ROW, 1, 0),
    ]


def test_order_tiles_is_idempotent():
    layout = generate_layout(MazeConfig(size=10, seed=77))
    tiles = layout.tiles()
    assert order_tiles(tiles) == tiles
    assert order_tiles([]) == []


def test_build_layout_known_two_by_two():
    grid = trim_boundary(MazeGenerator(2, lambda n: 0).generate())
    layout = build_layout(grid, seed=None)

    assert layout.cell_walls.tolist() == [0, 0, 1, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0]
    assert layout.parametric_data.tolist() == [1, 0, 0, 1]
    assert layout.polygon_data.tolist() == [1, 0, 0]
    assert layout.cells == [(0, 0, "start"), (1, 0, "none"), (0, 1, "none"), (1, 1, "finish")]
    assert layout.segment_count == 1
    assert layout.tile_count == 1


def test_layout_arrays_consistent():
    layout = generate_layout(MazeConfig(size=8, seed=3))
    segments = layout.segments()
    assert sum(s.length for s in segments) == layout.tile_count
    # 完美迷宫修边后剩余 (size-1)^2 段单位墙
    assert layout.tile_count == 7 * 7
    assert layout.tiles() == order_tiles(split_segments(segments))


def test_export_and_load_layout(tmp_path):
    layout = generate_layout(MazeConfig(size=5, seed=11))
    path = tmp_path / "maze_layout.json"
    export_layout(layout, path)

    text = path.read_text(encoding="utf8")
    assert "\n" not in text
    assert json.loads(text)["seed"] == 11

    loaded = load_layout(path)
    assert loaded.size == 5
    assert loaded.cell_walls.tolist() == layout.cell_walls.tolist()
    assert loaded.polygon_data.tolist() == layout.polygon_data.tolist()
    assert loaded.parametric_data.tolist() == layout.parametric_data.tolist()
    assert loaded.cells == layout.cells


def test_load_layout_rejects_missing_keys(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"size": 2, "cell_walls": []}), encoding="utf8")
    with pytest.raises(ValueError, match="缺少字段"):
        load_layout(path)


def test_load_layout_rejects_wrong_lengths(tmp_path):
    data = generate_layout(MazeConfig(size=3, seed=0)).to_dict()
    data["cell_walls"] = data["cell_walls"][:-1]
    path = tmp_path / "short.json"
    path.write_text(json.dumps(data), encoding="utf8")
    with pytest.raises(ValueError, match="cell_walls"):
        load_layout(path)


def test_cell_wall_bits_rejects_out_of_range():
    layout = generate_layout(MazeConfig(size=3, seed=1))
    assert len(layout.cell_wall_bits(2, 2)) == 4
    with pytest.raises(IndexError):
        layout.cell_wall_bits(3, 0)
    with pytest.raises(IndexError):
        layout.cell_wall_bits(0, -1)


def _write(tmp_path, data):
    path = tmp_path / "layout.json"
    path.write_text(json.dumps(data), encoding="utf8")
    return path


@pytest.mark.parametrize(
    "key, position, value, message",
    [
        ("size", None, 1, "size"),
        ("size", None, "3", "size"),
        ("seed", None, 1.5, "seed"),
        ("cell_walls", 0, 0.5, "整数数组"),
        ("parametric_data", 0, 2, "方向标记"),
        ("parametric_data", 1, 99, "index"),
        ("parametric_data", 3, 9, "length"),
        ("polygon_data", 2, 3, "start"),
        ("cells", 0, [0, 0, "exit"], "角色"),
        ("cells", 0, [7, 0, "start"], "坐标"),
    ],
)
def test_load_layout_rejects_bad_values(tmp_path, key, position, value, message):
    data = generate_layout(MazeConfig(size=3, seed=0)).to_dict()
    if position is None:
        data[key] = value
    else:
        data[key][position] = value
    with pytest.raises(ValueError, match=message):
        load_layout(_write(tmp_path, data))


def test_load_layout_rejects_non_object(tmp_path):
    with pytest.raises(ValueError):
        load_layout(_write(tmp_path, [1, 2, 3]))
