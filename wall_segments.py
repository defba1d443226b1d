"""墙段合并、拆分与深度排序。

读取 `generator.py` 修边后的网格，把每一行的右墙、每一列的下墙合并成
连续的墙段，再拆成单位长度的墙块，并按等轴测深度排好绘制顺序
（画家算法）。最后把结果压平成纯整数数组，交给外部渲染端使用。

本模块不做任何渲染。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

# 墙壁下标，顺序固定为 [上, 右, 下, 左]
TOP, RIGHT, BOTTOM, LEFT = 0, 1, 2, 3

LAYOUT_KEYS = ("size", "seed", "cell_walls", "polygon_data", "parametric_data", "cells")
ROLE_NAMES = ("none", "start", "finish")


class Orientation(IntEnum):
    ROW = 0     # 行墙段：某一行格子的右墙
    COLUMN = 1  # 列墙段：某一列格子的下墙


class WallSegment(NamedTuple):
    """一段连续的墙。

    行墙段的 index 为行号 + 1，start/length 以列为单位；
    列墙段的 index 为列号，start/length 以行为单位。
    length 为 1 的墙段即一个墙块（tile）。
    """
    orientation: Orientation
    index: int
    start: int
    length: int = 1


def find_runs(bits: Sequence[int]) -> List[Tuple[int, int]]:
    """找出连续的 1，返回 (起点, 长度) 列表。

    遇到 0 或到达数组末尾时结束当前连续段，例如
    ``[1, 1, 0, 1, 1, 1, 0]`` -> ``[(0, 2), (3, 3)]``。
    """
    padded = np.concatenate(([0], np.asarray(bits, dtype=np.int8), [0]))
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return [(int(s), int(e - s)) for s, e in zip(starts, ends)]


def consolidate_walls(wall_matrix: np.ndarray) -> List[WallSegment]:
    """合并墙段：先按行扫描右墙，再转置后按列扫描下墙。

    Args:
        wall_matrix: 形状 (size, size, 4) 的墙壁矩阵，索引 [col, row, side]

    Returns:
        所有行墙段在前、所有列墙段在后的墙段列表
    """
    size = wall_matrix.shape[0]
    segments: List[WallSegment] = []

    for row in range(size):
        for start, length in find_runs(wall_matrix[:, row, RIGHT]):
            segments.append(WallSegment(Orientation.ROW, row + 1, start, length))

    # 转置成 [row, col, side]，这样每一列就是一个连续的切片
    transposed = wall_matrix.transpose(1, 0, 2)
    for col in range(size):
        for start, length in find_runs(transposed[:, col, BOTTOM]):
            segments.append(WallSegment(Orientation.COLUMN, col, start, length))

    return segments


def split_segments(segments: Iterable[WallSegment]) -> List[WallSegment]:
    """把墙段拆成单位长度的墙块，保持原顺序，段内按 start 递增"""
    return [
        WallSegment(seg.orientation, seg.index, seg.start + offset, 1)
        for seg in segments
        for offset in range(seg.length)
    ]


def depth_key(tile: WallSegment) -> int:
    if tile.orientation == Orientation.ROW:
        return -tile.index + tile.start
    return tile.index - tile.start


def order_tiles(tiles: Sequence[WallSegment]) -> List[WallSegment]:
    """按深度键降序稳定排序（画家算法的绘制顺序）。

    键值相同的墙块保持输入顺序，所以对已排序的序列再排一次结果不变。
    """
    keys = np.array([depth_key(t) for t in tiles], dtype=np.int64)
    order = np.argsort(-keys, kind="stable")
    return [tiles[i] for i in order]


@dataclass
class MazeLayout:
    """交给渲染端的扁平数据"""
    size: int
    seed: Optional[int]
    cell_walls: np.ndarray       # 每个格子 4 位墙壁，行优先拼接
    polygon_data: np.ndarray     # [方向, index, start]，按深度排序后的墙块
    parametric_data: np.ndarray  # [方向, index, start, length]，拆分前的墙段
    cells: List[Tuple[int, int, str]]  # (col, row, role)

    @property
    def segment_count(self) -> int:
        return len(self.parametric_data) // 4

    @property
    def tile_count(self) -> int:
        return len(self.polygon_data) // 3

    def cell_wall_bits(self, col: int, row: int) -> List[int]:
        if not (0 <= col < self.size and 0 <= row < self.size):
            raise IndexError(f"格子 ({col},{row}) 超出尺寸 {self.size}")
        offset = (row * self.size + col) * 4
        return [int(b) for b in self.cell_walls[offset:offset + 4]]

    def segments(self) -> List[WallSegment]:
        quads = self.parametric_data.reshape(-1, 4)
        return [WallSegment(Orientation(int(o)), int(i), int(s), int(n)) for o, i, s, n in quads]

    def tiles(self) -> List[WallSegment]:
        triples = self.polygon_data.reshape(-1, 3)
        return [WallSegment(Orientation(int(o)), int(i), int(s)) for o, i, s in triples]

    def to_dict(self) -> Dict:
        return {
            "size": self.size,
            "seed": self.seed,
            "cell_walls": self.cell_walls.tolist(),
            "polygon_data": self.polygon_data.tolist(),
            "parametric_data": self.parametric_data.tolist(),
            "cells": [list(cell) for cell in self.cells],
        }


def _flatten(rows: List[Tuple[int, ...]]) -> np.ndarray:
    return np.array(rows, dtype=np.int32).reshape(-1)


def build_layout(grid, seed: Optional[int] = None) -> MazeLayout:
    """把修边后的网格转换成 MazeLayout"""
    segments = consolidate_walls(grid.wall_matrix())
    tiles = order_tiles(split_segments(segments))
    cells = list(grid.iter_cells())

    return MazeLayout(
        size=grid.size,
        seed=seed,
        cell_walls=_flatten([tuple(cell.walls) for cell in cells]),
        polygon_data=_flatten([(int(t.orientation), t.index, t.start) for t in tiles]),
        parametric_data=_flatten(
            [(int(s.orientation), s.index, s.start, s.length) for s in segments]
        ),
        cells=[(cell.col, cell.row, cell.role.value) for cell in cells],
    )


def export_layout(layout: MazeLayout, path: Path) -> None:
    """将布局导出为 JSON 文件（不换行）"""
    with open(path, "w", encoding="utf8") as f:
        json.dump(layout.to_dict(), f, separators=(",", ":"))


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_array(data: Dict, key: str) -> np.ndarray:
    values = data[key]
    if not isinstance(values, list) or not all(_is_int(v) for v in values):
        raise ValueError(f"{key} 必须是整数数组")
    return np.array(values, dtype=np.int64)


def _check_records(name: str, records: np.ndarray, size: int) -> None:
    """检查 [方向, index, start, length] 记录是否落在网格内"""
    for orientation, index, start, length in records:
        if orientation == Orientation.ROW:
            index_ok = 1 <= index <= size
        elif orientation == Orientation.COLUMN:
            index_ok = 0 <= index < size
        else:
            raise ValueError(f"{name} 中的方向标记 {orientation} 不是 0 或 1")
        if not index_ok:
            raise ValueError(f"{name} 中的 index {index} 超出尺寸 {size}")
        if start < 0 or length < 1 or start + length > size:
            raise ValueError(f"{name} 中的墙段 start={start}, length={length} 超出尺寸 {size}")


def load_layout(path: Path) -> MazeLayout:
    """读取 `export_layout` 写出的 JSON 文件，检查字段、长度和取值范围"""
    data = json.loads(Path(path).read_text(encoding="utf8"))
    if not isinstance(data, dict):
        raise ValueError("布局文件顶层必须是对象")

    missing = [key for key in LAYOUT_KEYS if key not in data]
    if missing:
        raise ValueError(f"布局文件缺少字段: {', '.join(missing)}")

    size = data["size"]
    if not _is_int(size) or size < 2:
        raise ValueError(f"size 必须是 >= 2 的整数，实际为 {size!r}")
    seed = data["seed"]
    if seed is not None and not _is_int(seed):
        raise ValueError(f"seed 必须是整数或 null，实际为 {seed!r}")

    cell_walls = _int_array(data, "cell_walls")
    polygon_data = _int_array(data, "polygon_data")
    parametric_data = _int_array(data, "parametric_data")

    if len(cell_walls) != size * size * 4:
        raise ValueError(f"cell_walls 长度 {len(cell_walls)} 与尺寸 {size} 不符")
    if not np.isin(cell_walls, (0, 1)).all():
        raise ValueError("cell_walls 只能包含 0 和 1")
    if len(polygon_data) % 3 or len(parametric_data) % 4:
        raise ValueError("polygon_data / parametric_data 长度不是 3 / 4 的倍数")

    _check_records("parametric_data", parametric_data.reshape(-1, 4), size)
    triples = polygon_data.reshape(-1, 3)
    _check_records("polygon_data", np.column_stack((triples, np.ones(len(triples), dtype=np.int64))), size)

    cells = data["cells"]
    if not isinstance(cells, list) or len(cells) != size * size:
        raise ValueError(f"cells 长度与尺寸 {size} 不符")
    parsed_cells = []
    for cell in cells:
        if not isinstance(cell, list) or len(cell) != 3:
            raise ValueError(f"cells 记录格式错误: {cell!r}")
        col, row, role = cell
        if not (_is_int(col) and _is_int(row)):
            raise ValueError(f"cells 坐标必须是整数: {cell!r}")
        if not (0 <= col < size and 0 <= row < size):
            raise ValueError(f"cells 坐标 ({col},{row}) 超出尺寸 {size}")
        if role not in ROLE_NAMES:
            raise ValueError(f"未知的格子角色: {role!r}")
        parsed_cells.append((col, row, role))

    return MazeLayout(
        size=size,
        seed=seed,
        cell_walls=cell_walls.astype(np.int32),
        polygon_data=polygon_data.astype(np.int32),
        parametric_data=parametric_data.astype(np.int32),
        cells=parsed_cells,
    )
