#!/usr/bin/env python3

import argparse
import csv
import random
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from wall_segments import BOTTOM, LEFT, RIGHT, TOP, MazeLayout, build_layout, export_layout

PRESET_CSV_PATH = Path("maze_presets.csv")
LAYOUT_PATH = Path("maze_layout.json")

# 随机数源：返回 [0, max_exclusive) 内的整数
RandomSource = Callable[[int], int]


class MazeConfigError(ValueError):
    """迷宫配置无效（例如尺寸小于 2）"""


def check_size(size: int) -> int:
    if size < 2:
        raise MazeConfigError(f"迷宫尺寸必须 >= 2，实际为 {size}")
    return size


@dataclass
class MazeConfig:
    """迷宫配置类，包含生成所需的参数"""
    size: int = 8                # 网格边长（正方形）
    seed: Optional[int] = None   # 随机种子，None 表示不固定
    name: str = "default"        # 预设名称

    def __post_init__(self):
        check_size(self.size)

    def rng(self) -> RandomSource:
        """返回按种子初始化的随机数源"""
        return random.Random(self.seed).randrange


class PresetManager:
    """从 CSV 读取固定尺寸的迷宫预设（Name,Size,Seed）"""

    def __init__(self, csv_path: Path = PRESET_CSV_PATH):
        self.csv_path = Path(csv_path)
        self.presets: List[MazeConfig] = []

    def load_from_csv(self) -> bool:
        if not self.csv_path.exists():
            print(f"错误: 找不到 {self.csv_path}")
            self.presets.clear()
            return False
        self.presets.clear()
        with self.csv_path.open("r", encoding="utf8", newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                preset = self._parse_csv_row(row)
                if preset is not None:
                    self.presets.append(preset)
        print(f"从CSV加载了 {len(self.presets)} 个迷宫预设")
        return True

    def _parse_csv_row(self, row: Dict[str, str]) -> Optional[MazeConfig]:
        name = (row.get("Name", "") or "").strip()
        if not name:
            return None
        seed_str = (row.get("Seed", "") or "").strip()
        try:
            size = int((row.get("Size", "") or "").strip())
            seed = int(seed_str) if seed_str else None
            return MazeConfig(size=size, seed=seed, name=name)
        except ValueError:
            # 包括 MazeConfigError
            return None

    def get(self, name: str) -> Optional[MazeConfig]:
        for preset in self.presets:
            if preset.name == name:
                return preset
        return None


class Role(Enum):
    NONE = "none"
    START = "start"
    FINISH = "finish"


@dataclass
class Cell:
    """网格中的单个格子"""
    col: int
    row: int
    visited: bool = False
    role: Role = Role.NONE
    walls: List[int] = field(default_factory=lambda: [1, 1, 1, 1])  # 1=有墙, 0=打通

    @property
    def coord(self):
        return (self.col, self.row)


class Grid:
    """size x size 的格子矩阵，按 grid[col][row] 索引"""

    def __init__(self, size: int):
        self.size = check_size(size)
        self.cells: List[List[Cell]] = [
            [Cell(col, row) for row in range(size)] for col in range(size)
        ]

    def __getitem__(self, col: int) -> List[Cell]:
        return self.cells[col]

    def __len__(self) -> int:
        return self.size

    def in_bounds(self, col: int, row: int) -> bool:
        return 0 <= col < self.size and 0 <= row < self.size

    def neighbours(self, cell: Cell) -> List[Cell]:
        """返回相邻格子，顺序为 左、右、上、下，越界的略过"""
        col, row = cell.col, cell.row
        result = []
        for ncol, nrow in ((col - 1, row), (col + 1, row), (col, row - 1), (col, row + 1)):
            if self.in_bounds(ncol, nrow):
                result.append(self.cells[ncol][nrow])
        return result

    def iter_cells(self) -> Iterator[Cell]:
        """按行优先顺序遍历（先行后列）"""
        for row in range(self.size):
            for col in range(self.size):
                yield self.cells[col][row]

    def wall_matrix(self) -> np.ndarray:
        """墙壁矩阵，形状 (size, size, 4)，索引 [col, row, side]"""
        return np.array(
            [[cell.walls for cell in column] for column in self.cells],
            dtype=np.uint8,
        )


# 相对位置 -> (当前格子要拆的墙, 邻居要拆的墙)
_WALL_PAIRS = {
    (0, -1): (TOP, BOTTOM),
    (1, 0): (RIGHT, LEFT),
    (0, 1): (BOTTOM, TOP),
    (-1, 0): (LEFT, RIGHT),
}


def remove_wall_between(current: Cell, neighbour: Cell) -> None:
    """成对拆除两个相邻格子之间的墙"""
    delta = (neighbour.col - current.col, neighbour.row - current.row)
    mine, theirs = _WALL_PAIRS[delta]
    current.walls[mine] = 0
    neighbour.walls[theirs] = 0


class MazeGenerator:
    """随机深度优先回溯（recursive backtracker）迷宫生成器。

    用显式栈代替递归，生成结果是一棵覆盖全部格子的生成树，
    即"完美迷宫"：任意两个格子之间恰好有一条通路。
    """

    def __init__(self, size: int, next_random: Optional[RandomSource] = None):
        self.size = check_size(size)
        self.next_random = next_random or random.Random().randrange
        self.grid = Grid(size)
        self.visited_count = 0

    def _random(self, max_exclusive: int) -> int:
        value = self.next_random(max_exclusive)
        if not 0 <= value < max_exclusive:
            raise ValueError(f"随机数源返回 {value}，超出范围 [0, {max_exclusive})")
        return value

    def _assign_role(self, cell: Cell) -> None:
        """起点/终点只看坐标，与访问顺序无关"""
        if cell.coord == (0, 0):
            cell.role = Role.START
        elif cell.coord == (self.size - 1, self.size - 1):
            cell.role = Role.FINISH

    def _visit(self, cell: Cell) -> None:
        # 访问标记先于坐标标签
        cell.visited = True
        self._assign_role(cell)
        self.visited_count += 1

    def unvisited_neighbours(self, cell: Cell) -> List[Cell]:
        return [n for n in self.grid.neighbours(cell) if not n.visited]

    def generate(self) -> Grid:
        """生成迷宫并返回网格。每个生成器实例只应调用一次。"""
        if self.visited_count:
            raise RuntimeError("生成器已经使用过，请创建新的实例")

        total = self.size * self.size
        col = self._random(self.size)
        row = self._random(self.size)
        current = self.grid[col][row]
        stack = [current]
        self._visit(current)

        while self.visited_count < total:
            candidates = self.unvisited_neighbours(current)
            if candidates:
                neighbour = candidates[self._random(len(candidates))]
                remove_wall_between(current, neighbour)
                self._visit(neighbour)
                stack.append(neighbour)
                current = neighbour
            else:
                assert stack, (
                    f"回溯栈为空，但只访问了 {self.visited_count}/{total} 个格子"
                )
                current = stack.pop()

        return self.grid


def trim_boundary(grid: Grid) -> Grid:
    """清除所有朝外的墙：外圈边界由渲染端单独处理"""
    last = grid.size - 1
    for cell in grid.iter_cells():
        if cell.row == 0:
            cell.walls[TOP] = 0
        if cell.col == last:
            cell.walls[RIGHT] = 0
        if cell.row == last:
            cell.walls[BOTTOM] = 0
        if cell.col == 0:
            cell.walls[LEFT] = 0
    return grid


def generate_layout(config: MazeConfig, next_random: Optional[RandomSource] = None) -> MazeLayout:
    """完整流程：生成 -> 修边 -> 合并墙段 -> 拆分 -> 排序 -> 序列化"""
    generator = MazeGenerator(config.size, next_random or config.rng())
    grid = trim_boundary(generator.generate())
    return build_layout(grid, seed=config.seed)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="生成等轴测完美迷宫的墙体数据")
    parser.add_argument("--size", type=int, default=MazeConfig.size, help="网格边长 (>= 2)")
    parser.add_argument("--seed", type=int, default=None, help="随机种子")
    parser.add_argument("--preset", default=None, help="使用预设名称（见 --presets）")
    parser.add_argument("--presets", type=Path, default=PRESET_CSV_PATH, help="预设 CSV 路径")
    parser.add_argument("--output", type=Path, default=LAYOUT_PATH, help="输出 JSON 路径")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        if args.preset:
            manager = PresetManager(args.presets)
            if not manager.load_from_csv():
                return 1
            config = manager.get(args.preset)
            if config is None:
                print(f"错误: 找不到预设 {args.preset}")
                return 1
        else:
            config = MazeConfig(size=args.size, seed=args.seed)

        print(f"=== 生成迷宫: {config.name}，尺寸 {config.size}x{config.size} ===")
        layout = generate_layout(config)
        export_layout(layout, args.output)
    except (ValueError, OSError) as e:
        print(f"错误: {e}")
        return 1

    print(f"墙段数量: {layout.segment_count}")
    print(f"墙块数量: {layout.tile_count}")
    print(f"迷宫布局已导出到 {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
