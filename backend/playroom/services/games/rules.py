"""Board rules per game type.

Each supported game type has one rules object exposing the same small
capability set (normalize, is_legal, apply, check_terminal,
choose_opponent_move). Rules are stateless and every function is pure:
boards are immutable values and `apply` always returns a new one.

Only tic-tac-toe is playable. Chess and connect4 rooms can be created and
filled, but their rules reject every move until implemented.
"""
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple
import random

from .errors import IllegalMove, InvalidGameType


TIC_TAC_TOE = 'tic-tac-toe'
CHESS = 'chess'
CONNECT4 = 'connect4'
GAME_TYPES = (TIC_TAC_TOE, CHESS, CONNECT4)

NO_MOVE = -1

WIN_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # cols
    (0, 4, 8), (2, 4, 6),             # diags
)
CENTER = 4
CORNERS = (0, 2, 6, 8)
SIDES = (1, 3, 5, 7)
OPPOSITE_CORNER = {0: 8, 2: 6, 6: 2, 8: 0}


@dataclass(frozen=True)
class TicTacToeBoard:
    cells: Tuple[Optional[str], ...] = (None,) * 9

    def free_cells(self):
        return [i for i, cell in enumerate(self.cells) if cell is None]

    def to_json(self):
        return list(self.cells)


@dataclass(frozen=True)
class GridBoard:
    """Row-major grid for game types whose rules are not implemented yet."""
    rows: int
    cols: int
    cells: Tuple[Optional[str], ...]

    def to_json(self):
        return [list(self.cells[r * self.cols:(r + 1) * self.cols]) for r in range(self.rows)]


@dataclass(frozen=True)
class Terminal:
    kind: str  # 'none' | 'win' | 'draw'
    line: Optional[Tuple[int, int, int]] = None
    symbol: Optional[str] = None

    @property
    def is_over(self):
        return self.kind != 'none'


NOT_TERMINAL = Terminal('none')
DRAW = Terminal('draw')


def _normalize_row_col(move, rows: int, cols: int) -> int:
    if isinstance(move, bool):
        raise IllegalMove()
    if isinstance(move, int):
        return move
    row = col = None
    if isinstance(move, Mapping):
        row, col = move.get('row'), move.get('col')
    elif isinstance(move, Sequence) and not isinstance(move, str) and len(move) == 2:
        row, col = move
    if not isinstance(row, int) or not isinstance(col, int) or isinstance(row, bool) or isinstance(col, bool):
        raise IllegalMove()
    if not (0 <= row < rows and 0 <= col < cols):
        raise IllegalMove(f"Position ({row}, {col}) is off the board")
    return row * cols + col


def _pick(candidates, rng: Optional[random.Random]) -> Optional[int]:
    if not candidates:
        return None
    ordered = sorted(set(candidates))
    if rng is not None:
        return rng.choice(ordered)
    return ordered[0]


class TicTacToeRules:
    game_type = TIC_TAC_TOE
    symbols = ('X', 'O')
    supports_single_player = True

    def initial_board(self) -> TicTacToeBoard:
        return TicTacToeBoard()

    def load_board(self, data) -> TicTacToeBoard:
        if not data:
            return self.initial_board()
        return TicTacToeBoard(tuple(data))

    def normalize(self, move) -> int:
        return _normalize_row_col(move, 3, 3)

    def is_legal(self, board, position: int) -> bool:
        if not isinstance(board, TicTacToeBoard) or len(board.cells) != 9:
            return False
        if isinstance(position, bool) or not isinstance(position, int):
            return False
        if not 0 <= position < 9:
            return False
        return board.cells[position] is None

    def apply(self, board: TicTacToeBoard, position: int, symbol: str) -> TicTacToeBoard:
        if not self.is_legal(board, position):
            raise IllegalMove()
        cells = list(board.cells)
        cells[position] = symbol
        return TicTacToeBoard(tuple(cells))

    def check_terminal(self, board: TicTacToeBoard) -> Terminal:
        b = board.cells
        for line in WIN_LINES:
            a, m, c = line
            if b[a] is not None and b[a] == b[m] == b[c]:
                return Terminal('win', line, b[a])
        if all(cell is not None for cell in b):
            return DRAW
        return NOT_TERMINAL

    def _completing_cells(self, cells, symbol):
        found = []
        for line in WIN_LINES:
            values = [cells[i] for i in line]
            if values.count(symbol) == 2 and values.count(None) == 1:
                found.append(line[values.index(None)])
        return found

    def choose_opponent_move(self, board: TicTacToeBoard, opponent_symbol: str,
                             human_symbol: str, rng: Optional[random.Random] = None) -> int:
        """Pick the scripted opponent's reply.

        Priority: win, block, center, corner opposite a human corner, any
        corner, any side. Within a tier the lowest index wins unless a
        seeded `rng` is supplied, in which case it chooses among the tier.
        """
        cells = board.cells
        if not board.free_cells():
            return NO_MOVE
        tiers = (
            self._completing_cells(cells, opponent_symbol),
            self._completing_cells(cells, human_symbol),
            [CENTER] if cells[CENTER] is None else [],
            [OPPOSITE_CORNER[c] for c in CORNERS
             if cells[c] == human_symbol and cells[OPPOSITE_CORNER[c]] is None],
            [c for c in CORNERS if cells[c] is None],
            [s for s in SIDES if cells[s] is None],
        )
        for candidates in tiers:
            choice = _pick(candidates, rng)
            if choice is not None:
                return choice
        return NO_MOVE


class PendingRules:
    """Accepts rooms for a game type but rejects all of its moves."""
    supports_single_player = False

    def __init__(self, game_type: str, rows: int, cols: int, symbols: Tuple[str, str]):
        self.game_type = game_type
        self.rows = rows
        self.cols = cols
        self.symbols = symbols

    def initial_board(self) -> GridBoard:
        return GridBoard(self.rows, self.cols, (None,) * (self.rows * self.cols))

    def load_board(self, data) -> GridBoard:
        if not data:
            return self.initial_board()
        return GridBoard(self.rows, self.cols, tuple(cell for row in data for cell in row))

    def normalize(self, move) -> int:
        return _normalize_row_col(move, self.rows, self.cols)

    def is_legal(self, board, position: int) -> bool:
        return False

    def apply(self, board, position: int, symbol: str):
        raise IllegalMove(f"Moves for {self.game_type} are not supported yet")

    def check_terminal(self, board) -> Terminal:
        return NOT_TERMINAL

    def choose_opponent_move(self, board, opponent_symbol, human_symbol, rng=None) -> int:
        return NO_MOVE


_RULES = {
    TIC_TAC_TOE: TicTacToeRules(),
    CHESS: PendingRules(CHESS, 8, 8, ('white', 'black')),
    CONNECT4: PendingRules(CONNECT4, 6, 7, ('red', 'yellow')),
}


def rules_for(game_type: str):
    if not isinstance(game_type, str):
        raise InvalidGameType(f"Unknown game type: {game_type!r}")
    try:
        return _RULES[game_type]
    except KeyError:
        raise InvalidGameType(f"Unknown game type: {game_type!r}") from None
