import random

GRID_SIZE = 5
CELL_COUNT = GRID_SIZE * GRID_SIZE
FREE_VALUE = 0
FREE_INDEX = 12
BALL_MIN = 1
BALL_MAX = 75

# B, I, N, G, O
COLUMN_RANGES = [(1, 15), (16, 30), (31, 45), (46, 60), (61, 75)]


def generate_card(rng=None):
    """Deal a 5x5 card.

    Column ``c`` holds five distinct numbers from its band, sorted top to
    bottom. The centre cell is the free space (``0``).
    """
    rng = rng or random
    card = [[FREE_VALUE] * GRID_SIZE for _ in range(GRID_SIZE)]
    for col, (low, high) in enumerate(COLUMN_RANGES):
        nums = sorted(rng.sample(range(low, high + 1), GRID_SIZE))
        for row in range(GRID_SIZE):
            card[row][col] = nums[row]
    card[2][2] = FREE_VALUE
    return card


def cell_position(cell_index):
    return divmod(cell_index, GRID_SIZE)


def cell_value(card, cell_index):
    row, col = cell_position(cell_index)
    return card[row][col]


def is_valid_card(card):
    if not isinstance(card, list) or len(card) != GRID_SIZE:
        return False
    if any(not isinstance(row, list) or len(row) != GRID_SIZE for row in card):
        return False
    for col, (low, high) in enumerate(COLUMN_RANGES):
        values = [card[row][col] for row in range(GRID_SIZE) if (row, col) != (2, 2)]
        if len(set(values)) != len(values):
            return False
        if any(not low <= v <= high for v in values):
            return False
    return card[2][2] == FREE_VALUE
