from .cards import CELL_COUNT


def remaining(marked, pattern):
    """Count of pattern cells not yet marked."""
    return len(set(pattern) - set(marked))


def satisfies(marked, pattern):
    """True win predicate: every pattern cell is marked.

    An empty pattern is trivially satisfied, so rooms never accept one.
    """
    return set(pattern) <= set(marked)


def normalize_pattern(indices):
    """Deduplicated, sorted cell indices; raises ValueError when unusable."""
    cells = set()
    for idx in indices or []:
        if isinstance(idx, bool) or not isinstance(idx, int):
            raise ValueError('Pattern cells must be integers')
        if not 0 <= idx < CELL_COUNT:
            raise ValueError(f'Pattern cell {idx} is off the card')
        cells.add(idx)
    if not cells:
        raise ValueError('Pick at least one cell for the winning pattern')
    return sorted(cells)
