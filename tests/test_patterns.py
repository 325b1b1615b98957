import pytest

from livebingo.services.bingo.patterns import normalize_pattern, remaining, satisfies

X_PATTERN = {0, 4, 12, 20, 24}


def test_remaining_counts_unmarked_pattern_cells():
    assert remaining({12}, X_PATTERN) == 4
    assert remaining({12, 0, 4}, X_PATTERN) == 2
    assert remaining({1, 2, 3}, X_PATTERN) == 5


def test_remaining_is_monotonic_and_hits_zero_exactly_on_win():
    marked = {12}
    previous = remaining(marked, X_PATTERN)
    for cell in [3, 0, 7, 4, 20, 11, 24]:
        marked.add(cell)
        current = remaining(marked, X_PATTERN)
        assert current <= previous
        assert (current == 0) == satisfies(marked, X_PATTERN)
        previous = current
    assert satisfies(marked, X_PATTERN)


def test_satisfies_needs_every_cell():
    assert not satisfies({0, 4, 12, 20}, X_PATTERN)
    assert satisfies({0, 4, 12, 20, 24, 5}, X_PATTERN)


def test_empty_pattern_is_trivially_satisfied():
    assert satisfies(set(), set())
    assert remaining({12}, set()) == 0


def test_normalize_pattern_dedupes_and_sorts():
    assert normalize_pattern([24, 0, 0, 12]) == [0, 12, 24]


@pytest.mark.parametrize('bad', [[], None, [25], [-1], ['a']])
def test_normalize_pattern_rejects_unusable_input(bad):
    with pytest.raises(ValueError):
        normalize_pattern(bad)
