from jollybaba.config.pagination import normalize_pagination


def test_defaults_for_missing_or_garbage():
    assert normalize_pagination(None, None) == (1, 100, 0)
    assert normalize_pagination('abc', 'x') == (1, 100, 0)
    assert normalize_pagination('0', '0') == (1, 100, 0)


def test_bounds_and_offset():
    assert normalize_pagination('-3', '5') == (1, 10, 0)
    assert normalize_pagination('3', '500') == (3, 200, 400)
    assert normalize_pagination(' 2 ', '25') == (2, 25, 25)
