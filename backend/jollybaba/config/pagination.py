DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 100
MIN_PER_PAGE = 10
MAX_PER_PAGE = 200


def _as_int(raw, default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value or default


def normalize_pagination(page_raw, per_page_raw):
    """Return (page, per_page, offset); unparsable values fall back to defaults."""
    page = max(1, _as_int(page_raw, DEFAULT_PAGE))
    per_page = max(MIN_PER_PAGE, min(_as_int(per_page_raw, DEFAULT_PER_PAGE), MAX_PER_PAGE))
    return page, per_page, (page - 1) * per_page
