from __future__ import annotations
from typing import Any, Dict, Iterable, List, Sequence
import csv
import io


def _cell(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def rows_to_csv(rows: Iterable[Dict[str, Any]], headers: Sequence[str]) -> str:
    """Render rows as CSV; only fields containing a quote, comma or newline are quoted."""
    rows = list(rows)
    if not rows:
        return ''
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(list(headers))
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
    # no trailing newline after the last record
    return buf.getvalue().rstrip('\n')


__all__ = ['rows_to_csv']
