from __future__ import annotations
from typing import Any, Dict
from jollybaba.errors import ValidationError


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    Missing or blank parameters are skipped; string values are trimmed first.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None:
            continue
        if isinstance(val, str):
            val = val.strip()
            if not val:
                continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                raise ValidationError(f'{name} invalid', error='INVALID_FILTER')
        if 'validate' in meta and not meta['validate'](val):
            raise ValidationError(f'{name} invalid', error='INVALID_FILTER')
        query = meta['op'](query, val)
    return query
