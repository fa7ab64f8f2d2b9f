"""Request parsing helpers shared by the JSON blueprints."""
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import request

from marketplace.exceptions import ValidationError
from marketplace.utils.number_format import parse_amount, parse_int


def json_body() -> Dict[str, Any]:
    """JSON object body; an empty body is an empty dict."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            raise ValidationError('Request body must be valid JSON')
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def int_value(value, field: str, default: Optional[int] = None, minimum: Optional[int] = None,
              maximum: Optional[int] = None, required: bool = False) -> Optional[int]:
    if required and (value is None or value == ''):
        raise ValidationError(f'{field} is required')
    try:
        return parse_int(value, field, default=default, minimum=minimum, maximum=maximum)
    except ValueError as e:
        raise ValidationError(str(e))


def amount_value(value, field: str, required: bool = False) -> Optional[Decimal]:
    try:
        return parse_amount(value, field, allow_none=not required)
    except ValueError as e:
        raise ValidationError(str(e))


def query_int(name: str, default: Optional[int] = None, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> Optional[int]:
    return int_value(request.args.get(name), name, default=default, minimum=minimum, maximum=maximum)


def query_amount(name: str) -> Optional[Decimal]:
    return amount_value(request.args.get(name), name)


def bool_value(value, default: bool) -> bool:
    """JSON booleans as-is; strings and numbers in their usual truthy spellings."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def query_bool(name: str, default: bool) -> bool:
    return bool_value(request.args.get(name), default)


def page_args(default_limit: int = 10, max_limit: int = 100):
    """(page, limit) from the query string."""
    page = query_int('page', default=1, minimum=1)
    limit = query_int('limit', default=default_limit, minimum=1, maximum=max_limit)
    return page, limit
