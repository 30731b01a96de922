"""
Query feature builder: translate list-endpoint query parameters into a
filtered, sorted, projected and paginated SQLAlchemy query.

    ?difficulty=easy&price[lte]=500&sort=-ratings_average,price&fields=name,price&page=2&limit=10
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.types import JSON, Boolean, Date, DateTime, Enum as SAEnum, Float, Integer, Numeric

from tourbook.errors import AppError

RESERVED_KEYS = frozenset({'page', 'sort', 'limit', 'fields'})

OPERATORS = {
    'gte': lambda column, value: column >= value,
    'gt': lambda column, value: column > value,
    'lte': lambda column, value: column <= value,
    'lt': lambda column, value: column < value,
}

_KEY_PATTERN = re.compile(r'^(?P<field>\w+)\[(?P<op>\w+)\]$')

DEFAULT_SORT = ('-created_at',)

# Largest value a 64-bit signed storage integer holds
MAX_SQL_INTEGER = 2 ** 63 - 1


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str  # 'eq', 'in' or a key of OPERATORS
    value: object


@dataclass
class QueryRequest:
    """Filter, sort, projection and pagination parsed from a query string."""

    filters: list = field(default_factory=list)
    sort: tuple = DEFAULT_SORT
    fields: tuple = ()
    page: int = 1
    limit: int = 100

    @property
    def skip(self):
        return (self.page - 1) * self.limit

    @classmethod
    def from_args(cls, args, default_limit=100):
        """Parse a request's query args (a werkzeug MultiDict or a plain dict).

        Reserved keys (page, sort, limit, fields) never become filters.
        """
        filters = []
        for key, values in _iter_lists(args):
            if key in RESERVED_KEYS:
                continue
            match = _KEY_PATTERN.match(key)
            if match:
                if match.group('field') in RESERVED_KEYS:
                    continue
                op = match.group('op')
                if op not in OPERATORS:
                    raise AppError(f'Invalid query operator: {op}.', 400)
                filters.append(FieldFilter(match.group('field'), op, values[-1]))
            elif len(values) > 1:
                filters.append(FieldFilter(key, 'in', tuple(values)))
            else:
                filters.append(FieldFilter(key, 'eq', values[0]))

        return cls(
            filters=filters,
            sort=_split(args.get('sort')) or DEFAULT_SORT,
            fields=_split(args.get('fields')),
            page=_positive_int(args.get('page'), 1),
            limit=_positive_int(args.get('limit'), default_limit),
        )


def _iter_lists(args):
    if hasattr(args, 'lists'):
        yield from args.lists()
        return
    for key, value in args.items():
        yield key, list(value) if isinstance(value, (list, tuple)) else [value]


def _split(value):
    if not value:
        return ()
    return tuple(part.strip() for part in str(value).split(',') if part.strip())


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return min(number, MAX_SQL_INTEGER)


def coerce_value(column, raw):
    """Convert a query-string value to the column's Python type."""
    column_type = column.type
    if isinstance(column_type, SAEnum) and column_type.enum_class is not None:
        return column_type.enum_class(raw)
    if isinstance(column_type, Boolean):
        lowered = str(raw).lower()
        if lowered in ('true', '1', 'yes'):
            return True
        if lowered in ('false', '0', 'no'):
            return False
        raise ValueError(raw)
    if isinstance(column_type, Integer):
        number = int(raw)
        if abs(number) > MAX_SQL_INTEGER:
            raise ValueError(raw)
        return number
    if isinstance(column_type, (Float, Numeric)):
        return float(raw)
    if isinstance(column_type, DateTime):
        return datetime.fromisoformat(raw)
    if isinstance(column_type, Date):
        return date.fromisoformat(raw)
    return str(raw)


class APIFeatures:
    """Apply a QueryRequest to a base query over ``model``.

    Only ``allowed_fields`` (the fields the entity's schema exposes) that
    are real columns may be filtered, sorted or selected.
    """

    def __init__(self, query, model, args, allowed_fields=None, default_limit=100):
        self.query = query
        self.model = model
        self.request = QueryRequest.from_args(args, default_limit=default_limit)

        columns = {attr.key: attr.columns[0] for attr in sa_inspect(model).column_attrs}
        if allowed_fields is not None:
            columns = {name: col for name, col in columns.items() if name in allowed_fields}
        self.columns = columns
        self.fields = None

    def _column(self, name, comparable=True):
        column = self.columns.get(name)
        if column is None or (comparable and isinstance(column.type, JSON)):
            raise AppError(f'Invalid query field: {name}.', 400)
        return column

    def _coerce(self, column, name, raw):
        try:
            return coerce_value(column, raw)
        except ValueError:
            raise AppError(f'Invalid value for {name}: {raw}.', 400)

    def filter(self):
        for item in self.request.filters:
            column = self._column(item.field)
            if item.op == 'in':
                values = [self._coerce(column, item.field, v) for v in item.value]
                self.query = self.query.filter(column.in_(values))
            elif item.op == 'eq':
                self.query = self.query.filter(column == self._coerce(column, item.field, item.value))
            else:
                value = self._coerce(column, item.field, item.value)
                self.query = self.query.filter(OPERATORS[item.op](column, value))
        return self

    def sort(self):
        clauses = []
        for key in self.request.sort:
            descending = key.startswith('-')
            name = key[1:] if descending else key
            if key == '-created_at' and 'created_at' not in self.columns:
                continue
            column = self._column(name)
            clauses.append(column.desc() if descending else column.asc())
        clauses.append(sa_inspect(self.model).primary_key[0].asc())
        self.query = self.query.order_by(*clauses)
        return self

    def limit_fields(self):
        """Resolve the field selection. ``None`` means the schema's defaults."""
        if self.request.fields:
            for name in self.request.fields:
                self._column(name, comparable=False)
            self.fields = tuple(dict.fromkeys(('id',) + self.request.fields))
        return self

    def paginate(self):
        self.query = self.query.offset(min(self.request.skip, MAX_SQL_INTEGER)).limit(self.request.limit)
        return self
