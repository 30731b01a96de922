"""
Unit tests for the query feature builder.
"""
import pytest
from werkzeug.datastructures import MultiDict

from tourbook.errors import AppError
from tourbook.models.tour import Difficulty, Tour
from tourbook.utils.api_features import APIFeatures, FieldFilter, QueryRequest, coerce_value


class TestQueryRequest:

    def test_defaults(self):
        parsed = QueryRequest.from_args(MultiDict())
        assert parsed.filters == []
        assert parsed.sort == ('-created_at',)
        assert parsed.fields == ()
        assert parsed.page == 1
        assert parsed.limit == 100
        assert parsed.skip == 0

    def test_reserved_keys_never_filter(self):
        parsed = QueryRequest.from_args(MultiDict({
            'page': '2', 'sort': 'price', 'limit': '10', 'fields': 'name',
        }))
        assert parsed.filters == []
        assert parsed.skip == 10

    def test_reserved_key_with_operator_is_dropped(self):
        parsed = QueryRequest.from_args(MultiDict({'limit[gte]': '5', 'price': '10'}))
        assert parsed.filters == [FieldFilter('price', 'eq', '10')]

    def test_operator_filters(self):
        parsed = QueryRequest.from_args(MultiDict([('price[gte]', '100'), ('duration[lt]', '7')]))
        assert FieldFilter('price', 'gte', '100') in parsed.filters
        assert FieldFilter('duration', 'lt', '7') in parsed.filters

    def test_repeated_key_becomes_in(self):
        parsed = QueryRequest.from_args(MultiDict([('difficulty', 'easy'), ('difficulty', 'medium')]))
        assert parsed.filters == [FieldFilter('difficulty', 'in', ('easy', 'medium'))]

    def test_plain_dict_args(self):
        parsed = QueryRequest.from_args({'difficulty': ['easy', 'medium'], 'limit': '3'})
        assert parsed.filters == [FieldFilter('difficulty', 'in', ('easy', 'medium'))]
        assert parsed.limit == 3

    def test_unknown_operator(self):
        with pytest.raises(AppError) as exc:
            QueryRequest.from_args(MultiDict({'price[ne]': '5'}))
        assert exc.value.status_code == 400

    @pytest.mark.parametrize('raw', ['0', '-1', 'abc', ''])
    def test_invalid_paging_falls_back_to_defaults(self, raw):
        parsed = QueryRequest.from_args(MultiDict({'page': raw, 'limit': raw}), default_limit=20)
        assert parsed.page == 1
        assert parsed.limit == 20

    def test_sort_and_fields_split_on_commas(self):
        parsed = QueryRequest.from_args(MultiDict({'sort': '-price, name', 'fields': 'name,,price'}))
        assert parsed.sort == ('-price', 'name')
        assert parsed.fields == ('name', 'price')


class TestCoerceValue:

    def test_enum(self):
        assert coerce_value(Tour.__table__.c.difficulty, 'easy') is Difficulty.EASY

    def test_bool(self):
        assert coerce_value(Tour.__table__.c.secret_tour, 'true') is True
        assert coerce_value(Tour.__table__.c.secret_tour, '0') is False
        with pytest.raises(ValueError):
            coerce_value(Tour.__table__.c.secret_tour, 'maybe')

    def test_numbers(self):
        assert coerce_value(Tour.__table__.c.duration, '5') == 5
        assert coerce_value(Tour.__table__.c.price, '9.5') == 9.5


class TestAPIFeatures:

    def test_fields_always_include_id(self, app):
        features = APIFeatures(Tour.query, Tour, MultiDict({'fields': 'name'}),
                               allowed_fields={'id', 'name', 'price'}).limit_fields()
        assert features.fields == ('id', 'name')

    def test_no_field_selection(self, app):
        features = APIFeatures(Tour.query, Tour, MultiDict(), allowed_fields={'id', 'name'}).limit_fields()
        assert features.fields is None

    def test_disallowed_column_rejected(self, app):
        features = APIFeatures(Tour.query, Tour, MultiDict({'secret_tour': 'true'}),
                               allowed_fields={'id', 'name'})
        with pytest.raises(AppError):
            features.filter()

    def test_json_columns_not_filterable(self, app):
        features = APIFeatures(Tour.query, Tour, MultiDict({'images': 'a.jpg'}))
        with pytest.raises(AppError):
            features.filter()

    def test_chain_runs_query(self, app, make_tour):
        make_tour('The Forest Hiker', price=397)
        make_tour('The Sea Explorer', price=497)
        make_tour('The Snow Adventurer', price=997)

        features = APIFeatures(Tour.query, Tour, MultiDict({'price[gt]': '400', 'sort': '-price', 'limit': '1'})) \
            .filter().sort().limit_fields().paginate()
        assert [tour.name for tour in features.query.all()] == ['The Snow Adventurer']
