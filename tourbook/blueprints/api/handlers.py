"""
Generic resource handlers (handler factory).

Each factory takes a model and its marshmallow schema and returns a view
callable implementing one CRUD operation against that model only:

    _list_tours = get_all(Tour, TourSchema, base_query=lambda **_: Tour.public_query())

Cross-entity effects are passed in explicitly through ``after_write``.
"""
from flask import current_app, jsonify, request
from sqlalchemy.orm import selectinload

from tourbook.errors import AppError, MalformedIdentifierError
from tourbook.extensions import db
from tourbook.utils.api_features import APIFeatures

NOT_FOUND_MESSAGE = 'No document found with that ID.'


def parse_id(value, field='id'):
    """Integer primary key from a path value."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise MalformedIdentifierError(value, field)
    if number < 1:
        raise MalformedIdentifierError(value, field)
    return number


def request_payload():
    """JSON body, or form fields for multipart uploads."""
    data = request.get_json(silent=True)
    if data is None and request.form:
        data = request.form.to_dict()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AppError('Request body must be a JSON object.', 400)
    return data


def _base(model, base_query, view_args):
    return base_query(**view_args) if base_query else model.query


def find_or_404(model, doc_id, base_query=None, options=(), **view_args):
    query = _base(model, base_query, view_args)
    if options:
        query = query.options(*options)
    doc = query.filter(model.id == parse_id(doc_id)).first()
    if doc is None:
        raise AppError(NOT_FOUND_MESSAGE, 404)
    return doc


def _commit(doc, after_write):
    db.session.flush()
    if after_write is not None:
        after_write(doc)
    db.session.commit()


def get_all(model, schema_cls, base_query=None):
    """List documents through the query feature builder."""
    allowed = schema_cls.list_fields()

    def view(args=None, **view_args):
        features = APIFeatures(
            _base(model, base_query, view_args),
            model,
            request.args if args is None else args,
            allowed_fields=allowed,
            default_limit=current_app.config.get('API_DEFAULT_PAGE_SIZE', 100),
        ).filter().sort().limit_fields().paginate()

        docs = features.query.all()
        schema = schema_cls(many=True, only=features.fields, exclude=schema_cls.EXPANDABLE)

        return jsonify({
            'status': 'success',
            'results': len(docs),
            'data': {'data': schema.dump(docs)},
        }), 200

    return view


def get_one(model, schema_cls, base_query=None, expand=()):
    """Fetch one document, eager-loading and serializing ``expand`` relationships."""
    hidden = tuple(name for name in schema_cls.EXPANDABLE if name not in expand)
    options = tuple(selectinload(getattr(model, name)) for name in expand)

    def view(id, **view_args):
        doc = find_or_404(model, id, base_query, options, **view_args)
        return jsonify({
            'status': 'success',
            'data': {'data': schema_cls(exclude=hidden).dump(doc)},
        }), 200

    return view


def create_one(model, schema_cls, prepare=None, after_write=None):
    """Validate and insert a document.

    ``prepare(**view_args)`` returns server-assigned values merged over the
    validated payload.
    """

    def view(**view_args):
        data = schema_cls().load(request_payload())
        if prepare is not None:
            data.update(prepare(**view_args))

        doc = model(**data)
        db.session.add(doc)
        _commit(doc, after_write)

        return jsonify({
            'status': 'success',
            'created_at': doc.created_at.isoformat(),
            'data': {'data': schema_cls(exclude=schema_cls.EXPANDABLE).dump(doc)},
        }), 201

    return view


def update_one(model, schema_cls, base_query=None, prepare=None, after_write=None):
    """Partially update a document, re-running validation on the given fields."""

    def view(id, **view_args):
        doc = find_or_404(model, id, base_query, **view_args)
        data = schema_cls().load(request_payload(), partial=True)
        if prepare is not None:
            data.update(prepare(id=id, **view_args))

        for key, value in data.items():
            setattr(doc, key, value)
        _commit(doc, after_write)

        return jsonify({
            'status': 'success',
            'data': {'data': schema_cls(exclude=schema_cls.EXPANDABLE).dump(doc)},
        }), 200

    return view


def delete_one(model, base_query=None, after_write=None):
    """Delete a document; 204 with no body."""

    def view(id, **view_args):
        doc = find_or_404(model, id, base_query, **view_args)
        db.session.delete(doc)
        _commit(doc, after_write)
        return '', 204

    return view
