"""
API error types and the translator that turns failures into the
``{status, message}`` envelope.
"""
import re
import logging
import traceback

import jwt
from flask import current_app, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from tourbook.extensions import db

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = 'Something went wrong!'

_UNIQUE_SQLITE = re.compile(r'UNIQUE constraint failed: (?P<columns>[\w., ]+)')
_UNIQUE_POSTGRES = re.compile(r'Key \((?P<columns>[^)]+)\)=\((?P<value>[^)]*)\) already exists')


class AppError(Exception):
    """Operational error: the message is safe to show to clients."""

    is_operational = True

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MalformedIdentifierError(AppError):
    """An id path/query value that cannot address a document."""

    def __init__(self, value, field='id'):
        super().__init__(f'Invalid {field}: {value}.', 400)
        self.field = field
        self.value = value


def _flatten_messages(messages, field=None):
    if isinstance(messages, dict):
        for key, value in messages.items():
            name = field if key == '_schema' or isinstance(key, int) else key
            yield from _flatten_messages(value, name)
    elif isinstance(messages, (list, tuple)):
        for value in messages:
            yield from _flatten_messages(value, field)
    else:
        text = str(messages).rstrip('.')
        yield f'{field}: {text}' if field else text


def translate_validation_error(error):
    details = '. '.join(_flatten_messages(error.messages))
    return AppError(f'Invalid input data. {details}.', 400)


def translate_integrity_error(error):
    text = str(getattr(error, 'orig', error))
    match = _UNIQUE_POSTGRES.search(text) or _UNIQUE_SQLITE.search(text)
    if match is None:
        return AppError('Invalid input data.', 400)
    columns = match.group('columns')
    fields = ', '.join(part.strip().split('.')[-1] for part in columns.split(','))
    return AppError(f'Duplicate field value: {fields}. Please use another value!', 400)


def translate_jwt_error(error):
    if isinstance(error, jwt.ExpiredSignatureError):
        return AppError('Your token has expired! Please log in again.', 401)
    return AppError('Invalid token. Please log in again!', 401)


def translate_http_exception(error):
    if error.code == 404:
        message = f"Can't find {request.path} on this server."
    elif error.code == 429:
        message = 'Too many requests from this IP, please try again later.'
    else:
        message = error.description or error.name
    return AppError(message, error.code or 500)


def error_response(error, status_code, message, stack=None):
    body = {'status': 'error', 'message': message}
    if stack is not None and current_app.config.get('EXPOSE_ERROR_DETAILS'):
        body['stack'] = stack
    return jsonify(body), status_code


def _stack_for(error):
    return ''.join(traceback.format_exception(type(error), error, error.__traceback__))


def register_error_handlers(app):
    """Register translators for storage, validation, token and HTTP failures."""

    @app.errorhandler(AppError)
    def handle_app_error(error):
        db.session.rollback()
        return error_response(error, error.status_code, error.message, _stack_for(error))

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        translated = translate_validation_error(error)
        return error_response(error, translated.status_code, translated.message, _stack_for(error))

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        translated = translate_integrity_error(error)
        return error_response(error, translated.status_code, translated.message, _stack_for(error))

    @app.errorhandler(jwt.InvalidTokenError)
    def handle_jwt_error(error):
        translated = translate_jwt_error(error)
        return error_response(error, translated.status_code, translated.message, _stack_for(error))

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        translated = translate_http_exception(error)
        return error_response(error, translated.status_code, translated.message)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.error(
            'Unexpected error on %s %s: %s',
            request.method, request.path, type(error).__name__,
            exc_info=error,
        )
        message = GENERIC_MESSAGE
        if current_app.config.get('EXPOSE_ERROR_DETAILS'):
            message = str(error) or GENERIC_MESSAGE
        return error_response(error, 500, message, _stack_for(error))
