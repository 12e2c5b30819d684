"""Error kinds raised by the lifecycle, discovery and dispatcher layers.

Each kind is a werkzeug HTTP exception so controllers can map it straight to
a status code and a ``{"message": ...}`` body.
"""
from flask import jsonify
from werkzeug import exceptions


class ValidationError(exceptions.BadRequest):
    """Malformed or missing input."""


class InvalidState(exceptions.BadRequest):
    """Operation is illegal for the donation's current status."""


class Forbidden(exceptions.Forbidden):
    """Authenticated but not allowed to perform the operation."""


class NotFound(exceptions.NotFound):
    pass


class DependencyFailure(exceptions.InternalServerError):
    """An external collaborator (mail, image store) failed."""


def error_response(error, **extra):
    body = {'message': error.description}
    body.update(extra)
    return jsonify(body), error.code
