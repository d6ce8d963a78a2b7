"""HTTP mapping for the domain error taxonomy.

Protean's handlers map ``ValidationError`` to 400 and ``ObjectNotFoundError``
to 404. Conflict and dependency errors are ``ValidationError`` subclasses;
handlers are resolved along the exception's MRO, so registering the
subclasses here lets them win over the generic 400.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.integrations.fastapi import register_exception_handlers

from marketplace.exceptions import ConflictError, DependencyError


def _error_response(status_code):
    async def handler(request: Request, exc) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"error": exc.messages})

    return handler


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ConflictError, _error_response(409))
    app.add_exception_handler(DependencyError, _error_response(402))
    app.add_exception_handler(ObjectNotFoundError, _error_response(404))
