"""
Error taxonomy and JSON:API error documents.

Services raise ``JsonApiError`` subclasses; the handlers registered by
``register_exception_handlers`` turn them (and FastAPI's own request
validation / routing errors) into ``{"errors": [...]}`` documents served
with the JSON:API media type.  Client errors are terminal for the request
and are not logged; anything that escapes as a 5xx is.
"""
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.jsonapi import JsonApiResponse, error_document

logger = logging.getLogger(__name__)


class JsonApiError(Exception):
    """Base class for errors rendered as JSON:API error objects."""

    status_code: int = 500

    def __init__(self, detail: str | None = None, *, source: dict | None = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail
        self.source = source

    @property
    def title(self) -> str:
        return HTTPStatus(self.status_code).phrase

    def to_error_objects(self) -> list[dict]:
        error = {"status": str(self.status_code), "title": self.title}
        if self.detail:
            error["detail"] = self.detail
        if self.source:
            error["source"] = self.source
        return [error]


class BadRequest(JsonApiError):
    status_code = 400


class Unauthorized(JsonApiError):
    status_code = 401


class Forbidden(JsonApiError):
    status_code = 403


class NotFound(JsonApiError):
    status_code = 404


class Conflict(JsonApiError):
    status_code = 409


class ValidationFailure(JsonApiError):
    """
    One or more fields failed validation.

    Carries a list of ``(detail, pointer)`` pairs so every failing field is
    reported in a single response.
    """

    status_code = 422

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        super().__init__(failures[0][0] if failures else None)
        self.failures = failures

    def to_error_objects(self) -> list[dict]:
        return [
            {
                "status": str(self.status_code),
                "title": self.title,
                "detail": detail,
                "source": {"pointer": pointer},
            }
            for detail, pointer in self.failures
        ]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _render(status_code: int, errors: list[dict], headers: dict | None = None) -> JsonApiResponse:
    return JsonApiResponse(error_document(errors), status_code=status_code, headers=headers)


async def _handle_jsonapi_error(request: Request, exc: JsonApiError) -> JsonApiResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _render(exc.status_code, exc.to_error_objects(), headers)


def _query_parameter_name(loc: tuple) -> str:
    return str(loc[1]) if len(loc) > 1 else str(loc[0])


def _body_pointer(loc: tuple) -> str:
    return "/" + "/".join(str(part) for part in loc[1:])


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JsonApiResponse:
    """
    Map FastAPI's parsing errors onto JSON:API statuses.

    Unparseable path ids cannot name an existing resource (404); bad query
    parameters are a malformed request (400); body errors are 422 with a
    pointer into the document.
    """
    errors = exc.errors()
    if any(err["loc"][0] == "path" for err in errors):
        return _render(404, NotFound("Resource not found").to_error_objects())

    query_errors = [err for err in errors if err["loc"][0] == "query"]
    if query_errors:
        return _render(400, [
            {
                "status": "400",
                "title": HTTPStatus.BAD_REQUEST.phrase,
                "detail": err["msg"],
                "source": {"parameter": _query_parameter_name(err["loc"])},
            }
            for err in query_errors
        ])

    return _render(422, ValidationFailure(
        [(err["msg"], _body_pointer(err["loc"])) for err in errors]
    ).to_error_objects())


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JsonApiResponse:
    error = {"status": str(exc.status_code), "title": HTTPStatus(exc.status_code).phrase}
    if exc.detail and exc.detail != error["title"]:
        error["detail"] = str(exc.detail)
    return _render(exc.status_code, [error], getattr(exc, "headers", None))


async def _handle_unexpected(request: Request, exc: Exception) -> JsonApiResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _render(500, JsonApiError().to_error_objects())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JsonApiError, _handle_jsonapi_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected)
