"""
Error types and the central exception handlers.

Handlers raise FeedError with the status code that classifies the failure;
everything else reaching the app is logged and answered with a 500.
"""

import logging
from typing import Any, Optional
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class FeedError(HTTPException):
    def __init__(self, status_code: int, message: str, data: Optional[Any] = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.data = data


def validation_failed(errors, message: str = 'Validation failed') -> FeedError:
    """Build a 422 carrying pydantic's error list"""
    data = [
        {'field': '.'.join(str(p) for p in e.get('loc', ())), 'msg': e.get('msg')}
        for e in errors
    ]
    return FeedError(422, message, data)


async def feed_error_handler(request: Request, exc: FeedError):
    body = {'message': exc.message}
    if exc.data is not None:
        body['data'] = jsonable_encoder(exc.data)
    if exc.status_code >= 500:
        logger.error({'msg': 'request_failed', 'path': request.url.path, 'error': exc.message})
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={'message': str(exc.detail)}, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = validation_failed(exc.errors(), 'Validation failed.')
    return await feed_error_handler(request, err)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception({'msg': 'unhandled_error', 'path': request.url.path, 'error': str(exc)})
    return JSONResponse(status_code=500, content={'message': 'An unexpected error occurred.'})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(FeedError, feed_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
