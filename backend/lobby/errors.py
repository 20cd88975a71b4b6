"""Domain errors and the single place where errors become client payloads.

Domain errors are expected outcomes (bad input, state conflicts, failed
auth). They are shown to the client verbatim and never logged as failures.
Anything else is an unexpected error: logged with full detail, and masked
unless the app runs in development mode.
"""
from typing import Any, Dict, Optional
import logging

from flask import current_app

MASKED_MESSAGE = 'An unexpected error occurred'


class GameError(Exception):
    status_code = 400
    type = ''

    def __init__(self, message: str, type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if type is not None:
            self.type = type

    def to_dict(self) -> Dict[str, Any]:
        return {'message': self.message, 'type': self.type}


class NotFoundError(GameError):
    status_code = 404


class InProgressError(GameError):
    status_code = 409


class NameTakenError(GameError):
    status_code = 409


class CapacityError(GameError):
    status_code = 409


class AuthError(GameError):
    status_code = 401
    type = 'authError'


class SameNameError(GameError):
    pass


class BlankNameError(GameError):
    pass


class NameTooLongError(GameError):
    pass


class InvalidCodeError(GameError):
    pass


class PlayerMissingError(GameError):
    status_code = 404


def error_payload(exc: BaseException, debug: bool = False,
                  logger: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """Translate an exception into the ``{message, type}`` shape clients see."""
    if isinstance(exc, GameError):
        return exc.to_dict()
    (logger or logging.getLogger('lobby')).error('[unexpected] %r', exc, exc_info=exc)
    if debug:
        return {'message': f'{type(exc).__name__}: {exc}', 'type': 'internal'}
    return {'message': MASKED_MESSAGE, 'type': 'internal'}


def is_development(app=None) -> bool:
    """Development mode shows unexpected error details to the client."""
    app = app or current_app
    return app.config.get('APP_ENV', 'development') != 'production'


def status_code_for(exc: BaseException) -> int:
    return exc.status_code if isinstance(exc, GameError) else 500
