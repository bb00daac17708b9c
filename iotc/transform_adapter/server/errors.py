#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exception hierarchy for the transform adapter.

Every error carries the HTTP status it maps to when it escapes a request
handler. Startup errors (configuration, query compilation) never reach a
request and abort the process instead.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional


class AdapterError(Exception):
    """
    Base exception for all adapter errors.

    Attributes:
        message: Human-readable error description (returned to the caller)
        cause: Original exception if wrapping
    """

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Startup Errors (fatal)
# =============================================================================


class ConfigurationError(AdapterError):
    """Malformed or contradictory route definitions."""


class CompileError(AdapterError):
    """Query text failed to parse or compile."""


# =============================================================================
# Request Errors (400)
# =============================================================================


class RequestValidationError(AdapterError):
    """Malformed or oversized body, missing auth/device id source, shape mismatch."""

    status_code = HTTPStatus.BAD_REQUEST


class TransformEvaluationError(AdapterError):
    """A compiled query could not produce exactly one result for the input."""

    status_code = HTTPStatus.BAD_REQUEST


class TransformNotFoundError(TransformEvaluationError):
    pass


class EmptyResultError(TransformEvaluationError):
    pass


class EvaluationFailedError(TransformEvaluationError):
    pass


class MultipleResultsError(TransformEvaluationError):
    pass


# =============================================================================
# Downstream Errors
# =============================================================================


class BridgeError(AdapterError):
    """
    Call to the Device Bridge failed.

    status_code is the status reported by the Bridge, if a response was
    received at all. Otherwise the error maps to 500.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause)
        self.response_status_code = status_code
        self.status_code = status_code if status_code is not None else HTTPStatus.INTERNAL_SERVER_ERROR
