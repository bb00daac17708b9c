#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
import threading
from typing import Any, Dict

import jq

from .errors import (
    CompileError,
    EmptyResultError,
    EvaluationFailedError,
    MultipleResultsError,
    TransformNotFoundError,
)

logger = logging.getLogger(__name__)

_NO_RESULT = object()


class TransformCache:
    """
    Keeps a set of pre-compiled jq queries ready for execution

    Queries are compiled once (add) and executed many times (execute).
    Entries live for the whole process lifetime, there is no removal.

    Thread safety:
      - add() serializes map mutation with a lock and publishes a new dict,
        so readers never observe a dict being resized
      - execute() takes no lock; every run gets its own jq iteration state

    Example:
        cache = TransformCache()
        cache.add("sample", "{ b: .a }")
        cache.execute("sample", {"a": 1})  # -> {"b": 1}
    """

    def __init__(self) -> None:
        self._programs: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def __contains__(self, handle: object) -> bool:
        return handle in self._programs

    def __len__(self) -> int:
        return len(self._programs)

    def add(self, handle: str, query: str) -> None:
        """
        Compile a query and save it under handle for later execution.

        Raises CompileError if the query text is invalid.
        """
        try:
            program = jq.compile(query)
        except ValueError as e:
            raise CompileError(f"failed to compile transform {handle}: {e}", cause=e) from e

        with self._lock:
            programs = dict(self._programs)
            programs[handle] = program
            self._programs = programs
        logger.debug("Compiled transform %s", handle)

    def execute(self, handle: str, value: Any) -> Any:
        """
        Execute the query identified by handle over value.

        The query must produce exactly one result:
          - unknown handle          -> TransformNotFoundError
          - no results              -> EmptyResultError
          - first result is an error -> EvaluationFailedError
          - more than one result    -> MultipleResultsError
        """
        program = self._programs.get(handle)
        if program is None:
            raise TransformNotFoundError(f"transformation for id {handle} not found")

        results = iter(program.input_value(value))

        try:
            result = next(results, _NO_RESULT)
        except ValueError as e:
            raise EvaluationFailedError(f"transform id {handle} failed: {e}", cause=e) from e

        if result is _NO_RESULT:
            raise EmptyResultError(f"transform id {handle} generated empty result")

        # An error in place of the second value still counts as a second result.
        try:
            extra = next(results, _NO_RESULT)
        except ValueError:
            extra = None
        if extra is not _NO_RESULT:
            raise MultipleResultsError(f"transform id {handle} generated multiple results")

        return result
