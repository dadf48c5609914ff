"""
Tool Loader - Maps a manifest's opaque code reference to a callable body

Synthesizing and sandboxing code are outside the registry. Whatever produces
tool bodies plugs in behind ToolLoader; the registry only needs a callable
that follows the calling convention ``body(params) -> result envelope``.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping

from toolpool.domain.tools.errors import NotFound

logger = logging.getLogger(__name__)

ToolBody = Callable[[Mapping[str, Any]], Any]


class ToolLoader(ABC):
    """Abstract source of executable tool bodies"""

    @abstractmethod
    def load(self, code_ref: str) -> ToolBody:
        """
        Return the body for a code reference

        Raises:
            NotFound: If nothing is bound to code_ref
        """
        pass

    @abstractmethod
    def bind(self, code_ref: str, body: ToolBody) -> None:
        """Make a freshly synthesized body loadable under code_ref"""
        pass


class InMemoryToolLoader(ToolLoader):
    """Process-local loader holding bodies registered in this process"""

    def __init__(self):
        self._bodies: Dict[str, ToolBody] = {}
        self._lock = threading.Lock()

    def load(self, code_ref: str) -> ToolBody:
        with self._lock:
            body = self._bodies.get(code_ref)
        if body is None:
            raise NotFound(code_ref)
        return body

    def bind(self, code_ref: str, body: ToolBody) -> None:
        if not callable(body):
            raise TypeError(f"Tool body for '{code_ref}' is not callable")

        with self._lock:
            if code_ref in self._bodies:
                logger.warning(f"Code reference '{code_ref}' already bound, overwriting")
            self._bodies[code_ref] = body

        logger.debug(f"Bound tool body: {code_ref}")
