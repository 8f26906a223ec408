"""
Scoped disposal of NDArrays

Arrays created inside a ``with ResourceScope():`` block are disposed when
the block exits, unless they were handed back with ``scope.keep(arr)``.
"""

import logging
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

_local = threading.local()


def _stack() -> List['ResourceScope']:
    stack = getattr(_local, 'stack', None)
    if stack is None:
        stack = _local.stack = []
    return stack


def current_scope() -> Optional['ResourceScope']:
    stack = _stack()
    return stack[-1] if stack else None


def track(array):
    """Called for every new NDArray; attaches it to the innermost open scope"""
    scope = current_scope()
    if scope is not None:
        scope.add(array)


class ResourceScope:
    """
    Disposes every array created while it is the innermost open scope

    Usage:
        with ResourceScope() as scope:
            a = nd.ones((2, 2))
            b = scope.keep(a * 2)
        # a and the intermediate are disposed, b is live
    """

    def __init__(self):
        self._resources: Dict[int, object] = {}
        self._parent: Optional[ResourceScope] = None
        self._closed = False

    def add(self, array):
        self._resources[id(array)] = array

    def keep(self, array):
        """Exclude an array from disposal; it moves to the enclosing scope if any"""
        self._resources.pop(id(array), None)
        if self._parent is not None:
            self._parent.add(array)
        return array

    def __len__(self):
        return len(self._resources)

    def __enter__(self):
        stack = _stack()
        self._parent = stack[-1] if stack else None
        stack.append(self)
        return self

    def __exit__(self, exc_type, exc, tb):
        stack = _stack()
        if stack and stack[-1] is self:
            stack.pop()
        elif self in stack:
            stack.remove(self)
        self.close()
        return False

    def close(self):
        if self._closed:
            return
        self._closed = True
        resources = list(self._resources.values())
        self._resources.clear()
        for array in resources:
            array.dispose()
        logger.debug("ResourceScope disposed %d array(s)", len(resources))
