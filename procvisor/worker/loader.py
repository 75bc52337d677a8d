# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""Resolve worker classes to and from ``module:QualName`` import strings.

Worker processes are started with a fresh interpreter, so a worker class
must be reachable by import from its module.
"""

from __future__ import annotations

import importlib
import inspect

from procvisor.exceptions import InvalidWorkerType
from procvisor.schemas import TransportKind
from procvisor.worker.base import Worker


def validate_worker_type(worker_type: object) -> type[Worker]:
    """Check *worker_type* against the worker contract.

    The class must derive from :class:`Worker`, declare a
    :class:`TransportKind`, be constructible from ``(args, channel)``
    and be importable by its qualified name.

    Raises:
        InvalidWorkerType: If any check fails.
    """
    if not isinstance(worker_type, type) or not issubclass(worker_type, Worker):
        raise InvalidWorkerType(f"{worker_type!r} is not a Worker subclass")
    if not callable(getattr(worker_type, "handle", None)):
        raise InvalidWorkerType(f"{worker_type.__qualname__} has no handle() entry point")
    if not isinstance(worker_type.transport_kind, TransportKind):
        raise InvalidWorkerType(f"{worker_type.__qualname__} declares no transport kind")
    try:
        inspect.signature(worker_type).bind({}, None)
    except TypeError as e:
        raise InvalidWorkerType(
            f"{worker_type.__qualname__} is not constructible from (args, channel): {e}"
        ) from e

    resolved = resolve_worker(import_string_for(worker_type))
    if resolved is not worker_type:
        raise InvalidWorkerType(
            f"{import_string_for(worker_type)} resolves to a different object"
        )
    return worker_type


def import_string_for(worker_type: type) -> str:
    module = worker_type.__module__
    qualname = worker_type.__qualname__
    if module == "__main__" or "<locals>" in qualname:
        raise InvalidWorkerType(
            f"{qualname} must be defined at module level in an importable module"
        )
    return f"{module}:{qualname}"


def resolve_worker(import_string: str) -> type[Worker]:
    """Import the class named by *import_string* (``module:QualName``).

    Raises:
        InvalidWorkerType: If the module or attribute cannot be found or
            the object is not a Worker subclass.
    """
    module_name, sep, qualname = import_string.partition(":")
    if not sep or not module_name or not qualname:
        raise InvalidWorkerType(f"Invalid worker import string: {import_string!r}")

    try:
        obj: object = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidWorkerType(f"Cannot import module {module_name!r}: {e}") from e

    for attr in qualname.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise InvalidWorkerType(f"{module_name!r} has no attribute {qualname!r}") from e

    if not isinstance(obj, type) or not issubclass(obj, Worker):
        raise InvalidWorkerType(f"{import_string} is not a Worker subclass")
    return obj
