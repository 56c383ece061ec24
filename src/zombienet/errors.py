# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy for network launches."""

from typing import Optional


class ZombienetError(Exception):
    """Base class for every error raised by zombienet."""

    pass


class SpecCompilationError(ZombienetError):
    """Raised when a launch config cannot be compiled."""

    pass


class DirectoryConflictError(ZombienetError):
    """Raised when the workspace already exists and reuse was not confirmed."""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(message or f"Directory already exists: {path}")


class AccessValidationError(ZombienetError):
    """Raised when the provider backend is not reachable with the given credentials."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Can not access {provider}, please check your config.")


class GlobalTimeoutError(ZombienetError):
    """Raised when the network was not launched within settings.timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"GLOBAL TIMEOUT ({timeout} secs)")


class ProviderOperationError(ZombienetError):
    """Wraps a failure from a provider call (namespace, chain spec, spawn, teardown)."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class AlreadyStoppedError(ZombienetError):
    """Raised when mutating a network that has already been stopped."""

    pass
