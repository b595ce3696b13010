"""Thread-safe singleton base class.

Used by the ledger facade and the background usage event queue, both of
which must exist once per process regardless of how many request workers
touch them.
"""

import logging
import threading
from abc import ABC
from typing import ClassVar, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T', bound='ThreadSafeSingleton')


class ThreadSafeSingleton(ABC):
    """Singleton base using double-checked locking.

    Subclasses put one-time setup in `_initialize()` and teardown in
    `_cleanup()`. They must not override `__new__` or `__init__`.

    Usage:
        class LedgerService(ThreadSafeSingleton):
            def _initialize(self):
                self.engine = ConsumptionEngine()

        service = LedgerService.get_instance()
    """

    _instance: ClassVar[Optional['ThreadSafeSingleton']] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()
    _initialized: bool = False

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        # Each concrete singleton keeps its own slot
        cls._instance = None

    def __new__(cls: type[T]) -> T:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance  # type: ignore

    def __init__(self) -> None:
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._initialize()
                    self._initialized = True

    def _initialize(self) -> None:
        """One-time initialization hook."""
        pass

    @classmethod
    def get_instance(cls: type[T]) -> T:
        """Return the process-wide instance, creating it on first use."""
        return cls()

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the instance so the next access builds a fresh one (tests)."""
        with cls._lock:
            if cls._instance is not None:
                try:
                    cls._instance._cleanup()
                except Exception as e:
                    logger.warning(f"{cls.__name__} cleanup failed: {e}")
                cls._instance = None

    def _cleanup(self) -> None:
        """Release resources held by the instance."""
        pass
