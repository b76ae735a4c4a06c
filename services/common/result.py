"""
Result Pattern Implementation
Provides a standardized way for services to return results with success/failure status
"""

from typing import TypeVar, Generic, Optional, Any, Dict
from dataclasses import dataclass

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """
    Either a successful value or a failure with error information.

    Examples:
        result = Result.success({'analyzed': 3, 'total': 3})
        if result.is_success:
            print(result.data)
    """

    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(ok=True, data=data, metadata=metadata)

    @property
    def is_success(self) -> bool:
        return self.ok

    @property
    def is_failure(self) -> bool:
        return not self.ok

    def unwrap(self) -> T:
        """
        Get the data from a successful result.

        Raises:
            ValueError: If called on a failure result
        """
        if self.is_failure:
            raise ValueError(f"Cannot unwrap a failure result: {self.error}")
        return self.data

    def __bool__(self) -> bool:
        return self.is_success

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.success(data={self.data!r})"
        return f"Result(ok=False, error={self.error!r}, code={self.error_code!r})"
