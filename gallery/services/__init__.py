"""Services package for the gallery server."""

from gallery.services.example_service import (
    ExampleError,
    ExampleLoader,
    ExampleNotFoundError,
    ExamplePage,
    UnknownPackageError,
    UnknownThemeError,
    UnknownToolkitError,
)
from gallery.services.token_service import (
    TOKEN_TYPES,
    InvalidTokenTypeError,
    TokenCreate,
    TokenError,
    TokenNotFoundError,
    TokenStore,
)

__all__ = [
    "ExampleError",
    "ExampleLoader",
    "ExampleNotFoundError",
    "ExamplePage",
    "UnknownPackageError",
    "UnknownThemeError",
    "UnknownToolkitError",
    "TOKEN_TYPES",
    "InvalidTokenTypeError",
    "TokenCreate",
    "TokenError",
    "TokenNotFoundError",
    "TokenStore",
]
