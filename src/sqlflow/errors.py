"""Exception types raised by sqlflow."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlflow.parser.validation import ValidationError


class SqlFlowError(Exception):
    """Base class for all sqlflow errors."""

    pass


class ParseFailure(SqlFlowError):
    """Raised when SQL text cannot be parsed into a statement AST."""

    pass


class GraphBuildError(SqlFlowError):
    """Raised when a statement cannot be turned into an operator graph."""

    pass


class InputValidationError(SqlFlowError):
    """Raised when SQL input is rejected before parsing."""

    def __init__(self, error: "ValidationError"):
        super().__init__(error.message)
        self.error = error
