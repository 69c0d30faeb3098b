"""
Shared error handling for the rule engine.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error report format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RuleEngineException(Exception):
    """Base exception for rule engine errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error report."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class RuleParseError(RuleEngineException):
    """Malformed rule text."""

    def __init__(self, message: str = "Could not parse rule", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_PARSE_ERROR", message, details)


class QualifierParseError(RuleEngineException):
    """Malformed qualifier expression."""

    def __init__(self, message: str = "Could not parse qualifier", details: Optional[Dict[str, Any]] = None):
        super().__init__("QUALIFIER_PARSE_ERROR", message, details)


class PropertyListParseError(RuleEngineException):
    """Malformed structured literal."""

    def __init__(self, message: str = "Could not parse property list", details: Optional[Dict[str, Any]] = None):
        super().__init__("PLIST_PARSE_ERROR", message, details)


class ModelLoadError(RuleEngineException):
    """Rule model document could not be loaded."""

    def __init__(self, message: str = "Could not load rule model", details: Optional[Dict[str, Any]] = None):
        super().__init__("MODEL_LOAD_ERROR", message, details)


class CyclicRuleReferenceError(RuleEngineException):
    """A key was requested again while it was still being inferred."""

    def __init__(self, chain: List[str], message: Optional[str] = None):
        self.chain = list(chain)
        super().__init__(
            "CYCLIC_RULE_REFERENCE",
            message or f"Cyclic rule reference: {' -> '.join(self.chain)}",
            {"chain": self.chain}
        )
