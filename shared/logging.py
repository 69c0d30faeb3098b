"""
Shared logging configuration for the rule engine.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for evaluation correlation
evaluation_id_var: ContextVar[Optional[str]] = ContextVar('evaluation_id', default=None)
rule_key_var: ContextVar[Optional[str]] = ContextVar('rule_key', default=None)

_component_name: Optional[str] = None


def configure_logging(component: str, log_level: str = "info", json_output: bool = True) -> None:
    """Configure structured logging for a component."""
    global _component_name
    _component_name = component

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_component_context,
            add_evaluation_context,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_component_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the configured component name to log events."""
    if _component_name:
        event_dict.setdefault("component", _component_name)
    return event_dict


def add_evaluation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add evaluation correlation fields to log events."""
    evaluation_id = evaluation_id_var.get()
    if evaluation_id:
        event_dict["evaluation_id"] = evaluation_id

    rule_key = rule_key_var.get()
    if rule_key:
        event_dict.setdefault("rule_key", rule_key)

    return event_dict


def set_evaluation_id(evaluation_id: Optional[str] = None) -> str:
    """Set evaluation ID in context."""
    if evaluation_id is None:
        evaluation_id = str(uuid.uuid4())
    evaluation_id_var.set(evaluation_id)
    return evaluation_id


def clear_context():
    """Clear all context variables."""
    evaluation_id_var.set(None)
    rule_key_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
