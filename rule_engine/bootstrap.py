"""
Config-driven construction of a rule context.
"""

from typing import Optional

from shared.config import RuleEngineConfig, get_config
from shared.errors import ModelLoadError
from shared.logging import configure_logging, get_logger, set_evaluation_id

from .rules.engine import RuleContext, RuleModel
from .rules.loader import RuleModelLoader


def create_context(config: Optional[RuleEngineConfig] = None,
                   model: Optional[RuleModel] = None) -> RuleContext:
    """
    Configure logging and return a context on ``model``, or on the model
    loaded from ``config.model_path`` when no model is passed.

    Each call starts a new evaluation id, so log events of the returned
    context can be correlated.

    Raises ModelLoadError if the configured model file cannot be loaded.
    """
    config = config or get_config()
    configure_logging(config.component_name, config.log_level, config.log_json)
    logger = get_logger("rules.bootstrap")
    set_evaluation_id()

    if model is None and config.model_path:
        loader = RuleModelLoader()
        model = loader.load_model_from_file(config.model_path)
        if model is None:
            raise loader.last_exception or ModelLoadError(
                "Could not load rule model", {"path": config.model_path}
            )
        logger.info("Rule model loaded", path=config.model_path, rules=len(model))

    logger.info(
        "Rule context created",
        env=config.env,
        rules=len(model) if model is not None else 0
    )
    return RuleContext(model)
