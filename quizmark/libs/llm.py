"""Helpers for building pydantic-ai agents from the openai config section."""

import logging
import os
from typing import Any, Dict, Optional, Union

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIResponsesModel, OpenAIResponsesModelSettings

from quizmark.libs.config_loader import ConfigType, get_config

# httpx logs every request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

DEFAULT_MODEL = "gpt-4o-mini"


def export_credentials(configs: ConfigType) -> None:
    """
    Export the OpenAI credentials from config into the environment.

    Raises:
        KeyError: If openai.api_key is missing
    """
    os.environ['OPENAI_API_KEY'] = get_config("openai.api_key", configs)
    organization = get_config("openai.organization", configs, default=None)
    if organization:
        os.environ['OPENAI_ORG_ID'] = organization


def create_agent(configs: ConfigType,
                 model: Optional[Union[str, Model]] = None,
                 settings_dict: Optional[Dict[str, Any]] = None,
                 system_prompt: Optional[str] = None) -> Agent:
    """
    Create a pydantic-ai Agent configured from the openai config section.

    Args:
        configs: Configuration dictionary (required)
        model: Model name (overrides openai.model) or a ready pydantic-ai Model
        settings_dict: Pydantic AI settings merged over openai.pydantic_ai_settings
        system_prompt: System prompt for the agent (optional)

    Returns:
        Configured Agent

    Raises:
        KeyError: If the OpenAI API key is not found in config
    """
    export_credentials(configs)

    if not isinstance(model, Model):
        model = OpenAIResponsesModel(model or get_config("openai.model", configs, default=DEFAULT_MODEL))

    settings = dict(get_config("openai.pydantic_ai_settings", configs, default={}) or {})
    settings.update(settings_dict or {})

    kwargs: Dict[str, Any] = {'retries': 0}
    if settings:
        kwargs['model_settings'] = OpenAIResponsesModelSettings(**settings)
    if system_prompt:
        kwargs['system_prompt'] = system_prompt
    return Agent(model=model, **kwargs)
