"""Unit tests for LLM utilities."""

import os
import pytest

from pydantic_ai.models.test import TestModel

from quizmark.libs.llm import create_agent


class TestCreateAgent:
    """Test the create_agent function."""

    def test_create_agent_with_defaults(self):
        """Test creating agent with default configuration."""

        config_map = {
            "openai": {
                "api_key": "test-key",
                "organization": "test-org",
                "model": "gpt-4o-mini",
                "pydantic_ai_settings": {}
            }
        }

        agent = create_agent(config_map)

        # Check that environment variables were set
        assert os.environ.get('OPENAI_API_KEY') == 'test-key'
        assert os.environ.get('OPENAI_ORG_ID') == 'test-org'
        assert agent is not None

    def test_create_agent_without_organization(self):
        """Test that organization and model are optional."""
        agent = create_agent({"openai": {"api_key": "other-key"}})

        assert os.environ.get('OPENAI_API_KEY') == 'other-key'
        assert agent is not None

    def test_create_agent_with_system_prompt(self):
        """Test creating agent with custom system prompt."""

        test_configs = {
            "openai": {
                "api_key": "test-key",
            }
        }

        agent = create_agent(
            configs=test_configs,
            model="gpt-4o",
            system_prompt="You are an encouraging tutor."
        )
        assert agent is not None

    def test_create_agent_missing_api_key(self):
        """Test that missing API key raises KeyError."""
        with pytest.raises(KeyError, match="Key.*not found.*"):
            create_agent({})

    def test_create_agent_with_settings_dict(self):
        """Test creating agent with settings merged over the configured ones."""

        test_configs = {
            "openai": {
                "api_key": "test-key",
                "pydantic_ai_settings": {"temperature": 0.2}
            }
        }

        agent = create_agent(
            configs=test_configs,
            settings_dict={"max_tokens": 300}
        )
        assert agent is not None

    def test_create_agent_with_model_instance(self):
        """Test that a ready pydantic-ai model is used as is."""
        agent = create_agent(
            {"openai": {"api_key": "test-key"}},
            model=TestModel(custom_output_text="Looks right."),
            system_prompt="You are an encouraging tutor."
        )

        result = agent.run_sync("Is Rome a capital?")
        assert result.output == "Looks right."
