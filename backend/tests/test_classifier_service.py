"""Classifier service tests with a stubbed Azure OpenAI client"""
from types import SimpleNamespace
from unittest.mock import MagicMock

from openai import APIConnectionError

from campusdesk.domain.enums import RequestCategory
from campusdesk.services.classifier_service import ClassifierService


def _client_returning(content):
    client = MagicMock()
    message = SimpleNamespace(content=content)
    client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    return client


def test_disabled_without_credentials():
    service = ClassifierService()
    assert not service.enabled
    assert service.analyze("The sink is leaking") is None


def test_parses_json_reply():
    client = _client_returning('{"category": "Sanitation", "summary": "Leaking restroom sink."}')
    
    result = ClassifierService(client=client).analyze("The sink is leaking")
    
    assert result.category == RequestCategory.SANITATION
    assert result.summary == "Leaking restroom sink."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}


def test_blank_description_skips_call():
    client = _client_returning("{}")
    assert ClassifierService(client=client).analyze("   ") is None
    client.chat.completions.create.assert_not_called()


def test_unusable_replies_return_none():
    assert ClassifierService(client=_client_returning("not json")).analyze("x") is None
    assert ClassifierService(client=_client_returning('{"category": "Plumbing", "summary": "x"}')).analyze("x") is None
    assert ClassifierService(client=_client_returning("")).analyze("x") is None


def test_api_failure_returns_none():
    client = MagicMock()
    client.chat.completions.create.side_effect = APIConnectionError(request=MagicMock())
    assert ClassifierService(client=client).analyze("The sink is leaking") is None
