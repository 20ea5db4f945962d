"""Classifier Service - AI categorization of request descriptions"""
import json
from typing import Optional

from openai import AzureOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..config.settings import settings
from ..domain.enums import RequestCategory
from ..utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You classify campus service requests. "
    "Reply with a JSON object with two keys: "
    '"category", one of: ' + ", ".join(f'"{c.value}"' for c in RequestCategory) + "; "
    'and "summary", a very brief, technical one-sentence summary of the issue.'
)


class Classification(BaseModel):
    """Suggested category and summary for a request"""
    category: RequestCategory
    summary: str


class ClassifierService:
    """Azure OpenAI backed categorization. Never raises past analyze()."""
    
    def __init__(self, client: Optional[AzureOpenAI] = None):
        self.client: Optional[AzureOpenAI] = client
        if self.client is None and settings.classifier_enabled:
            self.client = AzureOpenAI(
                azure_endpoint=settings.azure_openai_endpoint,
                api_key=settings.azure_openai_api_key,
                api_version=settings.azure_openai_api_version
            )
    
    @property
    def enabled(self) -> bool:
        return self.client is not None
    
    def analyze(self, description: str) -> Optional[Classification]:
        """Classify a description; None when disabled or on any failure"""
        if not self.client:
            logger.warning("No Azure OpenAI credentials configured, skipping analysis")
            return None
        if not description or not description.strip():
            return None
        
        try:
            response = self.client.chat.completions.create(
                model=settings.azure_openai_deployment,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f'Description: "{description.strip()}"'}
                ],
                temperature=0.2,
                max_tokens=200,
                response_format={"type": "json_object"}
            )
            if not response.choices:
                return None
            content = response.choices[0].message.content
            if not content or not content.strip():
                return None
            return Classification.model_validate(json.loads(content))
        
        except (OpenAIError, ValueError, PydanticValidationError) as e:
            logger.error(f"Request analysis failed: {e}")
            return None
