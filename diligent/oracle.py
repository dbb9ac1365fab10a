# diligent/oracle.py
import json
from typing import Protocol

from pydantic import ValidationError

from diligent.bedrock import BedrockClient, extract_text
from diligent.config import Settings
from diligent.errors import OracleSchemaError
from diligent.models import Verdict
from diligent.prompts import judge_system_prompt


class Judge(Protocol):
    def judge(self, context_prompt: str) -> Verdict:
        ...


def parse_verdict(text: str) -> Verdict:
    """
    Parse model text into a Verdict.

    The text must be a bare JSON object. Anything else (prose around it,
    markdown fences, missing `flagged`) is a schema error, never a partial
    verdict.
    """
    text = text.strip()

    # Hard guard: JSON only
    if not (text.startswith("{") and text.endswith("}")):
        raise OracleSchemaError("oracle response was not pure JSON")

    try:
        data = json.loads(text)
    except ValueError as e:
        raise OracleSchemaError(f"failed to parse oracle response: {e}") from e

    try:
        return Verdict.model_validate(data)
    except ValidationError as e:
        raise OracleSchemaError(f"oracle response does not match verdict schema: {e}") from e


class BedrockJudge:
    """Oracle client: one Bedrock round trip per judgment, no retries."""

    def __init__(self, client: BedrockClient, model_id: str, os_name: str, max_tokens: int = 1024):
        self.client = client
        self.model_id = model_id
        self.os_name = os_name
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, s: Settings, os_name: str, client: BedrockClient = None) -> "BedrockJudge":
        return cls(
            client=client or BedrockClient.from_settings(s),
            model_id=s.bedrock_model_id,
            os_name=os_name,
            max_tokens=s.oracle_max_tokens,
        )

    def payload(self, context_prompt: str) -> dict:
        return {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.max_tokens,
            "temperature": 0,
            "system": judge_system_prompt(self.os_name),
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": context_prompt}],
                }
            ],
        }

    def judge(self, context_prompt: str) -> Verdict:
        envelope = self.client.invoke(
            model_id=self.model_id,
            body=self.payload(context_prompt),
        )
        return parse_verdict(extract_text(envelope))
