import json
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from diligent.config import Settings
from diligent.errors import CredentialsError, OracleTransportError
from diligent.logger import get_logger

logger = get_logger(__name__)


class BedrockClient:
    """
    Thin wrapper over bedrock-runtime invoke_model.
    One attempt per call: botocore retries are disabled.
    """

    def __init__(
        self,
        region: str,
        profile: Optional[str] = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        session: Optional[boto3.Session] = None,
    ):
        try:
            self.session = session or boto3.Session(profile_name=profile, region_name=region)
        except BotoCoreError as e:
            raise CredentialsError(f"cannot load AWS profile {profile!r}: {e}") from e

        self.client = self.session.client(
            "bedrock-runtime",
            region_name=region,
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"mode": "standard", "total_max_attempts": 1},
            ),
        )

    @classmethod
    def from_settings(cls, s: Settings) -> "BedrockClient":
        return cls(
            region=s.aws_region,
            profile=s.aws_profile,
            connect_timeout=s.oracle_connect_timeout,
            read_timeout=s.oracle_read_timeout,
        )

    def require_credentials(self) -> None:
        """Fail fast before any check runs when no AWS credentials resolve."""
        if self.session.get_credentials() is None:
            raise CredentialsError(
                "AWS credentials are not configured (set AWS_PROFILE or AWS_ACCESS_KEY_ID)"
            )

    def invoke(self, model_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload_json = json.dumps(body)
        logger.debug("bedrock_invoke", model_id=model_id, payload_bytes=len(payload_json))

        try:
            resp = self.client.invoke_model(
                modelId=model_id,
                body=payload_json.encode("utf-8"),
                contentType="application/json",
                accept="application/json",
            )
            raw = resp["body"].read()
        except (ClientError, BotoCoreError) as e:
            raise OracleTransportError(f"Bedrock request failed: {e}") from e

        try:
            return json.loads(raw)
        except ValueError as e:
            raise OracleTransportError(f"Bedrock returned a non-JSON envelope: {e}") from e


def extract_text(decoded_response: Dict[str, Any]) -> str:
    if decoded_response.get("type") != "message":
        raise OracleTransportError("Unexpected Bedrock response format")

    texts = []
    for block in decoded_response.get("content", []):
        if block.get("type") == "text":
            texts.append(block.get("text", ""))

    if not texts:
        raise OracleTransportError(f"No text returned by model: {decoded_response}")

    return "\n".join(texts)
