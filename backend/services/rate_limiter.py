"""
Upload rate limiter (check_and_increment_upload_attempts stored procedure).

The procedure returns untyped JSON. decode_rate_limit_result validates it
into a RateLimitResult and fails clearly on anything unexpected:

  {"allowed": true, "remaining_attempts": 2}
  {"allowed": false, "message": "Daily upload limit reached"}

camelCase keys ("remainingAttempts") are accepted as well.
"""

import logging

from pydantic import ValidationError

from models.schemas import RateLimitResult
from services.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

RPC_FUNCTION = "check_and_increment_upload_attempts"


class RateLimitDecodeError(ValueError):
    """The stored procedure returned a shape we do not understand."""


def decode_rate_limit_result(raw) -> RateLimitResult:
    if not isinstance(raw, dict):
        raise RateLimitDecodeError(
            f"Expected a JSON object from {RPC_FUNCTION}, got {type(raw).__name__}"
        )
    if not isinstance(raw.get("allowed"), bool):
        raise RateLimitDecodeError(
            f"{RPC_FUNCTION} result is missing a boolean 'allowed': {raw!r}"
        )

    remaining = raw.get("remaining_attempts", raw.get("remainingAttempts"))
    if isinstance(remaining, bool):
        raise RateLimitDecodeError(f"Invalid remaining attempts: {remaining!r}")

    try:
        return RateLimitResult(
            allowed=raw["allowed"],
            remaining_attempts=remaining,
            message=raw.get("message"),
        )
    except ValidationError as e:
        raise RateLimitDecodeError(f"Invalid {RPC_FUNCTION} result: {e}") from e


class RateLimiter:
    def __init__(self, client: SupabaseClient):
        self.client = client

    def check(self, user_id: str) -> RateLimitResult:
        """
        Check and count one upload attempt for user_id.

        Raises:
            SupabaseError: The procedure call failed
            RateLimitDecodeError: The procedure returned an unexpected shape
        """
        raw = self.client.rpc(RPC_FUNCTION, {"user_uuid": user_id})
        result = decode_rate_limit_result(raw)

        if result.allowed:
            logger.info(f"Upload allowed for {user_id} (remaining: {result.remaining_attempts})")
        else:
            logger.info(f"Upload blocked for {user_id}: {result.message}")

        return result
