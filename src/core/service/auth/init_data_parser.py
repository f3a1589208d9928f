"""
Parser for the raw initData query string a Telegram mini-app hands to the backend.
"""

import json
from typing import Dict
from urllib.parse import parse_qsl

from pydantic import ValidationError

from src.core.exceptions.base import ParseErrorKind
from src.core.service.auth.models.principal import ParsedInitData, TelegramUser


class InitDataParseError(ValueError):
    def __init__(self, kind: ParseErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class InitDataParser:
    """Extracts user, auth_date, hash and query_id. Does not judge authenticity."""

    def parse(self, raw: str) -> ParsedInitData:
        if not raw or not raw.strip():
            raise InitDataParseError(ParseErrorKind.MALFORMED_PAYLOAD, "initData is empty")

        try:
            pairs = parse_qsl(raw, keep_blank_values=True, strict_parsing=True)
        except ValueError as e:
            raise InitDataParseError(ParseErrorKind.MALFORMED_PAYLOAD, f"initData is not a query string: {e}") from e

        fields: Dict[str, str] = {}
        for key, value in pairs:
            if key in fields:
                raise InitDataParseError(ParseErrorKind.MALFORMED_PAYLOAD, f"Duplicate field '{key}' in initData")
            fields[key] = value

        user_raw = fields.get("user")
        if not user_raw:
            raise InitDataParseError(ParseErrorKind.MISSING_USER, "User data not found in initData")

        user = self._parse_user(user_raw)

        auth_date_raw = fields.get("auth_date")
        signature = fields.get("hash")
        if not auth_date_raw or not signature:
            raise InitDataParseError(ParseErrorKind.MISSING_AUTH_PARAMS, "Missing auth_date or hash")

        try:
            auth_date = int(auth_date_raw)
        except ValueError as e:
            raise InitDataParseError(ParseErrorKind.MISSING_AUTH_PARAMS, "auth_date is not a unix timestamp") from e

        return ParsedInitData(
            user=user,
            auth_date=auth_date,
            hash=signature,
            query_id=fields.get("query_id"),
            fields=fields,
            raw=raw,
        )

    @staticmethod
    def _parse_user(user_raw: str) -> TelegramUser:
        try:
            data = json.loads(user_raw)
        except json.JSONDecodeError as e:
            raise InitDataParseError(ParseErrorKind.MALFORMED_USER, "User field is not valid JSON") from e

        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise InitDataParseError(ParseErrorKind.MALFORMED_USER, "User object has no id")

        # bool is an int subclass; reject it explicitly
        if isinstance(data["id"], bool) or not isinstance(data["id"], (int, str)):
            raise InitDataParseError(ParseErrorKind.MALFORMED_USER, "User id must be a number or string")

        try:
            return TelegramUser(
                id=str(data["id"]),
                username=data.get("username"),
                first_name=data.get("first_name"),
                last_name=data.get("last_name"),
                language_code=data.get("language_code"),
                is_premium=bool(data.get("is_premium", False)),
            )
        except ValidationError as e:
            raise InitDataParseError(ParseErrorKind.MALFORMED_USER, "User object has invalid fields") from e
