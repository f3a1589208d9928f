import hashlib
import hmac
from typing import Dict, List, Tuple
from urllib.parse import parse_qsl, urlencode

from src.core.logger.logger import get_logger

logger = get_logger(__name__)

SIGNATURE_FIELD = "hash"


class SignatureVerifier:
    """HMAC-SHA256 authenticity check for Telegram WebApp initData"""

    DOMAIN_CONSTANT = b"WebAppData"

    @staticmethod
    def _split_pairs(payload: str) -> List[Tuple[str, str]]:
        """Split a query string into pairs, refusing duplicate keys"""
        pairs = parse_qsl(payload, keep_blank_values=True, strict_parsing=True)
        keys = [key for key, _ in pairs]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate keys in payload")
        return pairs

    @classmethod
    def canonicalize(cls, payload: str) -> str:
        """
        Build the data-check string: every pair except the signature itself,
        sorted by key, joined as key=value lines.
        """
        pairs = [(k, v) for k, v in cls._split_pairs(payload) if k != SIGNATURE_FIELD]
        return "\n".join(f"{key}={value}" for key, value in sorted(pairs))

    @classmethod
    def derive_secret_key(cls, secret: str) -> bytes:
        return hmac.new(cls.DOMAIN_CONSTANT, secret.encode("utf-8"), hashlib.sha256).digest()

    def sign(self, payload: str, secret: str) -> str:
        """Hex signature Telegram would attach to this payload"""
        data_check_string = self.canonicalize(payload)
        return hmac.new(
            self.derive_secret_key(secret),
            data_check_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def sign_fields(self, fields: Dict[str, str], secret: str) -> str:
        """Encode fields as a query string and append their signature"""
        payload = urlencode(fields)
        return f"{payload}&{SIGNATURE_FIELD}={self.sign(payload, secret)}"

    def verify(self, payload: str, provided_signature: str, secret: str) -> bool:
        """
        Check a payload against the signature Telegram attached to it.

        Args:
            payload: Raw query string; a `hash` pair, if present, is ignored
            provided_signature: Hex signature to compare against
            secret: Bot token

        Returns:
            bool: True only when the signature matches. Never raises.
        """
        if not secret or not provided_signature:
            return False

        try:
            expected = self.sign(payload, secret)
            return hmac.compare_digest(expected, provided_signature)
        except (ValueError, TypeError, UnicodeError) as e:
            logger.debug(
                "Signature verification failed on malformed input",
                extra={"error": str(e)}
            )
            return False
