import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import status
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from pydantic import BaseModel

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.progression.models import ClaimAuthorization

logger = get_logger(__name__)

CLAIM_TOKEN_TYPE = "pet_yield_claim"


class ClaimTokenPayload(BaseModel):
    sub: str
    wallet: str
    amount: int
    nonce: str
    type: str
    iat: int
    exp: int


class ClaimAuthorizer:
    """Issues short-lived JWTs that let an on-chain relayer record a validated claim"""

    def __init__(self, secret_key: str, ttl_seconds: int = 300, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("Claim signing secret must not be empty")
        self.secret_key = secret_key
        self.ttl = timedelta(seconds=ttl_seconds)
        self.algorithm = algorithm

    def issue(
        self,
        user_id: str,
        wallet_address: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> ClaimAuthorization:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self.ttl
        nonce = uuid.uuid4().hex

        payload = ClaimTokenPayload(
            sub=user_id,
            wallet=wallet_address,
            amount=amount,
            nonce=nonce,
            type=CLAIM_TOKEN_TYPE,
            iat=int(issued_at.timestamp()),
            exp=int(expires_at.timestamp()),
        )
        token = jwt.encode(payload.model_dump(), self.secret_key, algorithm=self.algorithm)

        logger.info(
            "Claim authorization issued",
            extra={"user_id": user_id, "amount": amount, "nonce": nonce}
        )
        return ClaimAuthorization(
            token=token,
            nonce=nonce,
            wallet_address=wallet_address,
            amount=amount,
            expires_at=expires_at,
        )

    def verify(self, token: str) -> ClaimTokenPayload:
        try:
            payload = ClaimTokenPayload(**jwt.decode(token, self.secret_key, algorithms=[self.algorithm]))
        except ExpiredSignatureError:
            raise ServiceError(
                code=ServiceErrorCode.INVALID_SIGNATURE,
                message="Claim authorization has expired",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        except (InvalidTokenError, ValueError) as e:
            logger.warning("Invalid claim authorization", extra={"error": str(e)})
            raise ServiceError(
                code=ServiceErrorCode.INVALID_SIGNATURE,
                message="Invalid claim authorization",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )

        if payload.type != CLAIM_TOKEN_TYPE:
            raise ServiceError(
                code=ServiceErrorCode.INVALID_SIGNATURE,
                message="Invalid claim authorization",
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        return payload
