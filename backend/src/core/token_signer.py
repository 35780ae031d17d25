"""Access token signing and verification (HS256 JWT)."""
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from services.exceptions import InvalidTokenError


@dataclass(frozen=True)
class AccessTokenClaims:
    """Identity claims embedded in an access token."""

    user_id: UUID
    email: str
    role: str
    issuer: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None


class TokenSigner:
    """
    Signs and verifies stateless access tokens with a server-side secret.

    Examples
    --------
    >>> signer = TokenSigner(secret="your-secret-key", issuer="learnhub")
    >>> claims = AccessTokenClaims(user_id, "a@x.com", "user")
    >>> token, expires_at = signer.sign(claims, timedelta(hours=1))
    >>> signer.verify(token).user_id == user_id
    True
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str, issuer: str) -> None:
        if not secret:
            raise ValueError("JWT secret key cannot be empty")
        self._secret = secret
        self._issuer = issuer

    def sign(
        self,
        claims: AccessTokenClaims,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> tuple[str, datetime]:
        """
        Create a signed access token.

        Args:
            claims: Identity to embed (issuer and timestamps are filled in here).
            ttl: Lifetime of the token.
            now: Issue time, defaults to the current UTC time.

        Returns:
            Tuple of (encoded token, expiry timestamp).
        """
        issued_at = now or datetime.now(UTC)
        expires_at = issued_at + ttl
        payload = {
            "sub": str(claims.user_id),
            "user_id": str(claims.user_id),
            "email": claims.email,
            "role": claims.role,
            "iss": self._issuer,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)
        return token, expires_at

    def verify(self, token: str) -> AccessTokenClaims:
        """
        Verify signature, issuer and expiry, and decode the claims.

        Raises:
            InvalidTokenError: If the token is expired, forged, or malformed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.ALGORITHM],
                issuer=self._issuer,
                options={"require": ["sub", "exp", "iat", "iss"]},
            )
            return AccessTokenClaims(
                user_id=UUID(payload["sub"]),
                email=payload["email"],
                role=payload["role"],
                issuer=payload["iss"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except jwt.InvalidIssuerError as e:
            raise InvalidTokenError("Invalid issuer") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError("Invalid token") from e
        except (KeyError, ValueError, TypeError) as e:
            raise InvalidTokenError("Malformed token payload") from e
