"""
auth.py - API key + JWT authentication.

Flows:
  1. POST /api/auth/register -> account + API key
  2. POST /api/auth/login {api_key} -> JWT (HS256)
  3. Requests carry Authorization: Bearer <jwt> or X-API-Key

resolve_account() checks the JWT first, then the API key.  The configured
admin key resolves to a synthetic admin account.
"""

import logging
import secrets
import time
from typing import TYPE_CHECKING, Optional

import jwt as pyjwt
from fastapi import Header, HTTPException

from hashledger.config import ADMIN_ACCOUNT_ID

if TYPE_CHECKING:
    from hashledger.account import AccountService
    from hashledger.storage import StorageManager

logger = logging.getLogger("auth")

DEFAULT_ADMIN_KEY = "admin-test-key-do-not-use-in-production"
JWT_TTL = 86400  # 24 hours


def _with_role(acct: dict) -> dict:
    acct = dict(acct)
    acct["role"] = "admin" if acct.get("is_admin") else "user"
    return acct


class AuthService:
    """API key / JWT authentication and role checks."""

    def __init__(
        self,
        storage: "StorageManager",
        accounts: "AccountService",
        admin_key: str = DEFAULT_ADMIN_KEY,
        jwt_secret: str = "",
    ):
        self.storage = storage
        self.accounts = accounts
        self._admin_key = admin_key
        self._jwt_secret = jwt_secret or secrets.token_hex(32)
        if not jwt_secret:
            logger.warning(
                "No --jwt-secret provided; generated ephemeral secret "
                "(JWTs will invalidate on restart)"
            )

    @staticmethod
    def generate_api_key() -> str:
        return secrets.token_hex(16)

    # -------------------------------------------------------------------
    # JWT
    # -------------------------------------------------------------------

    def issue_jwt(self, account_id: str, role: str) -> str:
        now = int(time.time())
        payload = {
            "sub": account_id,
            "role": role,
            "account_id": account_id,
            "iat": now,
            "exp": now + JWT_TTL,
        }
        return pyjwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def decode_jwt(self, token: str) -> Optional[dict]:
        try:
            return pyjwt.decode(token, self._jwt_secret, algorithms=["HS256"])
        except pyjwt.ExpiredSignatureError:
            return None
        except pyjwt.InvalidTokenError:
            return None

    # -------------------------------------------------------------------
    # Registration / login
    # -------------------------------------------------------------------

    async def register(self, account_id: str, referral_code: Optional[str] = None) -> dict:
        api_key = self.generate_api_key()
        acct = await self.accounts.create_account(account_id, referred_by=referral_code, api_key=api_key)
        logger.info("Registered account %s", acct["account_id"])
        return acct

    async def login(self, api_key: str) -> Optional[dict]:
        """Exchange an API key for a JWT.  None if the key is unknown."""
        acct = await self._lookup_key(api_key)
        if acct is None:
            return None
        token = self.issue_jwt(acct["account_id"], acct["role"])
        return {"token": token, "account_id": acct["account_id"], "role": acct["role"]}

    async def _lookup_key(self, api_key: str) -> Optional[dict]:
        if not api_key:
            return None
        if secrets.compare_digest(api_key, self._admin_key):
            return {"account_id": ADMIN_ACCOUNT_ID, "role": "admin", "is_admin": True}
        async with self.storage.reading():
            acct = await self.storage.accounts.get_by_api_key(api_key)
        return _with_role(acct) if acct else None

    # -------------------------------------------------------------------
    # FastAPI dependencies
    # -------------------------------------------------------------------

    async def resolve_account(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> Optional[dict]:
        """Resolve JWT or API key to an account.  None if no valid credentials."""
        if authorization.startswith("Bearer "):
            claims = self.decode_jwt(authorization[7:])
            if claims:
                if claims.get("account_id") == ADMIN_ACCOUNT_ID and claims.get("role") == "admin":
                    return {"account_id": ADMIN_ACCOUNT_ID, "role": "admin", "is_admin": True}
                async with self.storage.reading():
                    acct = await self.storage.accounts.get(claims.get("account_id", ""))
                if acct:
                    return _with_role(acct)
        return await self._lookup_key(x_api_key)

    async def get_current_account(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> dict:
        acct = await self.resolve_account(x_api_key, authorization)
        if acct is None:
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid credentials. Pass Authorization: Bearer <jwt> or X-API-Key header.",
            )
        return acct

    async def require_user(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> dict:
        """A real ledger account (the synthetic admin has no balances)."""
        acct = await self.get_current_account(x_api_key, authorization)
        if acct["account_id"] == ADMIN_ACCOUNT_ID:
            raise HTTPException(status_code=403, detail="A ledger account is required")
        return acct

    async def require_admin(
        self,
        x_api_key: str = Header(default=""),
        authorization: str = Header(default=""),
    ) -> dict:
        acct = await self.get_current_account(x_api_key, authorization)
        if acct["role"] != "admin":
            raise HTTPException(status_code=403, detail="Admin access required")
        return acct
