"""Loyalty ledger boundary — staff adjustments and authoritative refreshes."""

import structlog

from storefront.api.client import BackendClient
from storefront.api.errors import BackendError
from storefront.api.schemas import LoyaltyAdjustRequest, UserSummary, wire_id
from storefront.errors import ErrorKind
from storefront.loyalty.balance import LoyaltyBalance, LoyaltyView
from storefront.results import Err, Ok, Result

logger = structlog.get_logger(__name__)


class LoyaltyLedger:
    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def adjust(self, user_id: str, points: int) -> Result[int]:
        """Grant (positive) or deduct (negative) points for a customer."""
        if points == 0:
            return Err.of(ErrorKind.LOYALTY_ADJUSTMENT_FAILED, "Adjustment must be non-zero", user_id=user_id)
        try:
            await self._backend.adjust_loyalty(LoyaltyAdjustRequest(userId=wire_id(str(user_id)), points=points))
        except BackendError as exc:
            logger.warning("Loyalty adjustment failed", user_id=user_id, points=points, error=str(exc))
            return Err.of(ErrorKind.LOYALTY_ADJUSTMENT_FAILED, str(exc), user_id=user_id, points=points)

        logger.info("Loyalty points adjusted", user_id=user_id, points=points)
        return Ok(points)

    async def refresh(self, balance: LoyaltyBalance, user_id: str) -> Result[LoyaltyView]:
        """Reconcile the cached balance against the backend's user record."""
        try:
            users: list[UserSummary] = await self._backend.list_users()
        except BackendError as exc:
            logger.warning("Loyalty refresh failed", user_id=user_id, error=str(exc))
            return Err.of(ErrorKind.LOYALTY_REFRESH_FAILED, str(exc), user_id=user_id)

        user = next((u for u in users if u.id == str(user_id)), None)
        if user is None:
            return Err.of(ErrorKind.LOYALTY_REFRESH_FAILED, f"User {user_id} not found", user_id=user_id)
        return Ok(balance.reconcile(user.points))
