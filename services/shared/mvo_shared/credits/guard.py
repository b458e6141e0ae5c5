"""Credit guard: gate a caller-supplied action behind a credit cost."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from ..errors import InsufficientCredits
from ..logging.config import get_logger
from .ledger import CreditBalance, CreditLedger
from .plans import Feature, feature_cost

logger = get_logger(__name__)

T = TypeVar("T")

Action = Callable[[], Union[T, Awaitable[T]]]


@dataclass(frozen=True)
class AuthorizationResult(Generic[T]):
    """Outcome of a guarded action.

    When refused, ``shortfall`` tells the caller how many credits are
    missing so it can render an upgrade prompt. ``remaining`` is None for
    unlimited plans.
    """

    granted: bool
    required: int
    remaining: int | None
    shortfall: int = 0
    value: T | None = None
    balance: CreditBalance | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "granted": self.granted,
            "required": self.required,
            "remaining": self.remaining,
            "shortfall": self.shortfall,
        }


class CreditGuard:
    """Deducts credits, then runs the action.

    Credits are final once committed: if the action fails afterwards the
    error propagates and nothing is refunded.
    """

    def __init__(self, ledger: CreditLedger) -> None:
        self.ledger = ledger

    async def authorize(
        self,
        user_id: str,
        cost: int,
        action: Action[T],
        *,
        feature: str | None = None,
        idempotency_key: str | None = None,
    ) -> AuthorizationResult[T]:
        """Charge ``cost`` credits and invoke ``action`` if the charge succeeds.

        Only InsufficientCredits is turned into a refusal; storage and
        validation errors propagate unchanged.
        """
        # deduct() refreshes a stale record before checking the balance
        try:
            balance = await self.ledger.deduct(
                user_id,
                cost,
                feature=feature,
                idempotency_key=idempotency_key,
            )
        except InsufficientCredits as exc:
            return self._refuse(user_id, cost, exc.remaining, feature)

        value = action()
        if inspect.isawaitable(value):
            value = await value

        return AuthorizationResult(
            granted=True,
            required=cost,
            remaining=balance.remaining,
            value=value,
            balance=balance,
        )

    async def authorize_feature(
        self,
        user_id: str,
        feature: Feature | str,
        action: Action[T],
        *,
        idempotency_key: str | None = None,
    ) -> AuthorizationResult[T]:
        """Same as authorize, priced from the feature cost table."""
        feature = Feature(feature)
        return await self.authorize(
            user_id,
            feature_cost(feature),
            action,
            feature=feature.value,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def _refuse(
        user_id: str,
        cost: int,
        remaining: int,
        feature: str | None,
    ) -> AuthorizationResult[Any]:
        shortfall = max(0, cost - remaining)
        logger.info(
            "Action refused for insufficient credits",
            user_id=user_id,
            feature=feature,
            required=cost,
            remaining=remaining,
            shortfall=shortfall,
        )
        return AuthorizationResult(
            granted=False,
            required=cost,
            remaining=remaining,
            shortfall=shortfall,
        )
