"""Credit ledger: source of truth for a user's remaining daily allowance.

Balances are checked and decremented with a single conditional UPDATE so
concurrent requests from several tabs or devices can never spend more than
the daily allotment:

    UPDATE "UserCredits"
       SET used_today = used_today + :amount
     WHERE user_id = :user_id
       AND plan = :plan
       AND last_reset_date = :day
       AND used_today + :amount <= :allotment

Zero affected rows means the balance moved underneath us (another
deduction, a plan change or a reset) and the decision is re-evaluated.
:day is the later of the local date and the stored reset date, so an
instance whose clock has not yet crossed midnight can still charge a row
another instance already reset.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import get_settings
from ..db.models import CreditUsage, UserCredit
from ..db.timeouts import storage_call
from ..errors import CreditContention, InsufficientCredits, StorageUnavailable
from ..logging.config import get_logger
from .plans import DEFAULT_PLAN, PlanTier, daily_allotment, parse_plan

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_STORAGE_TIMEOUT = 5.0
DEFAULT_READ_ATTEMPTS = 3
# Conditional update re-evaluations before giving up on a contended row
MAX_DEDUCT_ATTEMPTS = 3


@dataclass(frozen=True)
class CreditBalance:
    """A user's credit record as seen on a given day."""

    user_id: str
    plan: PlanTier
    used_today: int
    last_reset_date: date

    @property
    def daily_allotment(self) -> int | None:
        return daily_allotment(self.plan)

    @property
    def is_unlimited(self) -> bool:
        return self.daily_allotment is None

    @property
    def remaining(self) -> int | None:
        """Credits left today, None when the plan is unlimited."""
        allotment = self.daily_allotment
        if allotment is None:
            return None
        return max(0, allotment - self.used_today)

    def can_afford(self, cost: int) -> bool:
        return self.is_unlimited or self.remaining >= cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "plan": self.plan.value,
            "daily_allotment": self.daily_allotment,
            "used_today": self.used_today,
            "remaining": self.remaining,
            "unlimited": self.is_unlimited,
            "last_reset_date": self.last_reset_date.isoformat(),
        }


def refresh_if_stale(record: CreditBalance, today: date) -> CreditBalance:
    """Return the record reset for ``today`` if it was last reset earlier."""
    if record.last_reset_date < today:
        return replace(record, used_today=0, last_reset_date=today)
    return record


def today_in(timezone_name: str = "UTC") -> date:
    """Current calendar date in the given time zone."""
    return datetime.now(ZoneInfo(timezone_name)).date()


def _validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Credit amount must be a positive integer, got {amount!r}")


def _log_read_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Retrying credit balance read",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


class CreditLedger:
    """Reads and mutates per-user credit records."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], date] | None = None,
        timeout_seconds: float = DEFAULT_STORAGE_TIMEOUT,
        read_attempts: int = DEFAULT_READ_ATTEMPTS,
    ) -> None:
        self.session = session
        self._clock = clock or today_in
        self.timeout_seconds = timeout_seconds
        self.read_attempts = read_attempts

    @classmethod
    def from_settings(
        cls,
        session: AsyncSession,
        clock: Callable[[], date] | None = None,
    ) -> CreditLedger:
        """Build a ledger using the configured timeout, retries and time zone."""
        settings = get_settings().credits
        timezone_name = settings.timezone
        return cls(
            session,
            clock=clock or (lambda: today_in(timezone_name)),
            timeout_seconds=settings.storage_timeout_seconds,
            read_attempts=settings.read_retry_attempts,
        )

    def today(self) -> date:
        return self._clock()

    # --- Reads ---

    async def load(self, user_id: str) -> CreditBalance:
        """Fetch the user's balance, already refreshed for today.

        Users without a record are treated as new free-plan users; nothing
        is persisted until the first mutation.

        Args:
            user_id: The user whose balance to read.

        Returns:
            The balance as of today in the configured time zone.

        Raises:
            StorageUnavailable: If the store stays unreachable after retries.
        """
        today = self.today()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.read_attempts),
            wait=wait_exponential(multiplier=0.2, max=2),
            retry=retry_if_exception_type(StorageUnavailable),
            before_sleep=_log_read_retry,
            reraise=True,
        ):
            with attempt:
                try:
                    row = await self._fetch(user_id)
                except StorageUnavailable:
                    # A dropped connection leaves the session unusable until rolled back
                    await self._run("rollback", self.session.rollback())
                    raise
        if row is None:
            return CreditBalance(user_id, DEFAULT_PLAN, 0, today)
        return refresh_if_stale(self._to_balance(row), today)

    async def can_afford(self, user_id: str, cost: int) -> bool:
        """Read-only check used to render a confirmation before spending."""
        _validate_amount(cost)
        balance = await self.load(user_id)
        return balance.can_afford(cost)

    # --- Mutations ---

    async def deduct(
        self,
        user_id: str,
        amount: int,
        *,
        feature: str | None = None,
        idempotency_key: str | None = None,
    ) -> CreditBalance:
        """Spend ``amount`` credits from today's allotment.

        A repeated ``idempotency_key`` returns the current balance without
        charging again. Never retried automatically.

        Raises:
            ValueError: If amount is not a positive integer.
            InsufficientCredits: If the remaining balance is below amount.
            CreditContention: If concurrent writers won every conditional update.
            StorageUnavailable: If the store cannot be reached.
        """
        _validate_amount(amount)
        today = self.today()

        if idempotency_key and await self._usage_exists(user_id, idempotency_key):
            logger.info(
                "Duplicate deduction ignored",
                user_id=user_id,
                idempotency_key=idempotency_key,
            )
            return await self._current(user_id, today)

        await self._get_or_create(user_id, today)

        for _ in range(MAX_DEDUCT_ATTEMPTS):
            await self._persist_refresh(user_id, today)
            row = await self._fetch(user_id)
            balance = refresh_if_stale(self._to_balance(row), today)
            if not balance.can_afford(amount):
                await self._commit()
                logger.info(
                    "Deduction refused",
                    user_id=user_id,
                    plan=balance.plan.value,
                    required=amount,
                    remaining=balance.remaining,
                )
                raise InsufficientCredits(amount, balance.remaining or 0)
            # Another instance may already be on the next day
            effective_day = max(today, row.last_reset_date)
            if await self._conditional_deduct(row, amount, effective_day):
                break
            logger.debug("Credit row changed concurrently, re-evaluating", user_id=user_id)
        else:
            await self._commit()
            logger.warning(
                "Deduction abandoned after repeated contention",
                user_id=user_id,
                amount=amount,
                attempts=MAX_DEDUCT_ATTEMPTS,
            )
            raise CreditContention(user_id, amount)

        self.session.add(
            CreditUsage(
                user_id=user_id,
                amount=amount,
                feature=feature,
                idempotency_key=idempotency_key,
            )
        )
        try:
            await self._run("record usage", self.session.flush())
        except IntegrityError:
            # A concurrent request with the same key committed first; undo ours.
            await self.session.rollback()
            logger.info(
                "Duplicate deduction rolled back",
                user_id=user_id,
                idempotency_key=idempotency_key,
            )
            return await self._current(user_id, today)
        await self._commit()

        updated = await self._current(user_id, today)
        logger.info(
            "Credits deducted",
            user_id=user_id,
            amount=amount,
            feature=feature,
            used_today=updated.used_today,
            remaining=updated.remaining,
        )
        return updated

    async def set_plan(self, user_id: str, plan: PlanTier | str) -> CreditBalance:
        """Change the user's plan and grant a fresh quota.

        Raises:
            InvalidPlan: If plan is outside the plan enumeration.
        """
        tier = parse_plan(plan)
        today = self.today()
        row = await self._get_or_create(user_id, today)
        previous = row.plan

        await self._run(
            "set plan",
            self.session.execute(
                update(UserCredit)
                .where(UserCredit.user_id == user_id)
                .values(plan=tier.value, used_today=0, last_reset_date=today)
                .execution_options(synchronize_session=False)
            ),
        )
        await self._commit()

        logger.info(
            "Plan changed",
            user_id=user_id,
            previous_plan=previous,
            plan=tier.value,
        )
        return CreditBalance(user_id, tier, 0, today)

    # --- Internals ---

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        return await storage_call(operation, awaitable, self.timeout_seconds)

    async def _commit(self) -> None:
        await self._run("commit", self.session.commit())

    async def _fetch(self, user_id: str) -> UserCredit | None:
        result = await self._run(
            "load",
            self.session.execute(
                select(UserCredit)
                .where(UserCredit.user_id == user_id)
                .execution_options(populate_existing=True)
            ),
        )
        return result.scalar_one_or_none()

    async def _current(self, user_id: str, today: date) -> CreditBalance:
        row = await self._fetch(user_id)
        if row is None:
            return CreditBalance(user_id, DEFAULT_PLAN, 0, today)
        return refresh_if_stale(self._to_balance(row), today)

    async def _get_or_create(self, user_id: str, today: date) -> UserCredit:
        row = await self._fetch(user_id)
        if row is not None:
            return row

        row = UserCredit(
            user_id=user_id,
            plan=DEFAULT_PLAN.value,
            used_today=0,
            last_reset_date=today,
        )
        self.session.add(row)
        try:
            await self._run("create", self.session.flush())
        except IntegrityError:
            # Created by a concurrent request
            await self.session.rollback()
            row = await self._fetch(user_id)
            if row is None:
                raise
            return row

        logger.info("Created credit record", user_id=user_id, plan=row.plan)
        return row

    async def _persist_refresh(self, user_id: str, today: date) -> None:
        await self._run(
            "refresh",
            self.session.execute(
                update(UserCredit)
                .where(
                    UserCredit.user_id == user_id,
                    UserCredit.last_reset_date < today,
                )
                .values(used_today=0, last_reset_date=today)
                .execution_options(synchronize_session=False)
            ),
        )

    async def _conditional_deduct(self, row: UserCredit, amount: int, day: date) -> bool:
        conditions = [
            UserCredit.user_id == row.user_id,
            UserCredit.plan == row.plan,
            UserCredit.last_reset_date == day,
        ]
        allotment = daily_allotment(row.plan)
        if allotment is not None:
            conditions.append(UserCredit.used_today + amount <= allotment)

        result = await self._run(
            "deduct",
            self.session.execute(
                update(UserCredit)
                .where(*conditions)
                .values(used_today=UserCredit.used_today + amount)
                .execution_options(synchronize_session=False)
            ),
        )
        return result.rowcount == 1

    async def _usage_exists(self, user_id: str, idempotency_key: str) -> bool:
        result = await self._run(
            "load usage",
            self.session.execute(
                select(CreditUsage.usage_id).where(
                    CreditUsage.user_id == user_id,
                    CreditUsage.idempotency_key == idempotency_key,
                )
            ),
        )
        return result.first() is not None

    @staticmethod
    def _to_balance(row: UserCredit) -> CreditBalance:
        return CreditBalance(
            user_id=row.user_id,
            plan=parse_plan(row.plan),
            used_today=row.used_today,
            last_reset_date=row.last_reset_date,
        )
