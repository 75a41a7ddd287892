"""Email deliverability validation.

Steps, cheapest first:
  1. cache hit (free)
  2. syntax        -> invalid, 0
  3. MX lookup     -> invalid, 0 when the domain takes no mail; a failed
                      lookup is unknown, 30 and is not cached
  4. paid verifier -> valid/invalid/risky/unknown = 95/0/50/30 (only when allowed)
  5. DNS-only      -> 50, role alias -20 (risky), free provider -10

Everything except a cache hit or a failed MX lookup is written back to the
cache by email.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from loguru import logger

from lib.contact_discovery.email_checks import (
    email_domain,
    has_mx_records,
    is_free_email,
    is_role_email,
    is_valid_email_syntax,
)
from lib.contact_discovery.models import EmailValidationResult
from lib.providers.base import EmailVerifierProvider, ProviderError
from services.contacts.cache import ContactCache

PAID_STATUS_SCORES = {"valid": 95, "invalid": 0, "risky": 50, "unknown": 30}

DNS_BASE_SCORE = 50
ROLE_PENALTY = 20
FREE_PROVIDER_PENALTY = 10


class EmailValidator:
    """Validate one email at a time; the paid step is opt-in per call."""

    def __init__(
        self,
        cache: ContactCache,
        verifier: Optional[EmailVerifierProvider] = None,
        mx_check: Callable[[str], Awaitable[Optional[bool]]] = has_mx_records,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.verifier = verifier
        self.mx_check = mx_check
        self._sleep = sleep

    async def validate_email(self, email: str, allow_paid_verification: bool = False) -> EmailValidationResult:
        email = email.strip().lower()

        cached = await self.cache.get_cached_email_verification(email)
        if cached:
            meta = cached.metadata
            return EmailValidationResult(
                email=email,
                status=cached.status,
                score=cached.score,
                deliverable=cached.status == "valid",
                mx_records_exist=meta.get("mx_records_exist", cached.status != "invalid"),
                free_email=meta.get("free_email"),
                disposable=meta.get("disposable"),
                role_email=meta.get("role_email"),
                smtp_check=meta.get("smtp_check"),
                reason=meta.get("reason"),
                api_cost_cents=0,
                method="cache",
            )

        if not is_valid_email_syntax(email):
            result = EmailValidationResult(
                email=email, status="invalid", score=0, deliverable=False,
                reason="Invalid email format", method="pattern_only",
            )
            await self._remember(result)
            return result

        role = is_role_email(email)
        free = is_free_email(email)

        mx = await self.mx_check(email_domain(email))
        if mx is False:
            result = EmailValidationResult(
                email=email, status="invalid", score=0, deliverable=False,
                mx_records_exist=False, reason="No MX records found", method="dns_only",
            )
            await self._remember(result)
            return result

        if allow_paid_verification and self.verifier is not None:
            paid = await self._paid_verify(email, role)
            if paid is not None:
                await self._remember(paid)
                return paid

        if mx is None:
            return EmailValidationResult(
                email=email, status="unknown", score=PAID_STATUS_SCORES["unknown"], deliverable=False,
                free_email=free, role_email=role, reason="MX lookup failed", method="dns_only",
            )

        score = DNS_BASE_SCORE
        status = "valid"
        if role:
            score -= ROLE_PENALTY
            status = "risky"
        if free:
            score -= FREE_PROVIDER_PENALTY

        result = EmailValidationResult(
            email=email,
            status=status,
            score=max(0, score),
            deliverable=True,
            mx_records_exist=True,
            free_email=free,
            role_email=role,
            method="dns_only",
        )
        await self._remember(result)
        return result

    async def _paid_verify(self, email: str, role: bool) -> Optional[EmailValidationResult]:
        start = time.monotonic()
        try:
            resp = await self.verifier.verify_email(email)
        except ProviderError as e:
            logger.warning(f"Paid verification failed for {email}, falling back to DNS only: {e}")
            return None

        status = resp.status if resp.status in PAID_STATUS_SCORES else "unknown"
        logger.debug(
            f"{self.verifier.name} verified {email}: {resp.raw_status} -> {status} "
            f"[{time.monotonic() - start:.1f}s]"
        )
        return EmailValidationResult(
            email=email,
            status=status,
            score=PAID_STATUS_SCORES[status],
            deliverable=status == "valid",
            mx_records_exist=True,
            smtp_check=resp.smtp_check,
            free_email=resp.free_email,
            disposable=resp.disposable,
            role_email=role,
            api_cost_cents=resp.cost_cents,
            method="paid_api",
        )

    async def _remember(self, result: EmailValidationResult) -> None:
        metadata = result.model_dump(
            include={"mx_records_exist", "free_email", "disposable", "role_email", "smtp_check", "reason", "method"},
            exclude_none=True,
        )
        await self.cache.cache_email_verification(result.email, result.status, result.score, metadata)

    async def validate_emails_batch(
        self,
        emails: list[str],
        allow_paid_verification: bool = False,
        pause: float = 0.1,
    ) -> list[EmailValidationResult]:
        """Validate sequentially with a short pause. Errors become 'unknown'."""
        results = []
        for i, email in enumerate(emails):
            if i > 0 and pause > 0:
                await self._sleep(pause)
            try:
                results.append(await self.validate_email(email, allow_paid_verification))
            except Exception as e:
                logger.error(f"Email validation failed for {email}: {e}")
                results.append(EmailValidationResult(
                    email=email, status="unknown", score=0, deliverable=False,
                    reason="Validation error", method="pattern_only",
                ))
        return results
