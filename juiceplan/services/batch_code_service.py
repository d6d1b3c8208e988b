"""
Batch Code Service - human-typeable production batch codes.

A code is a 2-character product prefix followed by a 6-character random
suffix, e.g. "PJ7KX2MQ" for "Orange Juice" (O is substituted by P).
Suffix characters come from an alphabet without 0, O, 1, I and L.

Uniqueness is checked against existing production batches here, but the
unique index on production_batches.batch_code is what guarantees it; the
planner retries with a fresh code when an insert conflicts.
"""

import logging
import random
import re
from contextlib import nullcontext
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from juiceplan.models import Product, ProductionBatch
from juiceplan.services.database import session_scope
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.utils.constants import (
    BATCH_CODE_ALPHABET,
    BATCH_CODE_FALLBACK_PREFIX,
    BATCH_CODE_MAX_ATTEMPTS,
    BATCH_CODE_PREFIX_LENGTH,
    BATCH_CODE_PREFIX_SUBSTITUTIONS,
    BATCH_CODE_SUFFIX_LENGTH,
)

logger = get_service_logger(__name__)

_system_random = random.SystemRandom()


def derive_prefix(name: Optional[str]) -> str:
    """
    Derive the 2-character code prefix from a product's Latin name.

    Takes the first ASCII letter or digit of each whitespace-separated word,
    uppercases, truncates to 2 characters and substitutes confusable
    characters (O->P, I->J, 0->2, 1->3). Names without usable characters
    give "PR".

    Example:
        >>> derive_prefix("Orange Juice")
        'PJ'
        >>> derive_prefix("")
        'PR'
    """
    initials = []
    for word in (name or "").split():
        match = re.search(r"[A-Za-z0-9]", word)
        if match:
            initials.append(match.group(0).upper())

    prefix = "".join(initials)[:BATCH_CODE_PREFIX_LENGTH]
    if not prefix:
        prefix = BATCH_CODE_FALLBACK_PREFIX

    return "".join(BATCH_CODE_PREFIX_SUBSTITUTIONS.get(ch, ch) for ch in prefix)


def random_suffix(rng: Optional[random.Random] = None) -> str:
    """Random suffix drawn from the unambiguous batch code alphabet."""
    rng = rng or _system_random
    return "".join(rng.choice(BATCH_CODE_ALPHABET) for _ in range(BATCH_CODE_SUFFIX_LENGTH))


def batch_code_exists(batch_code: str, *, session=None) -> bool:
    """Check whether a production batch already uses the code."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as sess:
        return (
            sess.query(ProductionBatch.id)
            .filter(ProductionBatch.batch_code == batch_code)
            .first()
            is not None
        )


def generate_batch_code(
    product: Product,
    production_date: Optional[date] = None,
    *,
    session=None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Generate a production batch code for a product.

    The prefix is derived once from product.name_en (falling back to
    product.name); only the suffix is regenerated on collision. The
    production date does not appear in the code.

    If the uniqueness lookup fails, the failure is logged and the current
    candidate is returned; the unique index catches any duplicate at
    insert time.

    Args:
        product: Product being planned
        production_date: Planned production date (kept for the call
            signature used by the planner; not encoded)
        session: Optional database session for the uniqueness lookup
        rng: Optional random source (tests pass a seeded Random)

    Returns:
        An 8-character batch code
    """
    prefix = derive_prefix(product.name_en or product.name)
    candidate = prefix + random_suffix(rng)

    for attempt in range(1, BATCH_CODE_MAX_ATTEMPTS + 1):
        try:
            if not batch_code_exists(candidate, session=session):
                return candidate
        except SQLAlchemyError as e:
            log_operation(
                logger,
                operation="generate_batch_code",
                outcome="lookup_failed",
                level=logging.WARNING,
                batch_code=candidate,
                error=str(e),
            )
            return candidate

        log_operation(
            logger,
            operation="generate_batch_code",
            outcome="collision",
            level=logging.DEBUG,
            batch_code=candidate,
            attempt=attempt,
        )
        candidate = prefix + random_suffix(rng)

    logger.warning(
        f"No unused batch code found after {BATCH_CODE_MAX_ATTEMPTS} attempts "
        f"for prefix {prefix}; returning {candidate}"
    )
    return candidate
