"""Gymna credit ledger backed by the profiles.gymna_credits column.

All balance mutations go through debit() and credit(). Both use a
compare-and-set update (the write only lands if the column still holds the
value we read), so two requests racing on the same profile cannot both
spend the last credit. A lost race re-reads and tries again.
"""
import logging

from gymna_backend.modules.errors import InsufficientCredits, PersistenceFailed

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
CREDITS_COLUMN = "gymna_credits"

# Fixed price of one generation call.
GYMNA_CALL_COST = 1

LEDGER_MAX_ATTEMPTS = 3


def _read_credits(db, user_id):
    """Raw column value, or None when the profile or the value is missing."""
    try:
        response = db.table(PROFILES_TABLE) \
            .select(CREDITS_COLUMN) \
            .eq("id", user_id) \
            .limit(1) \
            .execute()
    except Exception as e:
        logger.error("Failed to read credits for %s: %s", user_id, e)
        raise PersistenceFailed("Failed to read credits") from e

    rows = response.data or []
    if not rows:
        return None
    return rows[0].get(CREDITS_COLUMN)


def _as_balance(raw):
    return max(int(raw or 0), 0)


def _compare_and_set(db, user_id, expected, new_balance):
    query = db.table(PROFILES_TABLE) \
        .update({CREDITS_COLUMN: new_balance}) \
        .eq("id", user_id)
    if expected is None:
        query = query.is_(CREDITS_COLUMN, "null")
    else:
        query = query.eq(CREDITS_COLUMN, expected)

    try:
        response = query.execute()
    except Exception as e:
        logger.error("Failed to write credits for %s: %s", user_id, e)
        raise PersistenceFailed("Failed to update credits") from e
    return bool(response.data)


def get_balance(db, user_id):
    """Current credit balance. A missing profile or null column counts as 0."""
    return _as_balance(_read_credits(db, user_id))


def debit(db, user_id, amount=GYMNA_CALL_COST):
    """Take `amount` credits. Raises InsufficientCredits instead of going negative."""
    for attempt in range(1, LEDGER_MAX_ATTEMPTS + 1):
        raw = _read_credits(db, user_id)
        balance = _as_balance(raw)
        if balance < amount:
            raise InsufficientCredits()
        if _compare_and_set(db, user_id, raw, balance - amount):
            logger.info("Debited %s credit(s) from %s, balance now %s", amount, user_id, balance - amount)
            return balance - amount
        logger.warning("Credit debit for %s lost a race (attempt %s)", user_id, attempt)

    raise PersistenceFailed("Credits changed concurrently, please try again")


def credit(db, user_id, amount=GYMNA_CALL_COST):
    """Give back `amount` credits on top of whatever the balance is now."""
    for attempt in range(1, LEDGER_MAX_ATTEMPTS + 1):
        raw = _read_credits(db, user_id)
        balance = _as_balance(raw)
        if _compare_and_set(db, user_id, raw, balance + amount):
            logger.info("Credited %s credit(s) to %s, balance now %s", amount, user_id, balance + amount)
            return balance + amount
        logger.warning("Credit refund for %s lost a race (attempt %s)", user_id, attempt)

    raise PersistenceFailed("Credits changed concurrently, refund not applied")
