"""
Parimutuel odds engine.

The payout multiplier for an option is the ratio of the whole pool to the
stake already sitting on that option:

    odds = total_pool / option_pool          (floored at ODDS_FLOOR)

Edge prices:
    option_pool == 0  ->  ODDS_EMPTY_OPTION  (nobody has backed it yet)
    total_pool == 0   ->  ODDS_FIRST_STAKE   (first stake on the event)

Callers price a new wager by passing the pool *including* that wager, so the
locked price already reflects the bettor's own contribution.
"""

from poolbet.config import settings


def odds(
    total_pool: float,
    option_pool: float,
    *,
    floor: float | None = None,
    empty_option: float | None = None,
    first_stake: float | None = None,
) -> float:
    """Compute the current payout multiplier for one option.

    Args:
        total_pool: Amount staked on every option of the event.
        option_pool: Amount staked on the option being priced.
        floor: Minimum multiplier (defaults to settings.ODDS_FLOOR).
        empty_option: Price for an option with no stake yet.
        first_stake: Price when the event has no stake at all.

    Raises:
        ValueError: If either pool is negative or option_pool > total_pool.
    """
    floor = settings.ODDS_FLOOR if floor is None else floor
    empty_option = settings.ODDS_EMPTY_OPTION if empty_option is None else empty_option
    first_stake = settings.ODDS_FIRST_STAKE if first_stake is None else first_stake

    if total_pool < 0 or option_pool < 0:
        raise ValueError("Pool amounts must be non-negative")
    if option_pool > total_pool:
        raise ValueError("Option pool cannot exceed the total pool")

    if option_pool == 0:
        return empty_option
    if total_pool == 0:
        return first_stake

    return max(total_pool / option_pool, floor)


def price_new_wager(total_pool: float, option_pool: float, amount: float) -> float:
    """Price a wager of `amount` against the pool as it stands before it."""
    return odds(total_pool + amount, option_pool + amount)


def odds_by_option(pools: dict[str, float]) -> dict[str, float]:
    """Current odds for every option given a mapping of option -> staked amount."""
    total = sum(pools.values())
    return {option: odds(total, amount) for option, amount in pools.items()}
