"""
Constant Product Market Maker (CPMM) swap math.

Integer-only quote functions used by the reference swap venue
(`powerperp.state.pools`). Rounding always favours the pool:

- fee = ceil(gross_in * fee_bps / 10_000), charged on the gross input,
- exact-in output is floored,
- exact-out input is ceiled (twice: once for the curve, once for the fee).

Invariant: after each swap, new_reserve_in * new_reserve_out >= k.
"""

from __future__ import annotations

from dataclasses import dataclass

BPS_DENOM = 10_000


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _ceil_div_nonneg(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (numerator + denominator - 1) // denominator


def _check_reserves(reserve_in: int, reserve_out: int, fee_bps: int) -> None:
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(f"cannot swap against an empty reserve: ({reserve_in}, {reserve_out})")
    if not (0 <= fee_bps < BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOM}): {fee_bps}")


@dataclass(frozen=True)
class SwapQuote:
    amount_in: int
    amount_out: int
    fee_total: int
    new_reserve_in: int
    new_reserve_out: int


def compute_fee_total(gross_in: int, fee_bps: int) -> int:
    """`fee_total = ceil(gross_in * fee_bps / 10_000)`."""
    _require_int("gross_in", gross_in)
    _require_int("fee_bps", fee_bps)
    if gross_in < 0:
        raise ValueError(f"gross_in must be non-negative: {gross_in}")
    return _ceil_div_nonneg(gross_in * fee_bps, BPS_DENOM)


def swap_exact_in(reserve_in: int, reserve_out: int, amount_in: int, fee_bps: int) -> SwapQuote:
    """
    Quote an exact-in swap.

        fee = ceil(amount_in * fee_bps / 10_000)
        net_in = amount_in - fee
        amount_out = floor(reserve_out * net_in / (reserve_in + net_in))

    The whole gross input (fee included) stays in the pool.

    Raises:
        ValueError: On invalid inputs or a zero output.
    """
    for name, v in (("reserve_in", reserve_in), ("reserve_out", reserve_out), ("amount_in", amount_in)):
        _require_int(name, v)
    _check_reserves(reserve_in, reserve_out, fee_bps)
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {amount_in}")

    fee_total = compute_fee_total(amount_in, fee_bps)
    net_in = amount_in - fee_total
    if net_in <= 0:
        raise ValueError("net_in must be positive after fees")

    amount_out = (reserve_out * net_in) // (reserve_in + net_in)
    if amount_out <= 0:
        raise ValueError("amount_out is zero (trade too small)")

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        fee_total=fee_total,
        new_reserve_in=reserve_in + amount_in,
        new_reserve_out=reserve_out - amount_out,
    )


def swap_exact_out(reserve_in: int, reserve_out: int, amount_out: int, fee_bps: int) -> SwapQuote:
    """
    Quote an exact-out swap.

        net_in = ceil(reserve_in * amount_out / (reserve_out - amount_out))
        amount_in = ceil(net_in * 10_000 / (10_000 - fee_bps))

    Reserves are updated for the requested ``amount_out`` even when the paid
    input would have bought slightly more under exact-in rounding.

    Raises:
        ValueError: On invalid inputs or an attempt to drain the reserve.
    """
    for name, v in (("reserve_in", reserve_in), ("reserve_out", reserve_out), ("amount_out", amount_out)):
        _require_int(name, v)
    _check_reserves(reserve_in, reserve_out, fee_bps)
    if amount_out <= 0:
        raise ValueError(f"amount_out must be positive: {amount_out}")
    if amount_out >= reserve_out:
        raise ValueError(
            f"Cannot drain full reserve: amount_out ({amount_out}) >= reserve_out ({reserve_out})"
        )

    net_in = _ceil_div_nonneg(reserve_in * amount_out, reserve_out - amount_out)
    amount_in = _ceil_div_nonneg(net_in * BPS_DENOM, BPS_DENOM - fee_bps)

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        fee_total=compute_fee_total(amount_in, fee_bps),
        new_reserve_in=reserve_in + amount_in,
        new_reserve_out=reserve_out - amount_out,
    )
