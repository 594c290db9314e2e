from __future__ import annotations

"""Value ledger.

Balances live in state["balances"] as {account_id: int}. The platform's
custody account is an ordinary entry there, keyed by the configured
custody id, so fees and escrow are visible and sweepable like any other
balance.
"""

from typing import Any, Dict

from storemarket.runtime.errors import MarketError
from storemarket.runtime.state_invariants import ensure_state

Json = Dict[str, Any]


class BalanceLedger:
    def __init__(self, state: Json) -> None:
        self._balances: Dict[str, int] = ensure_state(state)["balances"]

    def balance_of(self, account_id: str) -> int:
        try:
            return int(self._balances.get(str(account_id), 0))
        except (TypeError, ValueError):
            return 0

    def credit(self, account_id: str, amount: int) -> None:
        amt = int(amount)
        if amt < 0:
            raise MarketError.invalid_amount("negative_credit", {"account": account_id, "amount": amt})
        self._balances[str(account_id)] = self.balance_of(account_id) + amt

    def transfer(self, amount: int, frm: str, to: str) -> None:
        """Move `amount` from `frm` to `to`.

        Raises MarketError(insufficient_funds) without touching either
        balance when `frm` cannot cover it.
        """
        amt = int(amount)
        if amt < 0:
            raise MarketError.invalid_amount("negative_transfer", {"amount": amt})
        if amt == 0 or frm == to:
            return

        fb = self.balance_of(frm)
        if fb < amt:
            raise MarketError.insufficient_funds(
                "insufficient_funds", {"account": frm, "balance": fb, "amount": amt}
            )

        self._balances[str(frm)] = fb - amt
        self._balances[str(to)] = self.balance_of(to) + amt


__all__ = ["BalanceLedger"]
