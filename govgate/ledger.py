"""
Allowance Ledger

Spendable balance per (vault, recipient capability, asset). Credited only
when a proposal executes, debited only by a withdrawal. There is no other
write path, and both writes take amounts in 0..MAX_AMOUNT only.
"""

from __future__ import annotations

from govgate.errors import AllowanceExceeded, LedgerOverflow
from govgate.identity import MAX_AMOUNT, normalize_address, require_range
from govgate.store import GateStore, LedgerKey


def ledger_key(vault: str, recipient_id: int, asset: str) -> LedgerKey:
    return (normalize_address(vault), int(recipient_id), normalize_address(asset))


class AllowanceLedger:
    def __init__(self, store: GateStore):
        self.store = store

    def balance_of(self, vault: str, recipient_id: int, asset: str) -> int:
        return self.store.balance(ledger_key(vault, recipient_id, asset))

    def credit(self, vault: str, recipient_id: int, asset: str, amount: int) -> int:
        """Add *amount*; raises LedgerOverflow rather than capping."""
        require_range("amount", amount, MAX_AMOUNT)
        key = ledger_key(vault, recipient_id, asset)
        balance = self.store.balance(key)
        if balance + amount > MAX_AMOUNT:
            raise LedgerOverflow(balance, amount)
        self.store.record_credit(key, amount)
        return balance + amount

    def debit(self, vault: str, recipient_id: int, asset: str, amount: int) -> int:
        require_range("amount", amount, MAX_AMOUNT)
        key = ledger_key(vault, recipient_id, asset)
        remaining = self.store.balance(key)
        if amount > remaining:
            raise AllowanceExceeded(remaining, amount)
        self.store.record_debit(key, amount)
        return remaining - amount

    def is_conserved(self) -> bool:
        """credits - debits == balance >= 0 for every key ever touched."""
        for key in self.store.ledger_keys():
            balance = self.store.balance(key)
            if balance < 0:
                return False
            if self.store.credited(key) - self.store.debited(key) != balance:
                return False
        return True
