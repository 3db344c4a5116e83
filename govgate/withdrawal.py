"""
Withdrawal Gateway

Lets the holder of a recipient capability pull funds that executed
proposals credited to it. The ledger is debited first; the vault is then
told to pay the caller. If the vault call fails in any way the debit is
undone with it.
"""

from __future__ import annotations

from typing import Callable, Mapping

from govgate.config import GateConfig, GateSettings
from govgate.errors import (
    GateFault,
    Unauthorized,
    VaultCallFailed,
    WithdrawalsPaused,
)
from govgate.guard import ReentrancyGuard
from govgate.identity import MAX_AMOUNT, NATIVE_ASSET, normalize_address, require_range
from govgate.ledger import AllowanceLedger
from govgate.receipts import WithdrawalReceipt, create_withdrawal_receipt
from govgate.registry import AuthorizationProvider
from govgate.store import GateStore
from govgate.vault import Vault, check_transfer_return, encode_transfer


class WithdrawalGateway:
    def __init__(
        self,
        settings: GateSettings,
        config: GateConfig,
        authz: AuthorizationProvider,
        store: GateStore,
        ledger: AllowanceLedger,
        vaults: Mapping[str, Vault],
        guard: ReentrancyGuard,
        clock: Callable[[], int],
    ):
        self.settings = settings
        self.config = config
        self.authz = authz
        self.store = store
        self.ledger = ledger
        self.vaults = vaults
        self.guard = guard
        self.clock = clock

    def withdraw(
        self, caller: str, recipient_id: int, vault: str, asset: str, amount: int,
    ) -> WithdrawalReceipt:
        caller = normalize_address(caller)
        vault = normalize_address(vault)
        asset = normalize_address(asset)
        require_range("recipient_id", recipient_id)
        require_range("amount", amount, MAX_AMOUNT)

        with self.guard.entered("withdraw"), self.store.transaction():
            if self.config.withdrawals_paused:
                raise WithdrawalsPaused()
            if not self.authz.is_holder(caller, recipient_id):
                raise Unauthorized(caller, "recipient", recipient_id)

            remaining = self.ledger.debit(vault, recipient_id, asset, amount)
            self.store.emit(caller, "ALLOWANCE_WITHDRAWN", {
                "vault": vault,
                "recipient_id": str(recipient_id),
                "asset": asset,
                "amount": str(amount),
                "remaining": str(remaining),
            })
            self._transfer(vault, asset, caller, amount)

            return create_withdrawal_receipt(
                caller=caller,
                vault=vault,
                recipient_id=recipient_id,
                asset=asset,
                amount=amount,
                remaining=remaining,
                withdrawn_at=self.clock(),
            )

    def _transfer(self, vault_address: str, asset: str, to: str, amount: int) -> None:
        vault = self.vaults.get(vault_address)
        if vault is None:
            raise VaultCallFailed(f"no vault at {vault_address}")

        if asset == NATIVE_ASSET:
            target, value, data = to, amount, b""
        else:
            target, value, data = asset, 0, encode_transfer(to, amount)

        try:
            success, return_data = vault.execute_from_module(
                self.settings.gate_address, target, value, data,
            )
        except GateFault:
            raise
        except Exception as exc:
            raise VaultCallFailed(str(exc)) from exc
        if not success:
            reason = return_data.decode("utf-8", "replace") if return_data else "call reverted"
            raise VaultCallFailed(reason)
        if data:
            check_transfer_return(return_data)
