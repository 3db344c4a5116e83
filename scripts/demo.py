#!/usr/bin/env python3
"""
Governance Gate — End-to-End Demo Script

Walks a funding proposal through the gate: propose, approve, execute,
withdraw, then shows the guard rails (id reuse, over-withdrawal, reject).

Usage:
    1. uvicorn main:app --port 8000
    2. python scripts/demo.py

Requires: httpx (keys are the devnet defaults from govgate/identities.json)
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from govgate_sdk import GateClient

BASE_URL = os.environ.get("GATEWAY_URL", "http://localhost:8000")
PROPOSER_KEY = os.environ.get("PROPOSER_KEY", "proposer-key-change-me")
APPROVER_KEY = os.environ.get("APPROVER_KEY", "approver-key-change-me")
RECIPIENT_KEY = os.environ.get("RECIPIENT_KEY", "recipient-key-change-me")

# ---------------------------------------------------------------------------
# Terminal colors (ANSI)
# ---------------------------------------------------------------------------

class C:
    RESET   = "\033[0m"
    BOLD    = "\033[1m"
    DIM     = "\033[2m"
    RED     = "\033[91m"
    GREEN   = "\033[92m"
    YELLOW  = "\033[93m"
    BLUE    = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN    = "\033[96m"
    WHITE   = "\033[97m"


def banner(text: str, color: str = C.CYAN):
    width = 64
    print()
    print(f"{color}{C.BOLD}{'=' * width}{C.RESET}")
    print(f"{color}{C.BOLD}  {text}{C.RESET}")
    print(f"{color}{C.BOLD}{'=' * width}{C.RESET}")
    print()


def step(n: int, text: str):
    print(f"  {C.BOLD}{C.WHITE}[Step {n}]{C.RESET} {text}")


def ok(text: str):
    print(f"  {C.GREEN}{C.BOLD}OK{C.RESET} {text}")


def fail(text: str):
    print(f"  {C.RED}{C.BOLD}FAIL{C.RESET} {text}")


def info(text: str):
    print(f"  {C.DIM}{text}{C.RESET}")


def pp(data: dict, indent: int = 4):
    for line in json.dumps(data, indent=indent, default=str).split("\n"):
        print(f"    {C.DIM}{line}{C.RESET}")


# ---------------------------------------------------------------------------
# Demo steps
# ---------------------------------------------------------------------------

def main():
    banner("GOVERNANCE GATE  --  proposal lifecycle demo", C.MAGENTA)
    info(f"Gateway: {BASE_URL}")

    proposer = GateClient(BASE_URL, PROPOSER_KEY)
    approver = GateClient(BASE_URL, APPROVER_KEY)
    recipient = GateClient(BASE_URL, RECIPIENT_KEY)

    banner("1. Health Check", C.BLUE)
    try:
        pp(proposer.health())
    except httpx.HTTPError as exc:
        fail(f"Gateway unreachable: {exc}")
        print(f"  {C.YELLOW}  uvicorn main:app --port 8000{C.RESET}\n")
        sys.exit(1)

    config = httpx.get(f"{BASE_URL}/config").json()
    vault = config["default_vault"]
    roles = httpx.get(f"{BASE_URL}/devnet/roles").json()
    recipient_id = int(roles["recipient"])

    banner("2. Propose 1000 wei, zero timelock", C.GREEN)
    step(1, "POST /proposals")
    created = proposer.propose(funding_amount=1000, recipient_id=recipient_id, salt=1)
    if not created.success:
        fail(f"propose failed: {created.raw}")
        sys.exit(1)
    ok(f"proposal {created.proposal_id[:18]}...  state={created.state}")
    info(f"batch_hash: {created.batch_hash}")

    banner("3. Replay the same proposal", C.YELLOW)
    step(2, "POST /proposals  (identical parameters and salt)")
    replay = proposer.propose(funding_amount=1000, recipient_id=recipient_id, salt=1)
    if replay.error == "ALREADY_USED":
        ok("rejected with ALREADY_USED")
    else:
        fail(f"unexpected: {replay.raw}")

    banner("4. Approve and execute", C.GREEN)
    step(3, "POST /proposals/{id}/approve")
    approved = approver.approve(created.proposal_id)
    ok(f"state={approved.state}  unlock_at={approved.raw.get('unlock_at')}")
    step(4, "POST /proposals/{id}/execute")
    executed = approver.execute(created.proposal_id)
    if executed.success:
        ok(f"state={executed.state}")
        pp(executed.raw.get("receipt", {}))
    else:
        fail(f"execute failed: {executed.raw}")

    allowance = proposer.allowance(vault, recipient_id)
    info(f"allowance now {allowance}")

    banner("5. Withdraw", C.BLUE)
    step(5, "POST /withdrawals  amount=400")
    result = recipient.withdraw(recipient_id, vault, 400)
    if result.success:
        ok(f"withdrew {result.amount}, {result.remaining} remaining")
    else:
        info(f"withdraw refused: {result.error}")

    step(6, "POST /withdrawals  amount=10**6")
    over = recipient.withdraw(recipient_id, vault, 10**6)
    if over.error == "ALLOWANCE_EXCEEDED":
        ok(f"refused with {over.error}")
    else:
        fail(f"unexpected: {over.raw}")

    banner("6. Reject a second proposal", C.RED)
    second = proposer.propose(funding_amount=5, recipient_id=recipient_id, salt=2)
    rejected = approver.reject(second.proposal_id)
    ok(f"state={rejected.state}")
    again = approver.approve(second.proposal_id)
    ok(f"approve after reject -> {again.error} ({again.raw.get('state')})")

    print()


if __name__ == "__main__":
    main()
