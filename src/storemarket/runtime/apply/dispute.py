# src/storemarket/runtime/apply/dispute.py
from __future__ import annotations

"""Dispute state transitions over StorageContract.status.

    active ──owner, "user-favored"──▶ resolved_user       (75% refund, reputation hit)
    active ──owner, other──────────▶ resolved_provider
    active ──user files────────────▶ dispute_by_user
    active ──user files, evidence > threshold bytes──▶ auto_resolved (50% refund)
    active ──provider files────────▶ dispute_by_provider

Only `active` contracts accept a resolve call. Dispute states have no
timeout; they stay pending until something outside this module moves them.

Refunds always come out of custody, never from the counterparty's balance.
The auto-resolve trigger is the evidence byte length alone; its content is
not inspected.
"""

from dataclasses import replace
from typing import Any, Dict, Optional

from storemarket.ledger.balances import BalanceLedger
from storemarket.ledger.constants import USER_FAVORED
from storemarket.ledger.params import MarketParams
from storemarket.ledger.repo import MarketRepo
from storemarket.ledger.types import ContractStatus, DisputeRecord, StorageContract, clamp_reputation
from storemarket.runtime.errors import MarketError
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_str(x: Any) -> str:
    return x if isinstance(x, str) else ""


def _as_int(x: Any, default: int = 0) -> int:
    try:
        if isinstance(x, bool):
            return default
        return int(x)
    except Exception:
        return default


def _get_contract(repo: MarketRepo, contract_id: int) -> StorageContract:
    c = repo.contracts.get(contract_id)
    if c is None:
        raise MarketError.listing_not_found("contract_not_found", {"contract_id": contract_id})
    return c


def _penalize_provider(repo: MarketRepo, provider_id: str) -> int:
    """Drop reputation by a tenth of its current value. Returns the penalty."""
    rec = repo.providers.get(provider_id)
    if rec is None:
        return 0
    penalty = rec.reputation_score // 10
    repo.providers.put(provider_id, replace(rec, reputation_score=clamp_reputation(rec.reputation_score - penalty)))
    return penalty


def _arbitrate(
    repo: MarketRepo,
    ledger: BalanceLedger,
    params: MarketParams,
    contract: StorageContract,
    dispute_type: str,
) -> Json:
    if dispute_type == USER_FAVORED:
        refund = params.share(contract.total_payment, params.arbitration_refund_pct)
        ledger.transfer(refund, params.custody_id, contract.user)
        penalty = _penalize_provider(repo, contract.provider)
        return {"status": ContractStatus.RESOLVED_USER, "refund": refund, "reputation_penalty": penalty}
    return {"status": ContractStatus.RESOLVED_PROVIDER, "refund": 0, "reputation_penalty": 0}


def _file(
    ledger: BalanceLedger,
    params: MarketParams,
    contract: StorageContract,
    filer: str,
    evidence: str,
) -> Json:
    if filer != contract.user:
        return {"status": ContractStatus.DISPUTE_BY_PROVIDER, "refund": 0, "reputation_penalty": 0}

    if len(evidence.encode("utf-8")) > params.evidence_autoresolve_bytes:
        refund = params.share(contract.total_payment, params.auto_refund_pct)
        ledger.transfer(refund, params.custody_id, contract.user)
        return {"status": ContractStatus.AUTO_RESOLVED, "refund": refund, "reputation_penalty": 0}

    return {"status": ContractStatus.DISPUTE_BY_USER, "refund": 0, "reputation_penalty": 0}


def _apply_dispute_resolve(state: Json, env: TxEnvelope) -> Json:
    repo = MarketRepo(state)
    params = MarketParams.from_state(state)
    ledger = BalanceLedger(state)
    payload = _as_dict(env.payload)

    contract_id = _as_int(payload.get("contract_id"), 0)
    dispute_type = _as_str(payload.get("dispute_type"))
    evidence = _as_str(payload.get("evidence"))
    resolution_request = _as_str(payload.get("resolution_request"))

    contract = _get_contract(repo, contract_id)

    caller = env.signer
    is_owner = caller == params.owner_id
    if not is_owner and caller not in (contract.provider, contract.user):
        raise MarketError.not_authorized("not_a_contract_party", {"contract_id": contract_id, "caller": caller})
    if contract.status != ContractStatus.ACTIVE:
        raise MarketError.not_authorized(
            "contract_not_active", {"contract_id": contract_id, "status": contract.status.value}
        )

    if is_owner:
        out = _arbitrate(repo, ledger, params, contract, dispute_type)
    else:
        repo.emit(
            "DisputeFiled",
            contract_id=contract_id,
            filed_by=caller,
            dispute_type=dispute_type,
            evidence=evidence,
            resolution_request=resolution_request,
        )
        out = _file(ledger, params, contract, caller, evidence)

    status: ContractStatus = out["status"]
    repo.contracts.put(contract_id, replace(contract, status=status))
    repo.disputes.put(
        contract_id,
        DisputeRecord(
            contract_id=contract_id,
            filed_by=caller,
            dispute_type=dispute_type,
            evidence=evidence,
            resolution_request=resolution_request,
            outcome=status,
            refund=out["refund"],
            at_height=repo.height,
        ),
    )

    if status.terminal:
        repo.emit(
            "DisputeResolved",
            contract_id=contract_id,
            status=status.value,
            refund=out["refund"],
            reputation_penalty=out["reputation_penalty"],
        )

    return {
        "applied": "DISPUTE_RESOLVE",
        "contract_id": contract_id,
        "status": status.value,
        "refund": out["refund"],
        "result": True,
    }


DISPUTE_TX_TYPES = {"DISPUTE_RESOLVE"}


def apply_dispute(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply dispute txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in DISPUTE_TX_TYPES:
        return None

    return _apply_dispute_resolve(state, env)
