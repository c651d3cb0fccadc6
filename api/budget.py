from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request

from api.serialize import budget_summary_json, recurring_amount_json
from budget.normalizer import (
    InvalidAmount,
    InvalidFrequency,
    normalize_frequency,
    round_money,
    to_decimal,
)
from budget.summary import get_budget_summary
from localdb.records import MAX_AMOUNT_CENTS, AmountKind, SqliteRecordStore
from security.deps import current_user_id, json_body, json_bool, rate_limit, require_auth, require_csrf


router = APIRouter()

_PATHS: Dict[str, AmountKind] = {
    "income-sources": "income",
    "recurring-expenses": "expense",
}
_NOT_FOUND = {
    "income": "Income source not found",
    "expense": "Recurring expense not found",
}
_MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS).scaleb(-2)


def _kind(collection: str) -> AmountKind:
    kind = _PATHS.get(collection)
    if kind is None:
        raise HTTPException(status_code=404, detail="Not found")
    return kind


def _amount_cents(payload: Dict[str, Any]) -> int:
    """Accept amount_cents (int) or amount (decimal units); reject negatives and overflow."""
    if payload.get("amount_cents") is not None:
        cents = payload["amount_cents"]
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise HTTPException(status_code=400, detail="'amount_cents' must be integer cents")
    else:
        try:
            value = to_decimal(payload["amount"])
        except InvalidAmount as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if value < 0:
            raise HTTPException(status_code=400, detail="Amount must be non-negative")
        # Compare before quantize; 1e999999 would overflow the decimal context
        if value > _MAX_AMOUNT:
            raise HTTPException(status_code=400, detail="Amount is too large")
        try:
            cents = int(round_money(value) * 100)
        except InvalidOperation as exc:
            raise HTTPException(status_code=400, detail=f"Invalid amount: {payload['amount']!r}") from exc
    if cents < 0:
        raise HTTPException(status_code=400, detail="Amount must be non-negative")
    if cents > MAX_AMOUNT_CENTS:
        raise HTTPException(status_code=400, detail="Amount is too large")
    return cents


def _validate_fields(kind: AmountKind, payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}

    if "name" in payload or not partial:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="'name' is required")
        fields["name"] = name

    if payload.get("amount") is not None or payload.get("amount_cents") is not None:
        fields["amount_cents"] = _amount_cents(payload)
    elif not partial:
        raise HTTPException(status_code=400, detail="Provide amount or amount_cents")

    if "frequency" in payload or not partial:
        try:
            fields["frequency"] = normalize_frequency(payload.get("frequency") or "monthly")
        except InvalidFrequency as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    if "category" in payload or not partial:
        fields["category"] = str(payload.get("category") or "other").strip().lower()

    if "description" in payload:
        fields["description"] = payload.get("description")

    for flag in ("is_active",) + (("is_essential",) if kind == "expense" else ("is_primary",)):
        if flag in payload:
            fields[flag] = 1 if json_bool(payload, flag) else 0
        elif not partial:
            fields[flag] = 1 if flag == "is_active" else 0

    if kind == "expense" and "due_day" in payload:
        due = payload.get("due_day")
        if due is not None:
            try:
                due = int(due)
                if not 1 <= due <= 31:
                    raise ValueError
            except (TypeError, ValueError):
                raise HTTPException(status_code=400, detail="'due_day' must be 1-31")
        fields["due_day"] = due

    return fields


@router.get("/api/budget/summary")
def budget_summary(request: Request) -> Dict[str, Any]:
    """Monthly-normalized income/expense totals, category breakdown and savings rate."""
    user_id = current_user_id(request)
    try:
        summary = get_budget_summary(user_id, store=SqliteRecordStore())
    except (InvalidAmount, InvalidFrequency) as exc:
        # A stored row the normalizer rejects is bad data, not bad input
        raise HTTPException(status_code=500, detail=f"Invalid stored budget row: {exc}") from exc
    return budget_summary_json(summary)


@router.get("/api/budget/{collection}")
def list_amounts(collection: str, request: Request) -> List[Dict[str, Any]]:
    kind = _kind(collection)
    user_id = current_user_id(request)
    return [recurring_amount_json(a) for a in SqliteRecordStore().list_recurring_amounts(kind, user_id)]


@router.post("/api/budget/{collection}")
async def create_amount(collection: str, request: Request) -> Dict[str, Any]:
    kind = _kind(collection)
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="budget-write")
    user_id = current_user_id(request)
    fields = _validate_fields(kind, await json_body(request), partial=False)
    row = SqliteRecordStore().create_recurring_amount(kind, user_id, fields)
    return {"status": "ok", "item": recurring_amount_json(row)}


@router.put("/api/budget/{collection}/{amount_id}")
async def update_amount(collection: str, amount_id: int, request: Request) -> Dict[str, Any]:
    kind = _kind(collection)
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="budget-write")
    user_id = current_user_id(request)
    fields = _validate_fields(kind, await json_body(request), partial=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    row = SqliteRecordStore().update_recurring_amount(kind, amount_id, user_id, fields)
    if row is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND[kind])
    return {"status": "ok", "item": recurring_amount_json(row)}


@router.delete("/api/budget/{collection}/{amount_id}")
async def delete_amount(collection: str, amount_id: int, request: Request) -> Dict[str, Any]:
    kind = _kind(collection)
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="budget-write")
    user_id = current_user_id(request)
    if not SqliteRecordStore().delete_recurring_amount(kind, amount_id, user_id):
        raise HTTPException(status_code=404, detail=_NOT_FOUND[kind])
    return {"status": "deleted", "id": amount_id}
