from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .core.database import get_db
from .core.deps import get_company, get_today
from .core.logging_setup import get_logger
from . import models
from .errors import RuleConfigurationError
from .schemas import (
    AggregatedTransactionOut,
    BankAccountCreate,
    BankAccountOut,
    CompanyCreate,
    CompanyOut,
    ContractCreate,
    ContractOut,
    ContractPreviewItem,
    ContractPreviewOut,
    ContractUpdate,
    FlaggedRowOut,
    GenerationRequest,
    GenerationResultOut,
    OverdueBucketOut,
    OverdueSummaryOut,
    PendingBucketOut,
    PendingSummaryOut,
    ProjectedBalanceOut,
    RecurringTotalsOut,
    TransactionCreate,
    TransactionOut,
)
from .services.aggregation_service import (
    AggregateSummary,
    AggregatedItem,
    AggregationOrder,
    Bucket,
    aggregate,
    empty_summary,
)
from .services.generation_service import RecurringGenerationService
from .services.occurrence_service import preview_occurrences, recurring_totals, validate_rule
from .services.projection_service import PendingBalance, ProjectionCalculator
from .services.stores import AccountStore, ContractStore, TransactionStore
from .utils.dates import now_local_naive


PREVIEW_DEFAULT_HORIZON_DAYS = 365

router = APIRouter()
logger = get_logger(__name__)


def _require_company(db: Session, company_id: int) -> models.Company:
    company = db.get(models.Company, company_id)
    if company is None or not company.is_active:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


def _require_account_in_company(db: Session, account_id: int | None, company_id: int) -> None:
    if account_id is None:
        return
    if AccountStore(db).get(account_id, company_id=company_id) is None:
        raise HTTPException(status_code=400, detail=f"Bank account {account_id} does not belong to company {company_id}")


def _require_contract(db: Session, contract_id: int, company_id: int | None = None) -> models.Contract:
    contract = ContractStore(db).get(contract_id, company_id=company_id)
    if contract is None:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


# --- companies ---------------------------------------------------------------


@router.post("/companies", response_model=CompanyOut, status_code=201)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db)):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Company name must not be empty")
    exists = db.query(models.Company).filter(models.Company.name == name).first()
    if exists:
        raise HTTPException(status_code=409, detail="Company with the same name already exists")
    company = models.Company(name=name, document=payload.document)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


@router.get("/companies", response_model=list[CompanyOut])
def list_companies(db: Session = Depends(get_db)):
    return db.query(models.Company).order_by(models.Company.id).all()


# --- bank accounts -----------------------------------------------------------


@router.post("/accounts", response_model=BankAccountOut, status_code=201)
def create_account(payload: BankAccountCreate, db: Session = Depends(get_db)):
    _require_company(db, payload.company_id)
    exists = (
        db.query(models.BankAccount)
        .filter(
            models.BankAccount.company_id == payload.company_id,
            models.BankAccount.name == payload.name,
            models.BankAccount.deleted_at.is_(None),
        )
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="Account with the same name already exists")
    data = payload.model_dump()
    if payload.type == models.BankAccountType.CREDIT_CARD and data.get("available_credit") is None:
        data["available_credit"] = payload.credit_limit
    account = models.BankAccount(**data)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@router.get("/accounts", response_model=list[BankAccountOut])
def list_accounts(
    company: models.Company = Depends(get_company),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    return AccountStore(db).list_for_company(company.id, active_only=not include_inactive)


@router.get("/accounts/pending-balances", response_model=list[ProjectedBalanceOut])
def list_pending_balances(
    company: models.Company = Depends(get_company),
    db: Session = Depends(get_db),
):
    accounts = AccountStore(db).list_for_company(company.id)
    rows = TransactionStore(db).query_by_company_and_status(company.id, models.UNSETTLED_STATUSES)
    balances = ProjectionCalculator().pending_balances(accounts, rows)
    return [_projection_out(balance) for balance in balances.values()]


@router.get("/accounts/{account_id}", response_model=BankAccountOut)
def get_account(account_id: int, db: Session = Depends(get_db)):
    account = AccountStore(db).get(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.get("/accounts/{account_id}/projected-balance", response_model=ProjectedBalanceOut)
def get_projected_balance(account_id: int, db: Session = Depends(get_db)):
    account = AccountStore(db).get(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    rows = TransactionStore(db).query_by_company_and_status(account.company_id, models.UNSETTLED_STATUSES)
    balance = ProjectionCalculator().pending_balances([account], rows)[account.id]
    return _projection_out(balance)


def _projection_out(balance: PendingBalance) -> ProjectedBalanceOut:
    return ProjectedBalanceOut(
        account_id=balance.account_id,
        settled_balance=round(balance.settled_balance, 2),
        pending_revenue=balance.pending_revenue,
        pending_expense=balance.pending_expense,
        projected_balance=balance.projected_balance,
    )


# --- contracts ---------------------------------------------------------------


@router.post("/contracts", response_model=ContractOut, status_code=201)
def create_contract(payload: ContractCreate, db: Session = Depends(get_db)):
    _require_company(db, payload.company_id)
    _require_account_in_company(db, payload.bank_account_id, payload.company_id)
    data = payload.model_dump()
    data["name"] = payload.name.strip()
    if not data["name"]:
        raise HTTPException(status_code=400, detail="Contract name must not be empty")
    contract = models.Contract(**data)
    db.add(contract)
    db.commit()
    db.refresh(contract)
    return contract


@router.get("/contracts", response_model=list[ContractOut])
def list_contracts(
    company: models.Company = Depends(get_company),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    query = db.query(models.Contract).filter(
        models.Contract.company_id == company.id,
        models.Contract.deleted_at.is_(None),
    )
    if active_only:
        query = query.filter(models.Contract.is_active.is_(True))
    return query.order_by(models.Contract.id.desc()).all()


@router.get("/contracts/recurring-totals", response_model=RecurringTotalsOut)
def get_recurring_totals(
    company: models.Company = Depends(get_company),
    db: Session = Depends(get_db),
):
    contracts = (
        db.query(models.Contract)
        .filter(models.Contract.company_id == company.id, models.Contract.deleted_at.is_(None))
        .all()
    )
    totals = recurring_totals(contracts)
    return RecurringTotalsOut(
        company_id=company.id,
        monthly_revenue=totals.monthly_revenue,
        monthly_expense=totals.monthly_expense,
        active_contracts=totals.active_contracts,
    )


@router.get("/contracts/{contract_id}", response_model=ContractOut)
def get_contract(contract_id: int, db: Session = Depends(get_db)):
    return _require_contract(db, contract_id)


_NOT_NULLABLE_CONTRACT_FIELDS = ("name", "amount", "frequency", "start_date", "auto_generate", "is_active")


@router.patch("/contracts/{contract_id}", response_model=ContractOut)
def update_contract(contract_id: int, payload: ContractUpdate, db: Session = Depends(get_db)):
    contract = _require_contract(db, contract_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return contract

    for key in _NOT_NULLABLE_CONTRACT_FIELDS:
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} must not be null")
    if "bank_account_id" in changes:
        _require_account_in_company(db, changes["bank_account_id"], contract.company_id)

    merged = SimpleNamespace(
        id=contract.id,
        frequency=changes.get("frequency", contract.frequency),
        start_date=changes.get("start_date", contract.start_date),
        end_date=changes.get("end_date", contract.end_date),
        total_installments=changes.get("total_installments", contract.total_installments),
    )
    try:
        validate_rule(merged)
    except RuleConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.reason)

    for key, value in changes.items():
        setattr(contract, key, value)
    db.commit()
    db.refresh(contract)
    return contract


@router.delete("/contracts/{contract_id}", status_code=204)
def delete_contract(contract_id: int, db: Session = Depends(get_db)):
    contract = _require_contract(db, contract_id)
    # soft delete: generated transactions stay untouched
    contract.deleted_at = now_local_naive()
    contract.is_active = False
    db.commit()
    return Response(status_code=204)


@router.get("/contracts/{contract_id}/preview", response_model=ContractPreviewOut)
def preview_contract(
    contract_id: int,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    contract = _require_contract(db, contract_id)
    window_start = start or contract.start_date
    window_end = end or (today + timedelta(days=PREVIEW_DEFAULT_HORIZON_DAYS))
    if window_end < window_start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    try:
        scheduled = preview_occurrences(contract, window_start, window_end)
    except RuleConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.reason)
    materialized = {
        txn.due_date
        for txn in TransactionStore(db).list_for_contract(contract.id)
        if txn.status != models.TransactionStatus.CANCELLED
    }
    items = [
        ContractPreviewItem(
            installment=item.installment,
            due_date=item.due_date,
            is_future=item.due_date > today,
            is_materialized=item.due_date in materialized,
        )
        for item in scheduled
    ]
    return ContractPreviewOut(contract_id=contract.id, items=items, total_count=len(items))


@router.post("/contracts/{contract_id}/generate", response_model=GenerationResultOut)
def generate_contract_now(
    contract_id: int,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    contract = _require_contract(db, contract_id)
    if not contract.is_active:
        raise HTTPException(status_code=400, detail="Inactive contract")
    if not contract.auto_generate:
        raise HTTPException(status_code=400, detail="Contract has automatic generation disabled")
    report = RecurringGenerationService(db).run_generation(as_of or today, contract_id=contract.id)
    return GenerationResultOut.model_validate(report, from_attributes=True)


# --- generation job ----------------------------------------------------------


@router.post("/recurring/generate", response_model=GenerationResultOut)
def run_generation(
    payload: GenerationRequest,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    if payload.company_id is not None:
        _require_company(db, payload.company_id)
    report = RecurringGenerationService(db).run_generation(
        payload.as_of or today,
        company_id=payload.company_id,
        contract_id=payload.contract_id,
    )
    return GenerationResultOut.model_validate(report, from_attributes=True)


# --- transactions ------------------------------------------------------------


@router.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(payload: TransactionCreate, db: Session = Depends(get_db)):
    _require_company(db, payload.company_id)
    for account_id in {payload.bank_account_id, payload.account_from_id, payload.account_to_id}:
        _require_account_in_company(db, account_id, payload.company_id)
    txn = models.Transaction(**payload.model_dump())
    db.add(txn)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Transaction rejected: {exc.orig}")
    db.refresh(txn)
    return txn


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    company: models.Company = Depends(get_company),
    status: list[models.TransactionStatus] | None = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    contract_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    statuses = status or list(models.TransactionStatus)
    rows = TransactionStore(db).query_by_company_and_status(company.id, statuses, (start, end))
    if contract_id is not None:
        rows = [row for row in rows if row.contract_id == contract_id]
    return rows


@router.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    txn = TransactionStore(db).get(transaction_id)
    if txn is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    # soft delete: the row stays and still blocks regeneration of its occurrence
    txn.deleted_at = now_local_naive()
    db.commit()
    return Response(status_code=204)


# --- reports -----------------------------------------------------------------


def _item_out(item: AggregatedItem) -> AggregatedTransactionOut:
    txn = item.transaction
    contact = getattr(txn, "contact", None)
    return AggregatedTransactionOut(
        id=getattr(txn, "id", None),
        description=getattr(txn, "description", None),
        type=txn.type,
        status=txn.status,
        amount=item.amount,
        due_date=item.due_date,
        days_overdue=item.days_overdue,
        is_overdue=item.is_overdue,
        severity=item.severity,
        contract_id=getattr(txn, "contract_id", None),
        bank_account_id=getattr(txn, "bank_account_id", None),
        party_name=contact.name if contact is not None else "Not informed",
    )


def _bucket_fields(bucket: Bucket) -> dict:
    return {
        "total": bucket.total,
        "count": bucket.count,
        "average_days_overdue": bucket.average_days_overdue,
        "oldest_date": bucket.oldest_date,
        "transactions": [_item_out(item) for item in bucket.items],
    }


def _overdue_out(company_id: int, summary: AggregateSummary, *, error: str | None = None) -> OverdueSummaryOut:
    return OverdueSummaryOut(
        company_id=company_id,
        as_of=summary.today,
        revenues=OverdueBucketOut(**_bucket_fields(summary.revenues)),
        expenses=OverdueBucketOut(**_bucket_fields(summary.expenses)),
        flagged=[FlaggedRowOut.model_validate(row, from_attributes=True) for row in summary.flagged],
        degraded=error is not None,
        error=error,
    )


def _pending_out(company_id: int, summary: AggregateSummary, *, error: str | None = None) -> PendingSummaryOut:
    def _bucket(bucket: Bucket) -> PendingBucketOut:
        return PendingBucketOut(
            **_bucket_fields(bucket),
            count_overdue=bucket.count_overdue,
            count_on_time=bucket.count_on_time,
        )

    return PendingSummaryOut(
        company_id=company_id,
        as_of=summary.today,
        revenues=_bucket(summary.revenues),
        expenses=_bucket(summary.expenses),
        flagged=[FlaggedRowOut.model_validate(row, from_attributes=True) for row in summary.flagged],
        degraded=error is not None,
        error=error,
    )


@router.get("/reports/overdue", response_model=OverdueSummaryOut)
def get_overdue_summary(
    company_id: int = Query(..., ge=1),
    account_id: Optional[int] = Query(None),
    order: AggregationOrder = Query("due_date"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    try:
        _require_company(db, company_id)
        rows = TransactionStore(db).query_by_company_and_status(company_id, models.UNSETTLED_STATUSES)
        summary = aggregate(rows, today=today, view="overdue", account_id=account_id, order=order)
        return _overdue_out(company_id, summary)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("overdue summary failed for company %s", company_id)
        return _overdue_out(company_id, empty_summary("overdue", today), error="Summary temporarily unavailable")


@router.get("/reports/pending", response_model=PendingSummaryOut)
def get_pending_summary(
    company_id: int = Query(..., ge=1),
    account_id: Optional[int] = Query(None),
    order: AggregationOrder = Query("due_date"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    try:
        _require_company(db, company_id)
        rows = TransactionStore(db).query_by_company_and_status(company_id, models.UNSETTLED_STATUSES)
        summary = aggregate(rows, today=today, view="pending", account_id=account_id, order=order)
        return _pending_out(company_id, summary)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("pending summary failed for company %s", company_id)
        return _pending_out(company_id, empty_summary("pending", today), error="Summary temporarily unavailable")
