from __future__ import annotations

from sqlalchemy.orm import Session

from .core.database import SessionLocal
from .core.logging_setup import get_logger
from .models import BankAccount, BankAccountType, Company


logger = get_logger(__name__)


def seed() -> None:
    db: Session = SessionLocal()
    try:
        # demo company with one checking account
        company = db.query(Company).filter_by(name="Demo Company").first()
        if not company:
            company = Company(name="Demo Company", is_active=True)
            db.add(company)
            db.flush()

        account = db.query(BankAccount).filter_by(company_id=company.id, name="Main Checking").first()
        if not account:
            db.add(
                BankAccount(
                    company_id=company.id,
                    name="Main Checking",
                    type=BankAccountType.CHECKING,
                    current_balance=0,
                )
            )

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("seed failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
