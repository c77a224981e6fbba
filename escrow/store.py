"""
Shared ledger data-access layer.

All writes of one logical operation go through a single ``transaction()``
unit of work. Money-moving guards are expressed as conditional UPDATE
statements so that the check and the write happen in one round trip:
a lost race shows up as a zero row count, never as a stale read.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import case, create_engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import config
from .errors import EscrowError, StorageError
from .models import Role, Settings, UserBalance
from .tables import Base, ListingRecord, SettingsRecord, UserRecord, utcnow

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


class LedgerStore:
    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or config.DATABASE_URL
        engine_kwargs = {"echo": config.DATABASE_ECHO if echo is None else echo}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        if self.database_url in IN_MEMORY_URLS:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except EscrowError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Ledger write rolled back after storage failure")
            raise StorageError(f"Storage failure: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Identity provider and listing catalog provisioning

    def add_user(self, role: Role, user_id: Optional[UUID] = None, balance: Decimal = Decimal("0")) -> UserBalance:
        with self.transaction() as session:
            user = UserRecord(id=user_id or uuid4(), role=Role(role).value, balance=balance,
                              earnings=Decimal("0"), pending_orders=0, completed_orders=0)
            session.add(user)
            session.flush()
            return UserBalance.model_validate(user)

    def add_listing(self, seller_id: UUID, price: Decimal, title: str = "") -> UUID:
        with self.transaction() as session:
            listing = ListingRecord(seller_id=seller_id, price=price, title=title)
            session.add(listing)
            session.flush()
            return listing.id

    def get_user(self, user_id: UUID) -> Optional[UserBalance]:
        with self.transaction() as session:
            user = session.get(UserRecord, user_id)
            return UserBalance.model_validate(user) if user else None

    # Conditional writes

    @staticmethod
    def compare_and_set(session: Session, table, record_id: UUID, expected: dict, **values) -> bool:
        """Apply ``values`` to one row only while it still matches ``expected``."""
        stmt = update(table).where(table.id == record_id)
        for column_name, value in expected.items():
            column = getattr(table, column_name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        result = session.execute(stmt.values(**values).execution_options(synchronize_session=False))
        return result.rowcount == 1

    @staticmethod
    def credit_seller(session: Session, user_id: UUID, amount: Decimal) -> bool:
        stmt = (
            update(UserRecord)
            .where(UserRecord.id == user_id)
            .values(
                balance=UserRecord.balance + amount,
                earnings=UserRecord.earnings + amount,
                completed_orders=UserRecord.completed_orders + 1,
                pending_orders=case(
                    (UserRecord.pending_orders > 0, UserRecord.pending_orders - 1),
                    else_=0,
                ),
                last_delivery_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    @staticmethod
    def reserve_funds(session: Session, user_id: UUID, total: Decimal) -> bool:
        stmt = (
            update(UserRecord)
            .where(UserRecord.id == user_id, UserRecord.balance >= total)
            .values(balance=UserRecord.balance - total)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    @staticmethod
    def refund_funds(session: Session, user_id: UUID, total: Decimal) -> bool:
        stmt = (
            update(UserRecord)
            .where(UserRecord.id == user_id)
            .values(balance=UserRecord.balance + total)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    # Settings singleton

    @staticmethod
    def load_settings(session: Session) -> SettingsRecord:
        settings = session.execute(select(SettingsRecord).limit(1)).scalar_one_or_none()
        if settings is None:
            settings = SettingsRecord(
                id=1,
                withdraw_fee_percentage=config.DEFAULT_WITHDRAW_FEE_PERCENTAGE,
                min_withdraw_amount=config.DEFAULT_MIN_WITHDRAW_AMOUNT,
                min_fee=config.DEFAULT_MIN_FEE,
            )
            session.add(settings)
            session.flush()
            logger.info("Created default withdrawal settings")
        return settings

    def get_settings(self) -> Settings:
        with self.transaction() as session:
            return Settings.model_validate(self.load_settings(session))
