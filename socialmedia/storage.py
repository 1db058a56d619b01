import logging
from typing import Generator, List, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from socialmedia.config import settings
from socialmedia.errors import DuplicateKeyError, StorageError
from socialmedia.schemas import Account, Message

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False},
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def enable_sqlite_foreign_keys(target_engine: Engine) -> None:
    """
    Turn on foreign key enforcement for every new SQLite connection.

    SQLite ignores REFERENCES clauses unless the pragma is set per
    connection. No-op for other dialects.
    """
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from socialmedia import models  # noqa: F401

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and both tables exist, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

            for table in ("account", "message"):
                result = db.execute(
                    text("SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=:name"),
                    {"name": table},
                ).scalar()
                if result == 0:
                    logger.error(f"Database schema not applied: '{table}' table not found")
                    return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def _storage_failure(db: Session, error: Exception, message: str) -> StorageError:
    """Roll back the session, log the medium's failure and build the error to raise."""
    db.rollback()
    logger.error(f"{message}: {error}")
    return StorageError(message)


# =============================================================================
# Account Store
# =============================================================================

class AccountStore:
    """
    CRUD and lookups over the account table.

    No business rules live here. Not-found is reported as None; every
    SQLAlchemy failure is re-raised as StorageError.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, account_id: int) -> Optional[Account]:
        from socialmedia.models import AccountRecord

        logger.debug(f"Looking up account by ID: {account_id}")
        try:
            record = (
                self.db.query(AccountRecord)
                .filter(AccountRecord.account_id == account_id)
                .first()
            )
            return Account.model_validate(record) if record else None
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while retrieving the account with id: {account_id}"
            ) from e

    def get_all(self) -> List[Account]:
        from socialmedia.models import AccountRecord

        try:
            records = self.db.query(AccountRecord).order_by(AccountRecord.account_id.asc()).all()
            return [Account.model_validate(record) for record in records]
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Error while retrieving all the accounts") from e

    def find_by_username(self, username: str) -> Optional[Account]:
        from socialmedia.models import AccountRecord

        logger.debug(f"Looking up account by username: {username}")
        try:
            record = (
                self.db.query(AccountRecord)
                .filter(AccountRecord.username == username)
                .first()
            )
            return Account.model_validate(record) if record else None
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while finding account with username: {username}"
            ) from e

    def validate_credentials(self, username: str, password: str) -> Optional[Account]:
        """
        Return the account when username and password both match exactly.

        A wrong username and a wrong password both yield None.
        """
        account = self.find_by_username(username)
        if account is None or account.password != password:
            return None
        return account

    def username_exists(self, username: str) -> bool:
        from socialmedia.models import AccountRecord

        try:
            count = (
                self.db.query(AccountRecord)
                .filter(AccountRecord.username == username)
                .count()
            )
            return count > 0
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while checking if username exists: {username}"
            ) from e

    def insert(self, account: Account) -> Account:
        """
        Insert a new account and return it with its assigned id.

        Any account_id on the candidate is ignored.

        Raises:
            DuplicateKeyError: username already taken at the medium level
            StorageError: any other failure, or no id was obtained
        """
        from socialmedia.models import AccountRecord

        logger.info(f"Inserting account: username={account.username}")
        try:
            record = AccountRecord(username=account.username, password=account.password)
            self.db.add(record)
            self.db.commit()
            if record.account_id is None:
                raise StorageError("Creating account failed, no ID obtained.")
            created = Account.model_validate(record)
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Duplicate username rejected by database: {account.username}")
            raise DuplicateKeyError(f"Username already exists: {account.username}") from e
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Creating account failed due to SQL error") from e

        logger.info(f"Account inserted: account_id={created.account_id}")
        return created

    def update(self, account: Account) -> bool:
        """Overwrite username and password. True iff exactly one row changed."""
        from socialmedia.models import AccountRecord

        logger.info(f"Updating account: account_id={account.account_id}")
        try:
            affected = (
                self.db.query(AccountRecord)
                .filter(AccountRecord.account_id == account.account_id)
                .update(
                    {
                        AccountRecord.username: account.username,
                        AccountRecord.password: account.password,
                    }
                )
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Duplicate username rejected by database: {account.username}")
            raise DuplicateKeyError(f"Username already exists: {account.username}") from e
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Updating account failed due to SQL error") from e
        return affected == 1

    def delete(self, account: Account) -> bool:
        """
        Delete the account and every message it owns, in one transaction.

        Returns True iff exactly one account row was removed.
        """
        from socialmedia.models import AccountRecord, MessageRecord

        logger.info(f"Deleting account: account_id={account.account_id}")
        try:
            removed_messages = (
                self.db.query(MessageRecord)
                .filter(MessageRecord.posted_by == account.account_id)
                .delete()
            )
            affected = (
                self.db.query(AccountRecord)
                .filter(AccountRecord.account_id == account.account_id)
                .delete()
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Deleting account failed due to SQL error") from e

        logger.debug(f"Removed {removed_messages} messages owned by account {account.account_id}")
        return affected == 1


# =============================================================================
# Message Store
# =============================================================================

class MessageStore:
    """
    CRUD and lookups over the message table, queryable by owner.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, message_id: int) -> Optional[Message]:
        from socialmedia.models import MessageRecord

        logger.debug(f"Looking up message by ID: {message_id}")
        try:
            record = (
                self.db.query(MessageRecord)
                .filter(MessageRecord.message_id == message_id)
                .first()
            )
            return Message.model_validate(record) if record else None
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while retrieving the message with id: {message_id}"
            ) from e

    def get_all(self) -> List[Message]:
        from socialmedia.models import MessageRecord

        try:
            records = self.db.query(MessageRecord).order_by(MessageRecord.message_id.asc()).all()
            return [Message.model_validate(record) for record in records]
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Error while retrieving all messages") from e

    def get_by_owner_id(self, account_id: int) -> List[Message]:
        from socialmedia.models import MessageRecord

        logger.debug(f"Looking up messages posted by account: {account_id}")
        try:
            records = (
                self.db.query(MessageRecord)
                .filter(MessageRecord.posted_by == account_id)
                .order_by(MessageRecord.message_id.asc())
                .all()
            )
            return [Message.model_validate(record) for record in records]
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while retrieving messages by account ID: {account_id}"
            ) from e

    def insert(self, message: Message) -> Message:
        """
        Insert a new message and return it with its assigned id.

        Any message_id on the candidate is ignored.
        """
        from socialmedia.models import MessageRecord

        logger.info(f"Inserting message: posted_by={message.posted_by}")
        try:
            record = MessageRecord(
                posted_by=message.posted_by,
                message_text=message.message_text,
                time_posted_epoch=message.time_posted_epoch,
            )
            self.db.add(record)
            self.db.commit()
            if record.message_id is None:
                raise StorageError("Failed to insert message, no ID obtained.")
            created = Message.model_validate(record)
        except SQLAlchemyError as e:
            raise _storage_failure(self.db, e, "Error while inserting a message") from e

        logger.info(f"Message inserted: message_id={created.message_id}")
        return created

    def update(self, message: Message) -> bool:
        """Overwrite all mutable columns. True iff exactly one row changed."""
        from socialmedia.models import MessageRecord

        logger.info(f"Updating message: message_id={message.message_id}")
        try:
            affected = (
                self.db.query(MessageRecord)
                .filter(MessageRecord.message_id == message.message_id)
                .update(
                    {
                        MessageRecord.posted_by: message.posted_by,
                        MessageRecord.message_text: message.message_text,
                        MessageRecord.time_posted_epoch: message.time_posted_epoch,
                    }
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while updating the message with id: {message.message_id}"
            ) from e
        return affected == 1

    def delete(self, message: Message) -> bool:
        from socialmedia.models import MessageRecord

        logger.info(f"Deleting message: message_id={message.message_id}")
        try:
            affected = (
                self.db.query(MessageRecord)
                .filter(MessageRecord.message_id == message.message_id)
                .delete()
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise _storage_failure(
                self.db, e, f"Error while deleting the message with id: {message.message_id}"
            ) from e
        return affected == 1
