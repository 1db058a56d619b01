"""
Business rules for accounts and messages.

The services validate input, enforce uniqueness, ownership and existence,
then delegate to the stores. Business-rule violations (BusinessRuleError
subclasses) are raised directly; storage failures are re-raised as
ServiceError chained to the StorageError.

Note: passwords are stored and compared as plain text. A production
deployment should hash them (salted, one-way) and compare in constant time.
"""

import logging
from typing import List, Optional

from socialmedia.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ServiceError,
    StorageError,
    ValidationError,
)
from socialmedia.schemas import Account, Message
from socialmedia.storage import AccountStore, MessageStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4
MAX_MESSAGE_LENGTH = 254

DB_ACCESS_ERROR_MSG = "Error accessing the database"


class AccountService:
    """Registration, login and account lookups."""

    def __init__(self, account_store: AccountStore):
        self.account_store = account_store

    def get_account_by_id(self, account_id: int) -> Optional[Account]:
        logger.info(f"Fetching account with ID: {account_id}")
        try:
            return self.account_store.get_by_id(account_id)
        except StorageError as e:
            raise ServiceError("Exception occurred while fetching account") from e

    def get_all_accounts(self) -> List[Account]:
        logger.info("Fetching all accounts")
        try:
            accounts = self.account_store.get_all()
        except StorageError as e:
            raise ServiceError("Exception occurred while fetching accounts") from e
        logger.info(f"Fetched {len(accounts)} accounts")
        return accounts

    def find_account_by_username(self, username: str) -> Optional[Account]:
        """Look up by username, trimmed the same way registration trims it."""
        username = username.strip() if username else username
        logger.info(f"Finding account by username: {username}")
        try:
            return self.account_store.find_by_username(username)
        except StorageError as e:
            raise ServiceError(
                f"Exception occurred while finding account by username {username}"
            ) from e

    def validate_login(self, candidate: Account) -> Optional[Account]:
        """
        Check a username/password pair.

        Returns the stored account, or None when the credentials don't
        match. A mismatch is not an error.
        """
        logger.info("Validating login")
        username = candidate.username.strip() if candidate.username else candidate.username
        try:
            account = self.account_store.validate_credentials(username, candidate.password)
        except StorageError as e:
            raise ServiceError("Exception occurred while validating login") from e
        logger.info(f"Login validation result: {account is not None}")
        return account

    def create_account(self, candidate: Account) -> Account:
        """
        Register a new account.

        The username is trimmed before it is checked and stored. The
        password is trimmed only to judge its length and is stored as given.

        Raises:
            ValidationError: blank username, blank or short password
            ConflictError: username already taken
            ServiceError: storage failure
        """
        username = (candidate.username or "").strip()
        password = (candidate.password or "").strip()
        logger.info(f"Creating account: username={username}")

        if not username:
            raise ValidationError("Username cannot be blank")
        if not password:
            raise ValidationError("Password cannot be empty")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        try:
            if self.account_store.username_exists(username):
                raise ConflictError("The username must be unique")
            created = self.account_store.insert(
                Account(username=username, password=candidate.password)
            )
        except DuplicateKeyError as e:
            # Lost a race against a concurrent registration
            raise ConflictError("The username must be unique") from e
        except StorageError as e:
            raise ServiceError("Exception occurred while creating account") from e

        logger.info(f"Created account: account_id={created.account_id}")
        return created

    def update_account(self, account: Account) -> bool:
        logger.info(f"Updating account: account_id={account.account_id}")
        try:
            updated = self.account_store.update(account)
        except DuplicateKeyError as e:
            raise ConflictError("The username must be unique") from e
        except StorageError as e:
            raise ServiceError("Exception occurred while updating account") from e
        logger.info(f"Update of account {account.account_id} successful: {updated}")
        return updated

    def delete_account(self, account: Account) -> bool:
        """Delete an account together with the messages it owns."""
        logger.info(f"Deleting account: account_id={account.account_id}")
        if not account.account_id:
            raise ValidationError("Account ID cannot be empty")
        try:
            deleted = self.account_store.delete(account)
        except StorageError as e:
            raise ServiceError("Exception occurred while deleting account") from e
        logger.info(f"Deletion of account {account.account_id} successful: {deleted}")
        return deleted

    def account_exists(self, account_id: int) -> bool:
        logger.info(f"Checking account existence with ID: {account_id}")
        exists = self.get_account_by_id(account_id) is not None
        logger.info(f"Account existence: {exists}")
        return exists


class MessageService:
    """Posting, editing, deleting and reading messages."""

    def __init__(self, message_store: MessageStore, account_service: AccountService):
        self.message_store = message_store
        self.account_service = account_service

    def get_message_by_id(self, message_id: int) -> Message:
        """
        Fetch one message.

        Raises:
            NotFoundError: no message with that id
        """
        logger.info(f"Fetching message with ID: {message_id}")
        try:
            message = self.message_store.get_by_id(message_id)
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        if message is None:
            raise NotFoundError(f"Message not found: {message_id}")
        return message

    def get_all_messages(self) -> List[Message]:
        logger.info("Fetching all messages")
        try:
            messages = self.message_store.get_all()
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        logger.info(f"Fetched {len(messages)} messages")
        return messages

    def get_messages_by_owner_id(self, account_id: int) -> List[Message]:
        logger.info(f"Fetching messages posted by account: {account_id}")
        try:
            messages = self.message_store.get_by_owner_id(account_id)
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        logger.info(f"Fetched {len(messages)} messages")
        return messages

    def create_message(self, candidate: Message, owner_account: Optional[Account]) -> Message:
        """
        Post a message on behalf of owner_account.

        The owner is checked against candidate.posted_by even when the
        caller resolved it from that same id.

        Raises:
            ValidationError: no owner, owner gone, or bad text
            AuthorizationError: owner is not the account in posted_by
            ServiceError: storage failure
        """
        logger.info(f"Creating message for account: {candidate.posted_by}")
        if owner_account is None:
            raise ValidationError("account must exist")
        self._validate_text(candidate.message_text)
        if owner_account.account_id != candidate.posted_by:
            raise AuthorizationError("Account not authorized to modify this message")
        if not self.account_service.account_exists(owner_account.account_id):
            raise ValidationError("account must exist")

        try:
            created = self.message_store.insert(candidate)
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        logger.info(f"Created message: message_id={created.message_id}")
        return created

    def update_message(self, patch: Message) -> Message:
        """
        Replace the text of an existing message.

        Only patch.message_id and patch.message_text are read; the owner
        and timestamp are kept from the stored message.

        Raises:
            NotFoundError: no message with that id
            ValidationError: bad text
        """
        logger.info(f"Updating message: {patch.message_id}")
        existing = self.get_message_by_id(patch.message_id)
        updated = existing.model_copy(update={"message_text": patch.message_text})
        self._validate_text(updated.message_text)

        try:
            persisted = self.message_store.update(updated)
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        if not persisted:
            raise NotFoundError(f"Message not found: {patch.message_id}")
        logger.info(f"Updated message: {patch.message_id}")
        return updated

    def delete_message(self, message: Message) -> None:
        """
        Raises:
            NotFoundError: nothing was deleted
        """
        logger.info(f"Deleting message: {message.message_id}")
        try:
            deleted = self.message_store.delete(message)
        except StorageError as e:
            raise ServiceError(DB_ACCESS_ERROR_MSG) from e
        if not deleted:
            raise NotFoundError(f"Message to delete not found: {message.message_id}")
        logger.info(f"Deleted message: {message.message_id}")

    def _validate_text(self, message_text: Optional[str]) -> None:
        if message_text is None or not message_text.strip():
            raise ValidationError("Message text cannot be null or empty")
        # Length is judged on the untrimmed text
        if len(message_text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message text cannot exceed {MAX_MESSAGE_LENGTH} characters"
            )
