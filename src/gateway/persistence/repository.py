"""
Repository Layer

Typed lookups used by the compliance and bridge servers. Every method
returns None when nothing matches.
"""

from typing import Optional

from .driver import PersistenceDriver
from .entities import AllowedFi, AllowedUser, AuthorizedTransaction, ReceivedPayment, SentTransaction


class Repository:
    """Read-side queries over the gateway's records."""

    def __init__(self, driver: PersistenceDriver):
        self.driver = driver

    def get_allowed_fi_by_domain(self, domain: str) -> Optional[AllowedFi]:
        """Get the allowed institution registered for a domain."""
        entity = AllowedFi(name="", domain="", public_key="")
        return self.driver.get_one(entity, "domain = ?", domain)

    def get_allowed_user(self, fi_domain: str, user_id: str) -> Optional[AllowedUser]:
        """Get the allowed user of an institution."""
        entity = AllowedUser(fi_name="", fi_domain="", fi_public_key="", user_id="")
        return self.driver.get_one(entity, "fi_domain = ? AND user_id = ?", fi_domain, user_id)

    def get_authorized_transaction_by_memo(self, memo: str) -> Optional[AuthorizedTransaction]:
        entity = AuthorizedTransaction(transaction_id="", memo="", transaction_xdr="")
        return self.driver.get_one(entity, "memo = ?", memo)

    def get_sent_transaction(self, transaction_id: int) -> Optional[SentTransaction]:
        entity = SentTransaction(source="", envelope_xdr="")
        return self.driver.get_one(entity, "id = ?", transaction_id)

    def get_received_payment_by_operation_id(self, operation_id: str) -> Optional[ReceivedPayment]:
        """Used to skip payments that were already processed."""
        entity = ReceivedPayment(operation_id="", paging_token="")
        return self.driver.get_one(entity, "operation_id = ?", operation_id)

    def get_last_received_payment(self) -> Optional[ReceivedPayment]:
        """Get the latest payment; its paging token is where streaming resumes."""
        return self.driver.get_last_received_payment()
