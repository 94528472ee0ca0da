"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class AccountNotFoundError(DomainException):
    """Directly-initiated operation referenced an unknown account"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class InvalidAmountError(DomainException):
    """Amount is zero, negative, or otherwise unusable"""

    pass
