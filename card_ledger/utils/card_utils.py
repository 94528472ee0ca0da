"""Card number helpers - the ledger never stores a full PAN"""

import hashlib


def hash_card_number(card_number: str) -> str:
    """One-way SHA-256 hex digest of the digits in a card number"""
    digits = "".join(ch for ch in card_number if ch.isdigit())
    return hashlib.sha256(digits.encode("utf-8")).hexdigest()


def last_four(card_number: str) -> str:
    digits = "".join(ch for ch in card_number if ch.isdigit())
    return digits[-4:]
