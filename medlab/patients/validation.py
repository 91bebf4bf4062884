from __future__ import annotations

from medlab.platform.errors import InvalidTrIdNumberError


def is_valid_tr_id_number(value: str) -> bool:
    """Turkish identity number: 11 digits, no leading zero, two check digits."""
    if len(value) != 11 or not value.isdigit() or value[0] == "0":
        return False

    digits = [int(char) for char in value]
    odd_sum = sum(digits[0:9:2])
    even_sum = sum(digits[1:8:2])
    if (odd_sum * 7 - even_sum) % 10 != digits[9]:
        return False
    return sum(digits[:10]) % 10 == digits[10]


def validate_tr_id_number(value: str) -> str:
    if not is_valid_tr_id_number(value):
        raise InvalidTrIdNumberError(f"Invalid TR ID number: {value}")
    return value
