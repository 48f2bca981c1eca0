"""Acquisition requests submitted from the catalog page and the sales filter."""

from __future__ import annotations

import re
from datetime import date, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, field_validator

from .schema import Acquisition, AcquisitionStatus

_NON_DIGITS = re.compile(r"\D")


def only_digits(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def validate_cpf(cpf: str) -> bool:
    """Check a Brazilian CPF: eleven digits and both check digits."""

    digits = only_digits(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False
    numbers = [int(char) for char in digits]
    for position in (9, 10):
        total = sum(value * weight for value, weight in zip(numbers[:position], range(position + 1, 1, -1)))
        check = (total * 10) % 11 % 10
        if numbers[position] != check:
            return False
    return True


class AcquisitionRequest(BaseModel):
    """Lead form filled by a prospective client for one demo site."""

    site_id: str
    site_title: str
    consultant_id: str
    client_name: str
    client_phone: str
    client_cpf: str

    @field_validator("client_name")
    @classmethod
    def ensure_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client_name must not be blank")
        return value

    @field_validator("client_phone")
    @classmethod
    def normalize_phone(cls, value: str) -> str:
        digits = only_digits(value)
        if not digits:
            raise ValueError("client_phone must contain digits")
        return digits

    @field_validator("client_cpf")
    @classmethod
    def normalize_cpf(cls, value: str) -> str:
        if not validate_cpf(value):
            raise ValueError("client_cpf is not a valid CPF")
        return only_digits(value)


def filter_acquisitions(
    acquisitions: Iterable[Acquisition],
    query: str = "",
    *,
    status: Optional[AcquisitionStatus] = None,
    day: Optional[date] = None,
) -> List[Acquisition]:
    """Sales pipeline filter used by the admin console.

    ``query`` matches the client name or site title case-insensitively and the
    CPF as a raw substring; ``day`` compares the UTC calendar day of the
    acquisition timestamp.
    """

    needle = query.lower()
    matched: List[Acquisition] = []
    for acquisition in acquisitions:
        if needle and not (
            needle in acquisition.client_name.lower()
            or query in acquisition.client_cpf
            or needle in acquisition.site_title.lower()
        ):
            continue
        if status is not None and acquisition.status != status:
            continue
        if day is not None and _utc_day(acquisition) != day:
            continue
        matched.append(acquisition)
    return matched


def _utc_day(acquisition: Acquisition) -> date:
    stamp = acquisition.timestamp
    if stamp.tzinfo is None:
        return stamp.date()
    return stamp.astimezone(timezone.utc).date()
