"""
Validatori per identificativi fiscali italiani e formati di documento
"""
import re
from typing import Optional

TAX_CODE_PATTERN = re.compile(r"^[A-Z]{6}\d{2}[A-Z]\d{2}[A-Z]\d{3}[A-Z]$")
VAT_NUMBER_PATTERN = re.compile(r"^\d{11}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVOICE_NUMBER_PATTERN = re.compile(r"^INV-(\d{4})-(\d{6,9})$")


def clean_string(value: Optional[str]) -> Optional[str]:
    """Trim; stringhe vuote diventano None."""
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def normalize_tax_code(code: str) -> str:
    return re.sub(r"\s", "", code or "").upper()


def is_valid_tax_code(code: Optional[str]) -> bool:
    """Codice fiscale persona fisica: 16 caratteri, controllo di forma."""
    if not code:
        return False
    clean = normalize_tax_code(code)
    return len(clean) == 16 and bool(TAX_CODE_PATTERN.match(clean))


def is_valid_vat_number(vat: Optional[str]) -> bool:
    """
    Partita IVA: 11 cifre, l'ultima è il carattere di controllo.

    Le cifre in posizione pari (base 1) vengono raddoppiate e, se > 9,
    ridotte di 9; il controllo è (10 - somma % 10) % 10.
    """
    if not vat:
        return False
    clean = re.sub(r"\s", "", vat)
    if not VAT_NUMBER_PATTERN.match(clean):
        return False
    total = 0
    for i, ch in enumerate(clean[:10]):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return (10 - total % 10) % 10 == int(clean[10])


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def is_valid_invoice_number(number: Optional[str]) -> bool:
    return bool(number) and bool(INVOICE_NUMBER_PATTERN.match(number))


def invoice_number_digits(number: Optional[str]) -> str:
    """Solo le cifre del numero fattura (usate per progressivo invio e nome file XML)."""
    return re.sub(r"[^0-9]", "", number or "")
