"""
Configuration settings for Fatturazione Pro
"""
from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class IssuerConfig:
    """Dati anagrafici fissi del cedente/prestatore e codici FatturaPA costanti."""

    country_code: str
    vat_number: str
    company_name: str
    fiscal_regime_code: str
    address: str
    postal_code: str
    city: str
    province: str
    country: str
    transmitter_id_code: str = "00000000000"
    recipient_code: str = "0000000"
    payment_terms_code: str = "TP02"
    payment_method_code: str = "MP05"
    default_unit_code: str = "NR"
    default_customer_label: str = "Cliente"
    recipient_default_postal_code: str = "00000"
    recipient_default_city: str = "Città"


class Settings(BaseSettings):
    """Application settings"""

    # Database
    # Usata da alembic e dallo store SQL. Per Supabase usare la connessione diretta (porta 5432).
    DATABASE_URL: str = "postgresql://postgres@localhost:5432/fatturazione"

    # Application
    APP_NAME: str = "Fatturazione Pro"
    APP_VERSION: str = "1.0.4"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Store backend: "supabase" (PostgREST) oppure "sql" (SQLAlchemy su DATABASE_URL)
    STORE_BACKEND: str = "supabase"

    # Supabase integration
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None

    # Cedente/prestatore (FatturaPA)
    ISSUER_COUNTRY_CODE: str = "IT"
    ISSUER_VAT_NUMBER: str = "12345678901"
    ISSUER_COMPANY_NAME: str = "Invoice Manager SRL"
    ISSUER_FISCAL_REGIME: str = "RF01"
    ISSUER_ADDRESS: str = "Via Roma 1"
    ISSUER_POSTAL_CODE: str = "20100"
    ISSUER_CITY: str = "Milano"
    ISSUER_PROVINCE: str = "MI"
    ISSUER_COUNTRY: str = "IT"

    # Codici fissi trasmissione / pagamento
    TRANSMITTER_ID_CODE: str = "00000000000"
    RECIPIENT_CODE: str = "0000000"
    PAYMENT_TERMS_CODE: str = "TP02"
    PAYMENT_METHOD_CODE: str = "MP05"
    DEFAULT_UNIT_CODE: str = "NR"
    DEFAULT_CUSTOMER_LABEL: str = "Cliente"
    RECIPIENT_DEFAULT_POSTAL_CODE: str = "00000"
    RECIPIENT_DEFAULT_CITY: str = "Città"

    class Config:
        env_file = ".env"
        case_sensitive = True

    def issuer_config(self) -> IssuerConfig:
        return IssuerConfig(
            country_code=self.ISSUER_COUNTRY_CODE,
            vat_number=self.ISSUER_VAT_NUMBER,
            company_name=self.ISSUER_COMPANY_NAME,
            fiscal_regime_code=self.ISSUER_FISCAL_REGIME,
            address=self.ISSUER_ADDRESS,
            postal_code=self.ISSUER_POSTAL_CODE,
            city=self.ISSUER_CITY,
            province=self.ISSUER_PROVINCE,
            country=self.ISSUER_COUNTRY,
            transmitter_id_code=self.TRANSMITTER_ID_CODE,
            recipient_code=self.RECIPIENT_CODE,
            payment_terms_code=self.PAYMENT_TERMS_CODE,
            payment_method_code=self.PAYMENT_METHOD_CODE,
            default_unit_code=self.DEFAULT_UNIT_CODE,
            default_customer_label=self.DEFAULT_CUSTOMER_LABEL,
            recipient_default_postal_code=self.RECIPIENT_DEFAULT_POSTAL_CODE,
            recipient_default_city=self.RECIPIENT_DEFAULT_CITY,
        )


settings = Settings()
