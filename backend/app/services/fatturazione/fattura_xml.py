"""
Esportazione fattura in XML FatturaPA (versione FPR12, fattura verso privati).

Il documento dipende solo da fattura, cliente, righe e configurazione del
cedente: nessun timestamp o valore casuale, due chiamate con gli stessi dati
producono gli stessi byte.
"""
import logging
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence

from app.core.config import IssuerConfig
from app.utils.validators import invoice_number_digits

from .calcoli import aggregate_by_tax_rate, format_amount, item_value, line_subtotal
from .errors import SerializationError

logger = logging.getLogger(__name__)

XML_MIME_TYPE = "application/xml; charset=utf-8"
FORMATO_TRASMISSIONE = "FPR12"
TIPO_DOCUMENTO = "TD01"  # fattura
DIVISA = "EUR"
PLACEHOLDER_VAT = "00000000000"

_ROOT_OPEN = (
    '<p:FatturaElettronica versione="FPR12" xmlns:ds="http://www.w3.org/2000/09/xmldsig#" '
    'xmlns:p="http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2" '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
    'xsi:schemaLocation="http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2 '
    'http://www.fatturapa.gov.it/export/fatturazione/sdi/fatturapa/v1.2/'
    'Schema_del_file_xml_FatturaPA_versione_1.2.xsd">'
)

# & per primo, altrimenti le entità introdotte dopo verrebbero ri-escapate
_ENTITIES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(text: Optional[Any]) -> str:
    if text is None:
        return ""
    text = str(text)
    for char, entity in _ENTITIES:
        text = text.replace(char, entity)
    return text


def _iso_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


class _Writer:
    """Accumula righe indentate di due spazi per livello"""

    def __init__(self):
        self.lines: List[str] = []
        self.depth = 0

    def open(self, tag: str):
        self.lines.append(f"{'  ' * self.depth}<{tag}>")
        self.depth += 1

    def close(self, tag: str):
        self.depth -= 1
        self.lines.append(f"{'  ' * self.depth}</{tag}>")

    def leaf(self, tag: str, value: Any):
        self.lines.append(f"{'  ' * self.depth}<{tag}>{value}</{tag}>")

    def text(self, tag: str, value: Any):
        self.leaf(tag, escape_xml(value))


def _check_mandatory(invoice: Mapping[str, Any], items: Sequence[Any]) -> str:
    number = (item_value(invoice, "invoice_number") or "").strip()
    if not number:
        raise SerializationError("Numero fattura mancante: impossibile generare l'XML")
    progressive = invoice_number_digits(number)
    if not progressive:
        raise SerializationError(f"Il numero fattura '{number}' non contiene cifre per il progressivo di invio")
    if not item_value(invoice, "issue_date"):
        raise SerializationError(f"Data di emissione mancante per la fattura {number}")
    if not items:
        raise SerializationError(f"La fattura {number} non contiene righe")
    for index, item in enumerate(items, start=1):
        if not (item_value(item, "description") or "").strip():
            raise SerializationError(f"Descrizione mancante sulla riga {index} della fattura {number}")
    return progressive


def _dati_trasmissione(w: _Writer, progressive: str, issuer: IssuerConfig):
    w.open("DatiTrasmissione")
    w.open("IdTrasmittente")
    w.text("IdPaese", issuer.country_code)
    w.text("IdCodice", issuer.transmitter_id_code)
    w.close("IdTrasmittente")
    w.leaf("ProgressivoInvio", progressive)
    w.leaf("FormatoTrasmissione", FORMATO_TRASMISSIONE)
    w.text("CodiceDestinatario", issuer.recipient_code)
    w.close("DatiTrasmissione")


def _cedente_prestatore(w: _Writer, issuer: IssuerConfig):
    w.open("CedentePrestatore")
    w.open("DatiAnagrafici")
    w.open("IdFiscaleIVA")
    w.text("IdPaese", issuer.country_code)
    w.text("IdCodice", issuer.vat_number)
    w.close("IdFiscaleIVA")
    w.open("Anagrafica")
    w.text("Denominazione", issuer.company_name)
    w.close("Anagrafica")
    w.text("RegimeFiscale", issuer.fiscal_regime_code)
    w.close("DatiAnagrafici")
    w.open("Sede")
    w.text("Indirizzo", issuer.address)
    w.text("CAP", issuer.postal_code)
    w.text("Comune", issuer.city)
    w.text("Provincia", issuer.province)
    w.text("Nazione", issuer.country)
    w.close("Sede")
    w.close("CedentePrestatore")


def _cessionario_committente(w: _Writer, customer: Optional[Mapping[str, Any]], issuer: IssuerConfig):
    customer = customer or {}
    vat_number = item_value(customer, "vat_number")
    tax_code = item_value(customer, "tax_code")
    address = item_value(customer, "address")

    w.open("CessionarioCommittente")
    w.open("DatiAnagrafici")
    if vat_number:
        w.open("IdFiscaleIVA")
        w.leaf("IdPaese", "IT")
        w.text("IdCodice", vat_number)
        w.close("IdFiscaleIVA")
    if tax_code:
        w.text("CodiceFiscale", tax_code)
    w.open("Anagrafica")
    w.text("Denominazione", item_value(customer, "name") or issuer.default_customer_label)
    w.close("Anagrafica")
    w.close("DatiAnagrafici")
    if address:
        # CAP e comune non sono scomposti dall'indirizzo libero
        w.open("Sede")
        w.text("Indirizzo", address)
        w.text("CAP", issuer.recipient_default_postal_code)
        w.text("Comune", issuer.recipient_default_city)
        w.leaf("Nazione", "IT")
        w.close("Sede")
    w.close("CessionarioCommittente")


def _dati_generali(w: _Writer, invoice: Mapping[str, Any]):
    w.open("DatiGenerali")
    w.open("DatiGeneraliDocumento")
    w.leaf("TipoDocumento", TIPO_DOCUMENTO)
    w.leaf("Divisa", DIVISA)
    w.leaf("Data", _iso_date(item_value(invoice, "issue_date")))
    w.text("Numero", item_value(invoice, "invoice_number"))
    w.leaf("ImportoTotaleDocumento", format_amount(item_value(invoice, "total")))
    notes = item_value(invoice, "notes")
    if notes:
        w.text("Causale", notes)
    w.close("DatiGeneraliDocumento")
    w.close("DatiGenerali")


def _dati_beni_servizi(w: _Writer, items: Sequence[Any], issuer: IssuerConfig):
    w.open("DatiBeniServizi")
    for number, item in enumerate(items, start=1):
        quantity = item_value(item, "quantity")
        unit_price = item_value(item, "unit_price")
        w.open("DettaglioLinee")
        w.leaf("NumeroLinea", number)
        w.text("Descrizione", item_value(item, "description"))
        w.leaf("Quantita", format_amount(quantity))
        w.text("UnitaMisura", item_value(item, "unit") or issuer.default_unit_code)
        w.leaf("PrezzoUnitario", format_amount(unit_price))
        w.leaf("PrezzoTotale", format_amount(line_subtotal(quantity, unit_price)))
        w.leaf("AliquotaIVA", format_amount(item_value(item, "tax_rate")))
        w.close("DettaglioLinee")

    for bucket in aggregate_by_tax_rate(items).values():
        w.open("DatiRiepilogo")
        w.leaf("AliquotaIVA", format_amount(bucket.rate))
        w.leaf("ImponibileImporto", format_amount(bucket.taxable_base))
        w.leaf("Imposta", format_amount(bucket.tax_amount))
        w.close("DatiRiepilogo")
    w.close("DatiBeniServizi")


def _dati_pagamento(w: _Writer, invoice: Mapping[str, Any], issuer: IssuerConfig):
    w.open("DatiPagamento")
    w.text("CondizioniPagamento", issuer.payment_terms_code)
    w.open("DettaglioPagamento")
    w.text("ModalitaPagamento", issuer.payment_method_code)
    due_date = item_value(invoice, "due_date")
    if due_date:
        w.leaf("DataScadenzaPagamento", _iso_date(due_date))
    w.leaf("ImportoPagamento", format_amount(item_value(invoice, "total")))
    w.close("DettaglioPagamento")
    w.close("DatiPagamento")


def generate_invoice_xml(
    invoice: Mapping[str, Any],
    customer: Optional[Mapping[str, Any]],
    items: Sequence[Any],
    issuer: IssuerConfig,
) -> str:
    """
    Genera il documento FatturaPA come stringa UTF-8.

    Solleva SerializationError se mancano numero fattura, data di emissione o
    righe: non viene mai prodotto un documento parziale.
    """
    items = list(items)
    progressive = _check_mandatory(invoice, items)

    w = _Writer()
    w.lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    w.lines.append(_ROOT_OPEN)
    w.depth = 1
    w.open("FatturaElettronicaHeader")
    _dati_trasmissione(w, progressive, issuer)
    _cedente_prestatore(w, issuer)
    _cessionario_committente(w, customer, issuer)
    w.close("FatturaElettronicaHeader")
    w.open("FatturaElettronicaBody")
    _dati_generali(w, invoice)
    _dati_beni_servizi(w, items, issuer)
    _dati_pagamento(w, invoice, issuer)
    w.close("FatturaElettronicaBody")
    w.lines.append("</p:FatturaElettronica>")

    logger.debug("XML FatturaPA generato per %s (%d righe)", item_value(invoice, "invoice_number"), len(items))
    return "\n".join(w.lines)


def xml_file_name(invoice: Mapping[str, Any], customer: Optional[Mapping[str, Any]]) -> str:
    """Nome file IT<partita IVA cliente o segnaposto>_<cifre del numero>.xml"""
    vat_number = item_value(customer or {}, "vat_number") or PLACEHOLDER_VAT
    return f"IT{vat_number}_{invoice_number_digits(item_value(invoice, 'invoice_number'))}.xml"
