"""
Test esportazione XML FatturaPA.
"""
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal

import pytest

from app.core.config import IssuerConfig
from app.services.fatturazione.errors import SerializationError
from app.services.fatturazione.fattura_xml import (
    XML_MIME_TYPE,
    escape_xml,
    generate_invoice_xml,
    xml_file_name,
)

NS = {"p": "http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2"}

ISSUER = IssuerConfig(
    country_code="IT",
    vat_number="12345678901",
    company_name="Invoice Manager SRL",
    fiscal_regime_code="RF01",
    address="Via Roma 1",
    postal_code="20100",
    city="Milano",
    province="MI",
    country="IT",
)


@pytest.fixture
def invoice():
    return {
        "id": "inv-1",
        "invoice_number": "INV-2026-000042",
        "issue_date": date(2026, 3, 15),
        "due_date": date(2026, 4, 14),
        "subtotal": Decimal("1400.00"),
        "tax_amount": Decimal("264.00"),
        "total": Decimal("1664.00"),
        "notes": None,
    }


@pytest.fixture
def customer():
    return {
        "name": "Rossi & Figli S.r.l.",
        "vat_number": "12345678903",
        "tax_code": None,
        "address": "Via Verdi 10, Torino",
    }


@pytest.fixture
def items():
    return [
        {"description": "Sviluppo Web", "quantity": Decimal("1"), "unit_price": Decimal("800"),
         "tax_rate": Decimal("22"), "unit": "pz"},
        {"description": "Consulenza", "quantity": Decimal("4"), "unit_price": Decimal("50"),
         "tax_rate": Decimal("22"), "unit": None},
        {"description": "Formazione", "quantity": Decimal("1"), "unit_price": Decimal("400"),
         "tax_rate": Decimal("10"), "unit": "h"},
    ]


def _parse(xml: str):
    return ET.fromstring(xml.encode("utf-8"))


class TestEscape:
    def test_special_characters(self):
        assert escape_xml("a & b < c > d \" e ' f") == "a &amp; b &lt; c &gt; d &quot; e &apos; f"

    def test_none_is_empty(self):
        assert escape_xml(None) == ""

    def test_no_double_escaping_of_ampersand(self):
        assert escape_xml("&lt;") == "&amp;lt;"


class TestGenerazioneXml:
    """Struttura del documento FPR12"""

    def test_declaration_and_root(self, invoice, customer, items):
        xml = generate_invoice_xml(invoice, customer, items, ISSUER)
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n')
        root = _parse(xml)
        assert root.tag == "{%s}FatturaElettronica" % NS["p"]
        assert root.attrib["versione"] == "FPR12"
        assert [child.tag for child in root] == ["FatturaElettronicaHeader", "FatturaElettronicaBody"]
        assert 'xmlns:ds="http://www.w3.org/2000/09/xmldsig#"' in xml
        assert 'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"' in xml

    def test_is_deterministic(self, invoice, customer, items):
        first = generate_invoice_xml(invoice, customer, items, ISSUER)
        second = generate_invoice_xml(dict(invoice), dict(customer), list(items), ISSUER)
        assert first.encode("utf-8") == second.encode("utf-8")

    def test_transmission_data(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        trasmissione = root.find("FatturaElettronicaHeader/DatiTrasmissione")
        assert trasmissione.findtext("IdTrasmittente/IdPaese") == "IT"
        assert trasmissione.findtext("ProgressivoInvio") == "2026000042"
        assert trasmissione.findtext("FormatoTrasmissione") == "FPR12"
        assert trasmissione.findtext("CodiceDestinatario") == "0000000"

    def test_issuer_from_configuration(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        cedente = root.find("FatturaElettronicaHeader/CedentePrestatore")
        assert cedente.findtext("DatiAnagrafici/IdFiscaleIVA/IdCodice") == "12345678901"
        assert cedente.findtext("DatiAnagrafici/Anagrafica/Denominazione") == "Invoice Manager SRL"
        assert cedente.findtext("DatiAnagrafici/RegimeFiscale") == "RF01"
        assert cedente.findtext("Sede/Comune") == "Milano"
        assert cedente.findtext("Sede/Provincia") == "MI"

    def test_customer_name_escaped_once(self, invoice, customer, items):
        customer["name"] = "A&B <Srl> \"Uno\" 'Due'"
        xml = generate_invoice_xml(invoice, customer, items, ISSUER)
        assert "<Denominazione>A&amp;B &lt;Srl&gt; &quot;Uno&quot; &apos;Due&apos;</Denominazione>" in xml
        assert xml.count("&amp;") == 1
        assert "&amp;amp;" not in xml
        root = _parse(xml)
        name = root.findtext("FatturaElettronicaHeader/CessionarioCommittente/DatiAnagrafici/Anagrafica/Denominazione")
        assert name == "A&B <Srl> \"Uno\" 'Due'"

    def test_customer_optional_elements(self, invoice, items):
        customer = {"name": "Mario Rossi", "tax_code": "RSSMRA85T10A562S", "vat_number": None, "address": None}
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        cessionario = root.find("FatturaElettronicaHeader/CessionarioCommittente")
        assert cessionario.find("DatiAnagrafici/IdFiscaleIVA") is None
        assert cessionario.findtext("DatiAnagrafici/CodiceFiscale") == "RSSMRA85T10A562S"
        assert cessionario.find("Sede") is None

    def test_customer_with_vat_and_address(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        cessionario = root.find("FatturaElettronicaHeader/CessionarioCommittente")
        assert cessionario.findtext("DatiAnagrafici/IdFiscaleIVA/IdPaese") == "IT"
        assert cessionario.findtext("DatiAnagrafici/IdFiscaleIVA/IdCodice") == "12345678903"
        assert cessionario.find("DatiAnagrafici/CodiceFiscale") is None
        assert cessionario.findtext("Sede/Indirizzo") == "Via Verdi 10, Torino"
        assert cessionario.findtext("Sede/CAP") == "00000"
        assert cessionario.findtext("Sede/Nazione") == "IT"

    def test_missing_customer_uses_default_label(self, invoice, items):
        root = _parse(generate_invoice_xml(invoice, None, items, ISSUER))
        name = root.findtext("FatturaElettronicaHeader/CessionarioCommittente/DatiAnagrafici/Anagrafica/Denominazione")
        assert name == "Cliente"

    def test_general_data(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        documento = root.find("FatturaElettronicaBody/DatiGenerali/DatiGeneraliDocumento")
        assert documento.findtext("TipoDocumento") == "TD01"
        assert documento.findtext("Divisa") == "EUR"
        assert documento.findtext("Data") == "2026-03-15"
        assert documento.findtext("Numero") == "INV-2026-000042"
        assert documento.findtext("ImportoTotaleDocumento") == "1664.00"
        assert documento.find("Causale") is None

    def test_notes_become_causale(self, invoice, customer, items):
        invoice["notes"] = "Pagamento entro 30 giorni"
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        causale = root.findtext("FatturaElettronicaBody/DatiGenerali/DatiGeneraliDocumento/Causale")
        assert causale == "Pagamento entro 30 giorni"

    def test_line_details(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        linee = root.findall("FatturaElettronicaBody/DatiBeniServizi/DettaglioLinee")
        assert [l.findtext("NumeroLinea") for l in linee] == ["1", "2", "3"]
        consulenza = linee[1]
        assert consulenza.findtext("Descrizione") == "Consulenza"
        assert consulenza.findtext("Quantita") == "4.00"
        assert consulenza.findtext("UnitaMisura") == "NR"
        assert consulenza.findtext("PrezzoUnitario") == "50.00"
        assert consulenza.findtext("PrezzoTotale") == "200.00"
        assert consulenza.findtext("AliquotaIVA") == "22.00"
        assert linee[2].findtext("UnitaMisura") == "h"

    def test_summary_per_rate(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        riepiloghi = root.findall("FatturaElettronicaBody/DatiBeniServizi/DatiRiepilogo")
        assert [
            (r.findtext("AliquotaIVA"), r.findtext("ImponibileImporto"), r.findtext("Imposta"))
            for r in riepiloghi
        ] == [("22.00", "1000.00", "220.00"), ("10.00", "400.00", "40.00")]

    def test_payment_data(self, invoice, customer, items):
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        pagamento = root.find("FatturaElettronicaBody/DatiPagamento")
        assert pagamento.findtext("CondizioniPagamento") == "TP02"
        dettaglio = pagamento.find("DettaglioPagamento")
        assert dettaglio.findtext("ModalitaPagamento") == "MP05"
        assert dettaglio.findtext("DataScadenzaPagamento") == "2026-04-14"
        assert dettaglio.findtext("ImportoPagamento") == "1664.00"

    def test_payment_without_due_date(self, invoice, customer, items):
        invoice["due_date"] = None
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        assert root.find("FatturaElettronicaBody/DatiPagamento/DettaglioPagamento/DataScadenzaPagamento") is None

    def test_accepts_iso_strings(self, invoice, customer, items):
        invoice["issue_date"] = "2026-03-15"
        invoice["total"] = "1664"
        root = _parse(generate_invoice_xml(invoice, customer, items, ISSUER))
        documento = root.find("FatturaElettronicaBody/DatiGenerali/DatiGeneraliDocumento")
        assert documento.findtext("Data") == "2026-03-15"
        assert documento.findtext("ImportoTotaleDocumento") == "1664.00"


class TestCampiObbligatori:
    """Nessun documento parziale se mancano dati obbligatori"""

    @pytest.mark.parametrize("number", ["", "   ", None])
    def test_missing_number(self, invoice, customer, items, number):
        invoice["invoice_number"] = number
        with pytest.raises(SerializationError):
            generate_invoice_xml(invoice, customer, items, ISSUER)

    def test_number_without_digits(self, invoice, customer, items):
        invoice["invoice_number"] = "BOZZA"
        with pytest.raises(SerializationError):
            generate_invoice_xml(invoice, customer, items, ISSUER)

    def test_missing_issue_date(self, invoice, customer, items):
        invoice["issue_date"] = None
        with pytest.raises(SerializationError):
            generate_invoice_xml(invoice, customer, items, ISSUER)

    def test_no_items(self, invoice, customer):
        with pytest.raises(SerializationError):
            generate_invoice_xml(invoice, customer, [], ISSUER)

    def test_item_without_description(self, invoice, customer, items):
        items[1]["description"] = "  "
        with pytest.raises(SerializationError) as exc_info:
            generate_invoice_xml(invoice, customer, items, ISSUER)
        assert "riga 2" in str(exc_info.value)


class TestNomeFile:
    def test_with_customer_vat(self, invoice, customer):
        assert xml_file_name(invoice, customer) == "IT12345678903_2026000042.xml"

    def test_placeholder_vat(self, invoice):
        assert xml_file_name(invoice, {"vat_number": None}) == "IT00000000000_2026000042.xml"
        assert xml_file_name(invoice, None) == "IT00000000000_2026000042.xml"

    def test_mime_type(self):
        assert XML_MIME_TYPE == "application/xml; charset=utf-8"
