from datetime import date
from decimal import Decimal

import pytest

from erp2json import ExtractorConfig, parse_document
from erp2json.models import DocumentType, InputFormat, RawInput

SALES_ORDER_LINES = [
    '"บริษัท พี.เค.เทคนิค จำกัด"',
    '"ใบสั่งขาย","เลขที่ใบสั่งขาย SO6800321"',
    '"ลูกค้า CU00510","วันที่ 10/06/68"',
    '"บริษัท ไทยเครื่องกล จำกัด"',
    '"วันที่ส่งของ 20/06/68"',
    '"พนักงานขาย 2045-วิชัย"',
    '"ลำดับ","รหัสสินค้า","รายละเอียด","จำนวน","หน่วย","ราคา/หน่วย","จำนวนเงิน"',
    '"1","A001","Cable tie 8 inch","3.0","ห่อ","80.00","240.00"',
    '"2","B210","Insulation tape","10","ม้วน","25.50","255.00"',
    '"","","รวมเป็นเงิน","","","","495.00"',
    '"","","ภาษีมูลค่าเพิ่ม 7.00%","","","","34.65"',
    '"","","รวมทั้งสิ้น","","","","529.65"',
]


@pytest.fixture()
def markup_input(fixture_path):
    path = fixture_path("quotation.xml")
    return RawInput(path.read_bytes(), InputFormat.MARKUP, path.name)


@pytest.fixture()
def plain_input(fixture_path):
    path = fixture_path("quotation_pdf.txt")
    return RawInput(path.read_text(encoding="utf-8"), InputFormat.PLAIN_TEXT, path.name)


@pytest.fixture()
def delimited_input():
    payload = "\r\n".join(SALES_ORDER_LINES).encode("cp874")
    return RawInput(payload, InputFormat.DELIMITED, "so.csv")


def test_markup_quotation_end_to_end(markup_input, config):
    result = parse_document(markup_input, config)

    assert result.success
    meta = result.meta
    assert meta.document_type is DocumentType.QUOTATION
    assert meta.document_number == "QT6800123"
    assert meta.customer_code == "CU00042"
    assert meta.customer_name == "บริษัท เอบีซี อินดัสทรี จำกัด"
    assert meta.address_line1 == "99/1 ถนนสุขุมวิท"
    assert meta.address_line2 == "แขวงคลองเตย กรุงเทพฯ 10110"
    assert meta.contact_person == "คุณสมชาย"
    assert meta.payment_term == "เครดิต 30 วัน"
    assert meta.valid_days == 30
    assert meta.document_date == date(2025, 6, 5)
    assert meta.due_date == date(2025, 7, 5)
    assert meta.po_reference == "PO.2025/0456"

    assert [item.product_code for item in result.items] == ["A001", "B210", "C300"]
    assert [item.line_number for item in result.items] == [1, 2, 3]
    assert result.items[2].unit_price == Decimal("150.00")

    summary = result.summary
    assert (summary.subtotal, summary.discount) == (Decimal("645"), Decimal("45"))
    assert (summary.vat_percent, summary.vat_amount) == (Decimal("7"), Decimal("42"))
    assert summary.total == Decimal("642")
    assert summary.derived == []
    assert result.diagnostics == []


def test_plain_text_quotation_end_to_end(plain_input, config):
    result = parse_document(plain_input, config)

    assert result.success
    assert result.meta.document_number == "QT6800456"
    assert result.meta.customer_name == "บริษัท สยามวัสดุ จำกัด"
    assert result.meta.sales_person == "1023-สมศรี"
    assert result.meta.document_date == date(2025, 6, 5)
    assert result.meta.due_date == date(2025, 7, 5)
    assert result.item_count == 3
    assert result.items_with_remarks == 2
    assert result.total_remarks == 2
    assert result.items[1].full_description == "เทปพันสายไฟ (ใช้งานภายนอก)"
    assert result.summary.total == Decimal("5986.65")
    assert result.summary.vat_amount == Decimal("391.65")


def test_delimited_sales_order_end_to_end(delimited_input, config):
    result = parse_document(delimited_input, config)

    assert result.success
    meta = result.meta
    assert meta.document_type is DocumentType.SALES_ORDER
    assert meta.document_number == "SO6800321"
    assert meta.customer_code == "CU00510"
    assert meta.customer_name == "บริษัท ไทยเครื่องกล จำกัด"
    assert meta.document_date == date(2025, 6, 10)
    assert meta.delivery_date == date(2025, 6, 20)
    assert meta.sales_person_code == "2045"
    assert [(i.product_code, i.description) for i in result.items] == [
        ("A001", "Cable tie 8 inch"),
        ("B210", "Insulation tape"),
    ]
    assert result.summary.subtotal == Decimal("495.00")
    assert result.summary.total == Decimal("529.65")


def test_markup_scenario_derives_subtotal(config):
    markup = (
        "<Table>"
        "<Row><Cell><Data ss:Type='String'>รหัสสินค้า</Data></Cell><Cell><Data ss:Type='String'>รายละเอียด</Data></Cell>"
        "<Cell><Data ss:Type='String'>จำนวน</Data></Cell><Cell><Data ss:Type='String'>ราคา</Data></Cell></Row>"
        "<Row><Cell><Data ss:Type='String'>A001</Data></Cell><Cell><Data ss:Type='String'>Cable tie</Data></Cell>"
        "<Cell><Data ss:Type='Number'>3.0</Data></Cell><Cell><Data ss:Type='Number'>80.00</Data></Cell>"
        "<Cell><Data ss:Type='Number'>240.00</Data></Cell></Row>"
        "<Row><Cell><Data ss:Type='String'>รวมเป็นเงิน</Data></Cell></Row>"
        "</Table>"
    )
    result = parse_document(RawInput(markup, InputFormat.MARKUP), config)

    assert [(i.line_number, i.product_code, i.amount) for i in result.items] == [(1, "A001", Decimal("240.00"))]
    assert result.summary.subtotal == Decimal("240.00")
    assert "subtotal" in result.summary.derived
    assert not result.success


def test_parse_is_deterministic(plain_input, config):
    first = parse_document(plain_input, config)
    second = parse_document(plain_input, config)

    assert first == second
    assert first.to_dict(include_timestamp=False) == second.to_dict(include_timestamp=False)


def test_undecodable_payload_fails_with_diagnostic():
    strict = ExtractorConfig(encodings=("utf-8", "ascii"))
    result = parse_document(RawInput(b"\xff\xfe", InputFormat.DELIMITED), strict)

    assert not result.success
    assert result.diagnostics[0].startswith("encoding_failed:")


def test_empty_document_reports_missing_anchor(config):
    result = parse_document(RawInput("   \n\n", InputFormat.PLAIN_TEXT), config)

    assert not result.success
    assert result.diagnostics == ["structural_anchor_missing: no extractable rows"]


def test_no_number_and_no_header_is_flagged(config):
    result = parse_document(RawInput("ลูกค้า CU001\nหมายเหตุ", InputFormat.PLAIN_TEXT), config)

    assert not result.success
    assert any(d.startswith("structural_anchor_missing:") for d in result.diagnostics)


def test_stage_failure_is_reported_not_raised(config, monkeypatch):
    def boom(*args):
        raise RuntimeError("bad layout")

    monkeypatch.setattr("erp2json.pipeline.extract_items", boom)
    result = parse_document(RawInput("QT6800001 CU001", InputFormat.PLAIN_TEXT), config)

    assert result.meta.document_number == "QT6800001"
    assert result.items == []
    assert any(d.startswith("stage_failed: items") for d in result.diagnostics)


def test_to_dict_serializes_money_and_dates(markup_input, config):
    data = parse_document(markup_input, config).to_dict()

    assert data["meta"]["document_date"] == "2025-06-05"
    assert data["summary"]["total"] == 642
    assert data["items"][1]["unit_price"] == 25.5
    assert data["input_format"] == "markup"
    assert "processed_at" in data


def test_unterminated_markup_table_keeps_printed_total(config):
    markup = (
        "<Table>"
        "<Row><Cell><Data ss:Type='String'>รหัสสินค้า</Data></Cell><Cell><Data ss:Type='String'>รายละเอียด</Data></Cell>"
        "<Cell><Data ss:Type='String'>จำนวน</Data></Cell><Cell><Data ss:Type='String'>ราคา</Data></Cell></Row>"
        "<Row><Cell><Data ss:Type='String'>A001</Data></Cell><Cell><Data ss:Type='String'>Cable tie</Data></Cell>"
        "<Cell><Data ss:Type='Number'>3.0</Data></Cell><Cell><Data ss:Type='Number'>80.00</Data></Cell>"
        "<Cell><Data ss:Type='Number'>240.00</Data></Cell></Row>"
        "<Row><Cell><Data ss:Type='String'>ภาษีมูลค่าเพิ่ม 7%</Data></Cell><Cell><Data ss:Type='Number'>16.80</Data></Cell></Row>"
        "<Row><Cell><Data ss:Type='String'>จำนวนเงินรวมทั้งสิ้น</Data></Cell><Cell><Data ss:Type='Number'>256.80</Data></Cell></Row>"
        "</Table>"
    )
    result = parse_document(RawInput(markup, InputFormat.MARKUP), config)

    assert result.summary.vat_amount == Decimal("16.80")
    assert result.summary.total == Decimal("256.80")
    assert any(d.startswith("table_terminator_missing:") for d in result.diagnostics)


def test_seller_tax_id_does_not_become_vat_without_item_header(config):
    text = "\n".join(
        [
            "บริษัท พี.เค.เทคนิค จำกัด เลขประจำตัวผู้เสียภาษี 0105551234567",
            "QT6800001 CU00001",
            "1 สายไฟฟ้าทองแดง 3 ม้วน 80.00 240.00",
            "240.00 รวมเป็นเงิน Subtotal",
            "7.00 % 16.80 จำนวนภาษีมูลค่าเพิ่ม VAT",
            "256.80 จำนวนเงินรวมทั้งสิ้น",
        ]
    )
    result = parse_document(RawInput(text, InputFormat.PLAIN_TEXT), config)

    assert result.success
    assert [item.amount for item in result.items] == [Decimal("240.00")]
    assert (result.summary.vat_percent, result.summary.vat_amount) == (Decimal("7.00"), Decimal("16.80"))
    assert result.summary.total == Decimal("256.80")
    assert result.diagnostics == []
