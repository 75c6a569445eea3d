from decimal import Decimal

from conftest import make_rows, text_rows

from erp2json.items import (
    TableState,
    clean_remark,
    column_map,
    extract_items,
    is_header_row,
    is_valid_remark,
    locate_table,
)
from erp2json.models import InputFormat


def test_header_needs_all_four_label_families():
    assert is_header_row("รหัสสินค้า รายละเอียด จำนวน ราคา")
    assert is_header_row("Code Description Qty Unit Price Amount")
    assert not is_header_row("รายละเอียด จำนวน ราคา")


def test_terminator_excludes_grand_total_row():
    rows = text_rows(
        """
        ลำดับ รหัสสินค้า รายละเอียด จำนวน ราคา
        1 สายไฟ 2 เมตร 10.00 20.00
        20.00 จำนวนเงินรวมทั้งสิ้น
        รวมเป็นเงิน 20.00
        """
    )
    bounds = locate_table(rows)

    assert (bounds.header, bounds.start, bounds.end, bounds.terminated) == (0, 1, 3, True)
    assert TableState.DONE.value == "done"


def test_markup_scenario_single_item(config):
    rows = make_rows(
        ["รหัสสินค้า", "รายละเอียด", "จำนวน", "ราคา"],
        ["A001", "Cable tie", "3.0", "80.00", "240.00"],
        ["รวมเป็นเงิน"],
    )
    table = extract_items(rows, InputFormat.MARKUP, config)

    assert len(table.items) == 1
    item = table.items[0]
    assert item.line_number == 1
    assert item.product_code == "A001"
    assert item.description == "Cable tie"
    assert item.quantity == Decimal("3.0")
    assert item.unit_price == Decimal("80.00")
    assert item.amount == Decimal("240.00")
    assert item.unit == ""


def test_column_map_uses_header_labels():
    header = make_rows(["ลำดับ", "รหัสสินค้า", "รายละเอียด", "จำนวน", "หน่วย", "ราคา/หน่วย", "จำนวนเงิน"])[0]
    columns = column_map(header)

    assert (columns.code, columns.description, columns.quantity) == (1, 2, 3)
    assert (columns.unit, columns.unit_price, columns.amount) == (4, 5, 6)
    assert columns.width == 7


def test_markup_skips_short_rows_and_derives_unit_price(config):
    rows = make_rows(
        ["ลำดับ", "รหัสสินค้า", "รายละเอียด", "จำนวน", "หน่วย", "ราคา/หน่วย", "จำนวนเงิน"],
        ["1", "C300", "ค่าขนส่ง", "2", "เที่ยว", "0", "150"],
        ["", "", "หมายเหตุสั้น"],
        ["2", "D400", "สินค้าตัวอย่าง", "0", "ชิ้น", "0", "0"],
        ["", "", "", "", "", "รวมเป็นเงิน", "150"],
    )
    items = extract_items(rows, InputFormat.MARKUP, config).items

    assert len(items) == 1
    assert items[0].unit_price == Decimal("75.00")
    assert items[0].remarks == []


def test_plain_text_remark_folding(config):
    rows = text_rows(
        """
        ลำดับ รหัสสินค้า รายละเอียด จำนวน หน่วย ราคา/หน่วย จำนวนเงิน
        1 เคเบิลไทร์ 3.0 ห่อ 80.00 240.00
        สีขาว (100 เส้น/ห่อ)
        240.00 รวมเป็นเงิน Subtotal
        """
    )
    table = extract_items(rows, InputFormat.PLAIN_TEXT, config)

    assert len(table.items) == 1
    item = table.items[0]
    assert item.remarks == ["สีขาว (100 เส้น/ห่อ)"]
    assert item.has_remarks and item.remark_count == 1
    assert item.full_description == "เคเบิลไทร์ (สีขาว (100 เส้น/ห่อ))"
    assert item.source_line_number == 1


def test_strict_pattern_wins_for_whole_table(config):
    rows = text_rows(
        """
        ลำดับ รายละเอียด จำนวน หน่วย ราคา จำนวนเงิน
        1 เทปพันสายไฟ 10 ม้วน 25.50 255.00
        2 Cable tie 8 inch 3 ห่อ 80.00 240.00
        รวมเป็นเงิน 495.00
        """
    )
    table = extract_items(rows, InputFormat.PLAIN_TEXT, config)

    assert table.pattern == 0
    assert [item.description for item in table.items] == ["เทปพันสายไฟ"]


def test_loose_pattern_splits_product_code(config):
    rows = text_rows(
        """
        ลำดับ รหัสสินค้า รายละเอียด จำนวน หน่วย ราคา จำนวนเงิน
        1 A001 Cable tie 8 inch 3.0 pack 80.00 240.00
        รวมเป็นเงิน 240.00
        """
    )
    table = extract_items(rows, InputFormat.PLAIN_TEXT, config)

    assert table.pattern == 1
    item = table.items[0]
    assert (item.product_code, item.description, item.unit) == ("A001", "Cable tie 8 inch", "pack")


def test_duplicates_are_dropped_and_numbers_dense(config):
    rows = text_rows(
        """
        ลำดับ รหัสสินค้า รายละเอียด จำนวน หน่วย ราคา จำนวนเงิน
        3 สายไฟ 2 เมตร 10.00 20.00
        3 ท่อร้อยสาย 1 เมตร 50.00 50.00
        7 สายไฟ 2 เมตร 10.00 20.00
        9 เบรกเกอร์ 1 ตัว 350.00 350.00
        รวมเป็นเงิน 420.00
        """
    )
    items = extract_items(rows, InputFormat.PLAIN_TEXT, config).items

    assert [item.description for item in items] == ["สายไฟ", "เบรกเกอร์"]
    assert [item.line_number for item in items] == [1, 2]


def test_missing_terminator_closes_at_end_with_diagnostic(config):
    rows = text_rows(
        """
        ลำดับ รหัสสินค้า รายละเอียด จำนวน หน่วย ราคา จำนวนเงิน
        1 สายไฟ 2 เมตร 10.00 20.00
        """
    )
    table = extract_items(rows, InputFormat.PLAIN_TEXT, config)

    assert len(table.items) == 1
    assert table.diagnostics[0].startswith("table_terminator_missing:")
    assert table.bounds.summary_start == table.bounds.start == 1


def test_fallback_scan_never_captures_summary_vocabulary(config):
    rows = text_rows(
        """
        1 รวมค่าขนส่ง 1 ชุด 150.00 150.00
        2 ตู้ควบคุมไฟฟ้า 1 ตัว 4,500.00 4,500.00
        3 สาย 1 ตัว 10.00 10.00
        """
    )
    table = extract_items(rows, InputFormat.PLAIN_TEXT, config)

    assert not table.header_found
    assert [item.description for item in table.items] == ["ตู้ควบคุมไฟฟ้า"]
    assert table.items[0].amount == Decimal("4500.00")


def test_remark_filter(config):
    assert clean_remark("  - ใช้งานภายนอก  ") == "ใช้งานภายนอก"
    assert is_valid_remark("สีขาว (100 เส้น/ห่อ)", config)
    assert not is_valid_remark("12345", config)
    assert not is_valid_remark("....", config)
    assert not is_valid_remark("ภาษีมูลค่าเพิ่ม", config)
    assert not is_valid_remark("ab", config)
