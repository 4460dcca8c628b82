from qr_fields import (
    FIELD_HANDLERS,
    FieldId,
    InitiationMethod,
    PaymentRecord,
    extract_fields,
    field_update,
)
from qr_tlv import Triple, build_payload, tokenize

from payloads import MESSAGE, merchant_account


def _record(fields):
    return extract_fields(tokenize(build_payload(fields)).triples)


def test_every_field_id_has_a_handler():
    assert set(FIELD_HANDLERS) == set(FieldId)


def test_full_payload(full_payload):
    record = extract_fields(tokenize(full_payload).triples)
    assert record.payload_format_indicator == "01"
    assert record.initiation_method is InitiationMethod.DYNAMIC
    assert record.bank_code == "970403"
    assert record.account_number == "0123456789"
    assert record.currency == "704"
    assert record.amount == "180000"
    assert record.country_code == "VN"
    assert record.message == MESSAGE
    assert record.crc == "ABCD"
    assert record.merchant_category is None


def test_initiation_method_codes():
    assert _record([("01", "11")]).initiation_method is InitiationMethod.STATIC
    assert _record([("01", "12")]).initiation_method is InitiationMethod.DYNAMIC
    assert _record([("01", "13")]).initiation_method is None


def test_unknown_initiation_code_keeps_earlier_value():
    assert _record([("01", "11"), ("01", "99")]).initiation_method is InitiationMethod.STATIC


def test_last_occurrence_wins():
    record = _record([("53", "704"), ("58", "VN"), ("53", "840")])
    assert record.currency == "840"
    assert record.country_code == "VN"


def test_last_merchant_account_wins():
    record = _record([
        ("38", merchant_account("970403", "111")),
        ("38", merchant_account("970436", "222")),
    ])
    assert record.bank_code == "970436"
    assert record.account_number == "222"


def test_additional_data_sub_fields():
    record = _record([("62", build_payload([
        ("07", "PURPOSE1"),
        ("08", "hello"),
        ("09", "BILL42"),
        ("05", "ignored"),
    ]))])
    assert record.purpose_code == "PURPOSE1"
    assert record.message == "hello"
    assert record.bill_number == "BILL42"


def test_values_are_not_trimmed():
    record = _record([("62", build_payload([("08", "  spaced  ")])), ("54", "0010")])
    assert record.message == "  spaced  "
    assert record.amount == "0010"


def test_unknown_ids_give_empty_record():
    record = _record([("99", "x"), ("26", "abc")])
    assert record == PaymentRecord()
    assert record.is_empty()


def test_malformed_merchant_account_is_skipped():
    record = _record([("00", "01"), ("38", "not tlv"), ("53", "704")])
    assert record.bank_code is None
    assert record.account_number is None
    assert record.payload_format_indicator == "01"
    assert record.currency == "704"


def test_merchant_account_without_network_data():
    record = _record([("38", build_payload([("00", "A000000727")]))])
    assert record.bank_code is None


def test_malformed_network_data_is_skipped():
    nested = build_payload([("00", "A000000727"), ("01", "ZZZZ")])
    assert _record([("38", nested)]).bank_code is None


def test_truncated_network_data_keeps_bank_code():
    network = build_payload([("00", "970403")]) + "0110012"
    nested = build_payload([("01", network)])
    record = _record([("38", nested)])
    assert record.bank_code == "970403"
    assert record.account_number is None


def test_empty_composite_values_are_skipped():
    assert _record([("38", ""), ("62", "")]).is_empty()


def test_field_update_is_pure():
    triple = Triple("53", 3, "704")
    assert field_update(triple) == {"currency": "704"}
    assert field_update(Triple("77", 1, "x")) == {}


def test_to_dict_uses_camel_case():
    record = _record([("00", "01"), ("01", "11"), ("58", "VN")])
    assert record.to_dict() == {
        "payloadFormatIndicator": "01",
        "initiationMethod": "static",
        "countryCode": "VN",
    }
