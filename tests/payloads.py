"""Payload builders shared by the tests.

Payloads are assembled with ``build_payload`` so declared lengths are always
UTF-8 byte counts, including for the accented message text.
"""

from qr_tlv import build_payload

MESSAGE = "Thanh toán hóa đơn 6869"


def merchant_account(bank_code="970403", account_number="0123456789"):
    network = build_payload([("00", bank_code), ("01", account_number)])
    return build_payload([("00", "A000000727"), ("01", network), ("02", "QRIBFTTA")])


def full_fields(initiation="12", message=MESSAGE, crc="ABCD"):
    fields = [
        ("00", "01"),
        ("01", initiation),
        ("38", merchant_account()),
        ("53", "704"),
        ("54", "180000"),
        ("58", "VN"),
        ("62", build_payload([("08", message)])),
    ]
    if crc is not None:
        fields.append(("63", crc))
    return fields
