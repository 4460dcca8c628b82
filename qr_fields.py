# Purpose: Map tokenized EMV QR triples onto a payment record.
# Unknown field IDs are ignored so newer payloads still parse.

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional

from qr_errors import TLVError
from qr_tlv import tokenize

log = logging.getLogger(__name__)


class FieldId(Enum):
    PAYLOAD_FORMAT = "00"
    INITIATION_METHOD = "01"
    MERCHANT_ACCOUNT = "38"
    MERCHANT_CATEGORY = "52"
    CURRENCY = "53"
    AMOUNT = "54"
    COUNTRY = "58"
    ADDITIONAL_DATA = "62"
    CRC = "63"


class AdditionalDataId(Enum):
    PURPOSE = "07"
    MESSAGE = "08"
    BILL_NUMBER = "09"


class InitiationMethod(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


INITIATION_CODES = {
    "11": InitiationMethod.STATIC,
    "12": InitiationMethod.DYNAMIC,
}

# Sub-field of tag 38 holding the payment network data, and its own sub-fields.
NETWORK_DATA_ID = "01"
BANK_CODE_ID = "00"
ACCOUNT_NUMBER_ID = "01"

# Descriptions used when dumping a payload
FIELD_INFO = {
    "00": "Payload Format Indicator",
    "01": "Point of Initiation Method",
    "38": "Merchant Account Information",
    "52": "Merchant Category Code (MCC)",
    "53": "Transaction Currency",
    "54": "Transaction Amount",
    "58": "Country Code",
    "62": "Additional Data Field Template",
    "63": "CRC",
}

SUBFIELD_INFO = {
    "38": {
        "00": "Globally Unique Identifier",
        "01": "Payment Network Specific Data",
        "02": "Service Code",
    },
    "38.01": {
        "00": "Bank Identifier",
        "01": "Account / Card Number",
    },
    "62": {
        "07": "Purpose of Transaction",
        "08": "Message",
        "09": "Bill Number",
    },
}


@dataclass(frozen=True)
class PaymentRecord:
    payload_format_indicator: Optional[str] = None
    initiation_method: Optional[InitiationMethod] = None
    bank_code: Optional[str] = None
    account_number: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    country_code: Optional[str] = None
    merchant_category: Optional[str] = None
    message: Optional[str] = None
    purpose_code: Optional[str] = None
    bill_number: Optional[str] = None
    crc: Optional[str] = None

    def present_fields(self):
        """Names of the fields that were extracted, in declaration order."""
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def is_empty(self):
        return not self.present_fields()

    def to_dict(self):
        """Present fields keyed by their camelCase names, ready for json.dumps."""
        out = {}
        for name in self.present_fields():
            value = getattr(self, name)
            if isinstance(value, InitiationMethod):
                value = value.value
            out[_camel(name)] = value
        return out


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _nested(value, label):
    """Tokenizes a composite field value. Returns None when it is not valid TLV."""
    try:
        nested = tokenize(value)
    except TLVError as e:
        log.debug("Skipping %s: %s", label, e.message)
        return None
    if nested.corrupted:
        log.debug("%s is truncated, using %d sub-field(s)", label, len(nested.triples))
    return nested.triples


def _last(triples, sub_id):
    found = None
    for triple in triples:
        if triple.id == sub_id:
            found = triple
    return found


# --- FIELD HANDLERS ---
# Each handler returns the record fields a single triple sets.

def _initiation_method(value):
    method = INITIATION_CODES.get(value)
    if method is None:
        return {}
    return {"initiation_method": method}


def _merchant_account(value):
    """Tag 38: payment network data (sub 01) nests bank code (00) and account (01)."""
    account_fields = _nested(value, "merchant account")
    if account_fields is None:
        return {}

    network = _last(account_fields, NETWORK_DATA_ID)
    if network is None:
        return {}

    network_fields = _nested(network.value, "payment network data")
    if network_fields is None:
        return {}

    update = {}
    for triple in network_fields:
        if triple.id == BANK_CODE_ID:
            update["bank_code"] = triple.value
        elif triple.id == ACCOUNT_NUMBER_ID:
            update["account_number"] = triple.value
    return update


ADDITIONAL_DATA_FIELDS = {
    AdditionalDataId.PURPOSE: "purpose_code",
    AdditionalDataId.MESSAGE: "message",
    AdditionalDataId.BILL_NUMBER: "bill_number",
}


def _additional_data(value):
    sub_fields = _nested(value, "additional data")
    if sub_fields is None:
        return {}

    update = {}
    for triple in sub_fields:
        try:
            sub_id = AdditionalDataId(triple.id)
        except ValueError:
            continue
        update[ADDITIONAL_DATA_FIELDS[sub_id]] = triple.value
    return update


def _scalar(name):
    def handler(value):
        return {name: value}
    return handler


FIELD_HANDLERS = {
    FieldId.PAYLOAD_FORMAT: _scalar("payload_format_indicator"),
    FieldId.INITIATION_METHOD: _initiation_method,
    FieldId.MERCHANT_ACCOUNT: _merchant_account,
    FieldId.MERCHANT_CATEGORY: _scalar("merchant_category"),
    FieldId.CURRENCY: _scalar("currency"),
    FieldId.AMOUNT: _scalar("amount"),
    FieldId.COUNTRY: _scalar("country_code"),
    FieldId.ADDITIONAL_DATA: _additional_data,
    FieldId.CRC: _scalar("crc"),
}

_unhandled = set(FieldId) - set(FIELD_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler for field IDs: {sorted(f.value for f in _unhandled)}")


def field_update(triple):
    """Returns the partial record update for one top-level triple."""
    try:
        field_id = FieldId(triple.id)
    except ValueError:
        # Unknown ID: nothing to extract.
        return {}
    return FIELD_HANDLERS[field_id](triple.value)


def extract_fields(triples):
    """Folds triples in order into a PaymentRecord; later occurrences win."""
    record = PaymentRecord()
    for triple in triples:
        update = field_update(triple)
        if update:
            record = replace(record, **update)
    return record
