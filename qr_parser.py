# Purpose: Parse EMV QR payment payloads into a PaymentRecord.
# Tolerates truncated payloads by keeping the part that scanned cleanly.

import argparse
import json
import logging
import os
import sys

from qr_errors import ErrorKind, Failure, Success, TLVError
from qr_fields import FIELD_INFO, SUBFIELD_INFO, extract_fields
from qr_options import OptionsError, ParseOptions, load_options
from qr_tlv import tokenize

log = logging.getLogger(__name__)

# --- CONFIGURATION ---
QR_TEXT_FILE = "qrcode.txt"

REQUIRED_FIELDS = ("payload_format_indicator", "initiation_method")

STRICT_REQUIRED_FIELDS = (
    "payload_format_indicator",
    "initiation_method",
    "bank_code",
    "account_number",
    "currency",
    "country_code",
    "crc",
)


def _missing(record, names):
    # A zero-length value does not satisfy a required field.
    return [name for name in names if getattr(record, name) in (None, "")]


def parse(payload, options=None):
    """Tokenizes and maps a payload, then applies the strictness policy.

    Returns Success(record, corrupted) or Failure(kind, message, offset).
    """
    if not isinstance(options, ParseOptions):
        options = ParseOptions.from_mapping(options)

    if not isinstance(payload, str) or not payload:
        return Failure(ErrorKind.INVALID_FORMAT, "QR string is required and must be a string")

    if len(payload) > options.max_length:
        return Failure(
            ErrorKind.LENGTH_EXCEEDED,
            f"QR string exceeds maximum length ({options.max_length} characters)",
        )

    try:
        tokenized = tokenize(payload)
    except TLVError as e:
        if options.extract_partial_on_error and e.triples:
            record = extract_fields(e.triples)
            if not record.is_empty():
                log.debug("Salvaged %d field(s) before: %s", len(e.triples), e.message)
                return Success(record, corrupted=True)
        return e.to_failure()

    if not tokenized.triples:
        # Cut off before the first field completed: nothing to salvage.
        return Failure(ErrorKind.PARSE_ERROR, "QR data ends before the first field is complete", offset=0)

    record = extract_fields(tokenized.triples)

    if options.strict_mode:
        missing = _missing(record, STRICT_REQUIRED_FIELDS)
        if missing:
            return Failure(
                ErrorKind.INVALID_FORMAT,
                f"Strict mode: Missing required fields: {', '.join(missing)}",
                missing_fields=tuple(missing),
            )
        if tokenized.corrupted:
            return Failure(ErrorKind.INVALID_FORMAT, "Strict mode: QR data appears corrupted or truncated")
        return Success(record)

    missing = _missing(record, REQUIRED_FIELDS)
    if missing:
        if options.extract_partial_on_error and not record.is_empty():
            log.debug("Returning partial record without %s", ", ".join(missing))
            return Success(record, corrupted=tokenized.corrupted)
        return Failure(
            ErrorKind.INVALID_FORMAT,
            "Missing required EMV QR fields (payload format or initiation method)",
            missing_fields=tuple(missing),
        )

    return Success(record, corrupted=tokenized.corrupted)


# --- DISPLAY ---

def display_fields(payload):
    """Prints the TLV breakdown, expanding tags 38 and 62."""
    try:
        tokenized = tokenize(payload)
    except TLVError as e:
        print(f"[!] TLV scan failed: {e.message}")
        return

    print(f"\n{'TAG':5} | {'LEN':3} | {'DESCRIPTION':35} | {'VALUE'}")
    print("-" * 100)
    for triple in tokenized.triples:
        desc = FIELD_INFO.get(triple.id, "Unknown Tag")
        print(f"{triple.id:5} | {triple.length:02}  | {desc:35} | {triple.value}")
        _display_nested(triple.id, triple.value, SUBFIELD_INFO.get(triple.id))

    if tokenized.corrupted:
        print("[!] Payload is truncated; fields after the last row were not read.")


def _display_nested(tag, value, info, prefix=None):
    if info is None:
        return
    try:
        nested = tokenize(value)
    except TLVError:
        print(f"{tag}.?? | --  | {'(not valid TLV)':35} |")
        return
    label = prefix or tag
    for sub in nested.triples:
        desc = info.get(sub.id, "Unknown Subtag")
        print(f"{label}.{sub.id} | {sub.length:02}  | {desc:35} | {sub.value}")
        # Payment network data inside tag 38 nests the bank and account.
        if tag == "38" and sub.id == "01" and prefix is None:
            network_label = f"{tag}.{sub.id}"
            _display_nested(tag, sub.value, SUBFIELD_INFO[network_label], prefix=network_label)


def display_record(record):
    print(f"\n{'FIELD':30} | {'VALUE'}")
    print("-" * 60)
    for key, value in record.to_dict().items():
        print(f"{key:30} | {value}")


def read_payload(source):
    """A path to a file holding the payload, or the payload itself."""
    if os.path.exists(source):
        with open(source, "r", encoding="utf-8") as f:
            return f.read().strip()
    return source


def main(argv=None):
    parser = argparse.ArgumentParser(description="EMV QR payment payload parser")
    parser.add_argument("payload", nargs="?", default=QR_TEXT_FILE,
                        help=f"Payload string or path to a file holding it (default: {QR_TEXT_FILE})")
    parser.add_argument("--config", help="YAML file with strictMode / extractPartialOnError / maxLength")
    parser.add_argument("--strict", action="store_true", help="Reject incomplete or truncated payloads.")
    parser.add_argument("--partial", action="store_true", help="Return whatever fields could be extracted.")
    parser.add_argument("--max-length", type=int, help="Maximum payload length in characters.")
    parser.add_argument("--json", action="store_true", help="Print the record as JSON only.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        options = load_options(args.config) if args.config else ParseOptions()
    except OptionsError as e:
        print(f"[!] Error: {e}")
        return 1

    overrides = {}
    if args.strict:
        overrides["strictMode"] = True
    if args.partial:
        overrides["extractPartialOnError"] = True
    if args.max_length is not None:
        overrides["maxLength"] = args.max_length
    if overrides:
        merged = options.to_mapping()
        merged.update(overrides)
        try:
            options = ParseOptions.from_mapping(merged)
        except OptionsError as e:
            print(f"[!] Error: {e}")
            return 1

    if args.payload == QR_TEXT_FILE and not os.path.exists(QR_TEXT_FILE):
        print(f"[!] Error: {QR_TEXT_FILE} not found. Pass a payload string or file.")
        return 1

    qr_content = read_payload(args.payload)
    result = parse(qr_content, options)

    if args.json:
        if result.ok:
            print(json.dumps({"corrupted": result.corrupted, "data": result.value.to_dict()}, indent=4,
                             ensure_ascii=False))
        else:
            print(json.dumps({"error": {"type": result.kind.value, "message": result.message,
                                        "offset": result.offset}}, indent=4))
        return 0 if result.ok else 1

    print("=" * 100)
    print("EMV QR PAYMENT PAYLOAD PARSER")
    print("=" * 100)
    print(f"Raw Content: {qr_content}")

    display_fields(qr_content)

    if not result.ok:
        print(f"\n[!] Parse failed: {result}")
        return 1

    if result.corrupted:
        print("\n[!] Parsed with corruption: payload was truncated.")
    else:
        print("\n[OK] Payload parsed.")
    display_record(result.value)
    print("=" * 100)
    return 0


if __name__ == "__main__":
    sys.exit(main())
