import pytest

from qr_tlv import build_payload

from payloads import full_fields


@pytest.fixture
def full_payload():
    return build_payload(full_fields())


@pytest.fixture
def payload_without_crc():
    return build_payload(full_fields(crc=None))
