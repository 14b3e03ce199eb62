import json
import logging

from trustedlinks.infrastructure.audit.std_logger import StdAuditLogger
from trustedlinks.utils import hash_phone_number


def test_audit_entry_hashes_phone(caplog):
    with caplog.at_level(logging.INFO, logger="trustedlinks.audit"):
        StdAuditLogger().log("otp_requested", "962791234567", purpose="business_signup", details={"simulated": False})

    message = caplog.records[-1].getMessage()
    assert message.startswith("AUDIT: ")
    entry = json.loads(message[len("AUDIT: "):])
    assert entry["action"] == "otp_requested"
    assert entry["phone_hash"] == hash_phone_number("962791234567")
    assert "962791234567" not in message
    assert entry["success"] is True
