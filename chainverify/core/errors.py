"""
Verification error taxonomy. Every error carries the exact reply the user sees.

InputFormatError      malformed identifier / hash; retry, no state change
ExternalQueryFailure  ledger tool failed or printed nothing usable; retry, logged
ValidationRejection   well-formed but wrong (stake, sender, memo, age, duplicate)
ConflictError         uniqueness violation at insert time; same reply as the duplicate rejection
InfrastructureError   role grant / conversation call failed; "contact a moderator", session kept
"""


class VerificationError(Exception):
    kind = "error"

    def __init__(self, reply: str, reason: str = ""):
        super().__init__(reason or reply)
        self.reply = reply
        self.reason = reason or self.kind


class InputFormatError(VerificationError):
    kind = "input_format"


class ExternalQueryFailure(VerificationError):
    kind = "external_query"


class ValidationRejection(VerificationError):
    kind = "rejected"


class ConflictError(ValidationRejection):
    kind = "conflict"


class InfrastructureError(VerificationError):
    kind = "infrastructure"
