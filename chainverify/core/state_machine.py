# Verification steps (session.step)

# Waiting for the role-specific identifier: validator ID or account address.
# Leaves on: identifier accepted (format, ownership lookup, stake).
AWAITING_IDENTIFIER = "AWAITING_IDENTIFIER"

# Waiting for the hash of the memo transaction.
# Leaves on: transaction accepted and recorded (session removed).
AWAITING_TX_HASH = "AWAITING_TX_HASH"


# Role kinds (record.roleKind / session.roleKind)
DEVELOPER = "Developer"
VALIDATOR = "Validator"
DELEGATOR = "Delegator"

# Role kinds verified through the on-chain conversation
CHAIN_ROLE_KINDS = (VALIDATOR, DELEGATOR)

# Stored in tx_hash / wallet_address for records without a transaction
NO_TX_SENTINEL = "N/A"
