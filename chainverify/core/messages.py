# User-facing replies. Placeholders are filled with str.format(**fields).

# Entry point (role selection) / restart: answered privately to the user

ALREADY_VERIFIED = "✅ You already have the **{label}** role, no need to verify again."
ACTIVE_CONVERSATION = "⚠️ You already have an active verification thread.\n👉 [Open thread]({url})"
STARTED = "📩 Verification started.\n👉 [Click here to open your thread]({url})"
START_FAILED = "❌ Failed to start {label_lower} verification. Please contact a moderator."

RESTART_NO_SESSION = (
    "⚠️ You don't have an active verification thread. "
    "Please start the verification using the dropdown menu."
)
RESTART_CONVERSATION_GONE = (
    "⚠️ Your previous verification thread could not be found. "
    "Please start again from the dropdown menu."
)
RESTARTED = "🔄 Verification process restarted in your existing thread."

IN_PROGRESS = "⏳ Your previous message is still being verified. Please wait for the reply before sending another."

# Prompts posted into the private conversation

PROMPT_VALIDATOR = (
    "<@{owner}> Please send your **validator ID** to begin verification (e.g. 12345).\n\n"
    "If you entered the wrong ID, you can use the command `/{restart}` to restart."
)
PROMPT_DELEGATOR = (
    "<@{owner}> Please send your **account address** to begin verification.\n"
    "You must delegate at least **{min_stake} CCD**.\n\n"
    "If you entered the wrong address, you can use the command `/{restart}` to restart."
)
RESTART_PROMPT_VALIDATOR = (
    "<@{owner}> 🔁 Verification has been restarted.\n"
    "Please send your **validator ID** again (e.g. `12345`).\n"
    "If you entered the wrong ID again, you can use `/{restart}` once more."
)
RESTART_PROMPT_DELEGATOR = (
    "<@{owner}> 🔁 Verification has been restarted.\n"
    "Please send your **account address** again.\n"
    "If you entered the wrong address again, you can use `/{restart}` once more."
)

# Identifier step

BAD_VALIDATOR_ID = "❌ Please enter a valid numeric validator ID."
BAD_ACCOUNT_ADDRESS = "❌ Please enter a valid Concordium account address."
VALIDATOR_LOOKUP_FAILED = "❌ Failed to retrieve validator address. Please double-check the ID."
VALIDATOR_ADDRESS_TAKEN = (
    "❌ This validator address is already registered. Please check the ID or contact a moderator."
)
DELEGATOR_ADDRESS_TAKEN = (
    "❌ This address is already registered as a Delegator. Please check the address or contact a moderator."
)
ACCOUNT_LOOKUP_FAILED = "❌ Failed to retrieve account information. Please double-check the address and try again."
NOT_DELEGATING = "❌ This address is not currently delegating to any staking pool."
STAKE_TOO_LOW = (
    "❌ Your staked amount is **{amount} CCD**, which is below the required **{min_stake} CCD**."
)

INSTRUCT_VALIDATOR = (
    "✅ Your validator address is: `{address}`\n\n"
    "Now send a CCD transaction **from this address to any address**, using your **validator ID** "
    "(`{identifier}`) as the MEMO. Then reply here with the transaction hash. "
    "Please note: transaction age must not exceed {max_age_label}."
)
INSTRUCT_DELEGATOR = (
    "✅ Great! Now send a CCD transaction **from any address to any address**, using the following as the **MEMO**:\n"
    "`{identifier}`\n\n"
    "Then reply here with the **transaction hash**. Please note: transaction age must not exceed {max_age_label}."
)

# Transaction step

BAD_TX_HASH = "❌ Please enter a valid 64-character transaction hash."
TX_NOT_FINAL = "❌ Transaction is not finalized or was not successful."
TX_UNREADABLE = "❌ Could not read the sender, memo or block of this transaction."
SENDER_MISMATCH_VALIDATOR = "❌ Sender address must match the validator address: `{address}`"
MEMO_MISMATCH_VALIDATOR = "❌ The MEMO must exactly match your validator ID: `{identifier}`"
MEMO_MISMATCH_DELEGATOR = (
    "❌ The MEMO must exactly match your delegator address: `{identifier}`\n"
    "Make sure you included it exactly as-is when sending the transaction."
)
BLOCK_TIME_FAILED = "❌ Failed to retrieve block timestamp."
TX_TOO_OLD = "❌ This transaction is older than {max_age_label}. Please submit a fresh one."
TX_ALREADY_USED = "❌ This transaction has already been used."

VERIFIED = (
    "🎉 You have been successfully verified as a **{label}** and your role has been assigned! "
    "You can now delete this thread."
)
DELETE_BUTTON_LABEL = "🗑️ Delete this thread"

# Infrastructure

CONTACT_MODERATOR = "❌ Something went wrong while completing your verification. Please contact a moderator."
DELETE_FAILED = "❌ Failed to delete thread. Please try again later."
DELETED = "🗑️ Thread deleted."

# Developer records

DEV_RECORDED = "✅ Developer verification saved."
DEV_PROFILE_TAKEN = "❌ This GitHub profile is already linked to another member."


def max_age_label(seconds: int) -> str:
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return "1 hour" if hours == 1 else f"{hours} hours"
    if seconds % 60 == 0:
        minutes = seconds // 60
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"
