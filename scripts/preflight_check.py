#!/usr/bin/env python3
import sys
import os
import shutil

print("Running preflight check...")
try:
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import chainverify.main
    print("Import chainverify.main: OK")

    from chainverify.settings import settings

    client = shutil.which(settings.CONCORDIUM_CLIENT_PATH) or (
        settings.CONCORDIUM_CLIENT_PATH if os.access(settings.CONCORDIUM_CLIENT_PATH, os.X_OK) else None
    )
    print(f"concordium-client: {client or 'NOT FOUND (' + settings.CONCORDIUM_CLIENT_PATH + ')'}")

    missing = [
        name for name in (
            "DISCORD_BOT_TOKEN",
            "DISCORD_GUILD_ID",
            "CLAIM_CHANNEL_ID",
            "VALIDATOR_ROLE_ID",
            "DELEGATOR_ROLE_ID",
        )
        if not getattr(settings, name, "")
    ]
    if settings.RECORD_BACKEND == "postgres" and not settings.PG_DSN:
        missing.append("PG_DSN")
    if missing:
        print(f"Missing settings: {', '.join(missing)}")

    if client is None or missing:
        print("Preflight check FAILED.")
        sys.exit(1)

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
