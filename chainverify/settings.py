import os
from dotenv import load_dotenv

load_dotenv()


def _pg_dsn_from_parts() -> str:
    user = os.getenv("PG_USER", "")
    if not user:
        return ""
    password = os.getenv("PG_PASSWORD", "")
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    database = os.getenv("PG_DATABASE", "postgres")
    auth = f"{user}:{password}" if password else user
    return f"postgresql://{auth}@{host}:{port}/{database}"


class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Sessions: "memory" (lost on restart) or "redis" (kept for SESSION_TTL_SEC)
    SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "memory").lower()
    SESSION_TTL_SEC: int = int(os.getenv("SESSION_TTL_SEC", "86400"))

    # Per-user serialization of verification steps
    SESSION_LOCK_BACKEND: str = os.getenv("SESSION_LOCK_BACKEND", "local").lower()
    # "queue": wait behind the running step, "reject": answer "verification in progress"
    SESSION_BUSY_POLICY: str = os.getenv("SESSION_BUSY_POLICY", "queue").lower()
    SESSION_LOCK_TTL_MS: int = int(os.getenv("SESSION_LOCK_TTL_MS", "60000"))

    # Verification records: "postgres" or "memory"
    RECORD_BACKEND: str = os.getenv("RECORD_BACKEND", "postgres").lower()
    PG_DSN: str = os.getenv("PG_DSN", "") or _pg_dsn_from_parts()

    # concordium-client invocation
    CONCORDIUM_CLIENT_PATH: str = os.getenv("CONCORDIUM_CLIENT_PATH", "concordium-client")
    LEDGER_GRPC_HOST: str = os.getenv("LEDGER_GRPC_HOST", "grpc.mainnet.concordium.software")
    LEDGER_GRPC_PORT: str = os.getenv("LEDGER_GRPC_PORT", "")
    LEDGER_SECURE: bool = os.getenv("LEDGER_SECURE", "true").lower() == "true"
    LEDGER_QUERY_TIMEOUT_SEC: float = float(os.getenv("LEDGER_QUERY_TIMEOUT_SEC", "30"))

    # Discord
    DISCORD_BOT_TOKEN: str = os.getenv("DISCORD_BOT_TOKEN", "")
    DISCORD_API_BASE: str = os.getenv("DISCORD_API_BASE", "https://discord.com/api/v10")
    DISCORD_GUILD_ID: str = os.getenv("DISCORD_GUILD_ID", "")
    CLAIM_CHANNEL_ID: str = os.getenv("CLAIM_CHANNEL_ID", "")
    VALIDATOR_ROLE_ID: str = os.getenv("VALIDATOR_ROLE_ID", "")
    DELEGATOR_ROLE_ID: str = os.getenv("DELEGATOR_ROLE_ID", "")
    GATEWAY_TIMEOUT_SEC: float = float(os.getenv("GATEWAY_TIMEOUT_SEC", "10"))

    # Verification rules
    DELEGATOR_MIN_STAKE: str = os.getenv("DELEGATOR_MIN_STAKE", "1000")
    TX_MAX_AGE_SEC: int = int(os.getenv("TX_MAX_AGE_SEC", "3600"))

    # Observability
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    METRICS_ENABLED: bool = os.getenv("METRICS_ENABLED", "true").lower() == "true"

    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
