"""
neuralhash.config — Settings read from the environment.

Nothing here is validated eagerly; collaborators raise ConfigError when a
setting they actually need is missing.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from neuralhash.storage import DEFAULT_GATEWAYS, PINATA_API_URL

# Deployments the dashboard was built against.
DEFAULT_CREDENTIAL_REGISTRY = "0xEf5bCeB0F946f360aBf0dd42ff3736f64Ece73e3"
DEFAULT_INTERACTION_HUB = "0x329C75F53B2b85F83B85b123Fd98b93dDE6FE23a"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1_048_576


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _flag(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no", "off")


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    pinata_jwt: str = ""
    pinata_api_key: str = ""
    pinata_secret_api_key: str = ""
    pinata_api_url: str = PINATA_API_URL
    ipfs_gateways: tuple[str, ...] = DEFAULT_GATEWAYS
    rpc_url: str = ""
    chain_id: int = 11155111
    credential_registry_address: str = DEFAULT_CREDENTIAL_REGISTRY
    interaction_hub_address: str = DEFAULT_INTERACTION_HUB
    trust_registry_address: str = ""
    issuer_private_key: str = field(default="", repr=False)
    gemini_api_key: str = field(default="", repr=False)
    gemini_model: str = DEFAULT_GEMINI_MODEL
    etherscan_api_key: str = field(default="", repr=False)
    log_level: str = "INFO"
    allowed_origins: tuple[str, ...] = ()
    ratelimit_enabled: bool = True
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    production: bool = False

    @classmethod
    def from_env(cls, env: Optional[dict] = None) -> "Settings":
        env = os.environ if env is None else env
        gateways = _split(env.get("IPFS_GATEWAYS", ""))
        return cls(
            pinata_jwt=env.get("PINATA_JWT", ""),
            pinata_api_key=env.get("PINATA_API_KEY", ""),
            pinata_secret_api_key=env.get("PINATA_SECRET_API_KEY", ""),
            pinata_api_url=env.get("PINATA_API_URL", PINATA_API_URL),
            ipfs_gateways=tuple(gateways) or DEFAULT_GATEWAYS,
            rpc_url=env.get("RPC_URL", ""),
            chain_id=_int(env.get("CHAIN_ID"), 11155111),
            credential_registry_address=env.get("CREDENTIAL_REGISTRY_ADDRESS", DEFAULT_CREDENTIAL_REGISTRY),
            interaction_hub_address=env.get("INTERACTION_HUB_ADDRESS", DEFAULT_INTERACTION_HUB),
            trust_registry_address=env.get("TRUST_REGISTRY_ADDRESS", ""),
            issuer_private_key=env.get("ISSUER_PRIVATE_KEY", ""),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            gemini_model=env.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            etherscan_api_key=env.get("ETHERSCAN_API_KEY", ""),
            log_level=env.get("LOG_LEVEL", "INFO"),
            allowed_origins=tuple(_split(env.get("ALLOWED_ORIGINS", ""))),
            ratelimit_enabled=_flag(env.get("RATELIMIT_ENABLED", "true")),
            max_upload_bytes=_int(env.get("MAX_UPLOAD_BYTES"), DEFAULT_MAX_UPLOAD_BYTES),
            production=_flag(env.get("NEURALHASH_PRODUCTION", "")),
        )
