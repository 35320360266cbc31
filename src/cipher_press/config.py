# config.py
# Runtime settings, read from the environment (and a .env file if present).

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from cipher_press.ecies import generate_keypair, public_key_from_private

ENV_PREFIX = "CIPHER_PRESS_"


class PressSettings(BaseModel):
    """Settings for the press/release entry point."""

    private_key: str = Field(..., description="0x-prefixed secp256k1 key used to release.")
    recipient_public_key: str = Field(
        default="", description="Key to press for. Defaults to the private key's own public key."
    )
    max_workers: int = Field(default=1, ge=1)
    receipt_capacity: int = Field(default=1024, gt=0)
    receipt_ttl_seconds: float = Field(default=3600.0, gt=0)
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _default_recipient(self) -> "PressSettings":
        if not self.recipient_public_key:
            self.recipient_public_key = public_key_from_private(self.private_key)
        return self

    @classmethod
    def from_env(cls) -> "PressSettings":
        """
        Load settings from CIPHER_PRESS_* variables.

        Without CIPHER_PRESS_PRIVATE_KEY a throwaway key pair is generated,
        which is only useful for a single process run.
        """
        load_dotenv()

        private_key = os.getenv(f"{ENV_PREFIX}PRIVATE_KEY")
        if not private_key:
            private_key, _ = generate_keypair()

        values: dict[str, str] = {"private_key": private_key}
        for field, env in (
            ("recipient_public_key", "RECIPIENT_PUBLIC_KEY"),
            ("max_workers", "MAX_WORKERS"),
            ("receipt_capacity", "RECEIPT_CAPACITY"),
            ("receipt_ttl_seconds", "RECEIPT_TTL"),
            ("log_level", "LOG_LEVEL"),
        ):
            value = os.getenv(f"{ENV_PREFIX}{env}")
            if value:
                values[field] = value

        return cls.model_validate(values)
