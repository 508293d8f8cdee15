"""Runtime settings for the storefront client, read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class StorefrontSettings:
    environment: str = "development"
    api_url: str = "http://localhost:3000/api"
    http_timeout: float = 10.0
    poll_interval: float = 5.0
    confirmation_timeout: float = 60.0
    storage: str = "file"
    state_path: Path = Path("~/.storefront/state.json").expanduser()
    store_name: str = "Crepa Urbana"
    currency: str = "usd"
    order_note: str = "Pedido Web"
    payment_gateway: str = "fake"
    stripe_publishable_key: str | None = None
    api_token: str | None = None

    @classmethod
    def from_env(cls) -> "StorefrontSettings":
        defaults = cls()
        state_path = os.environ.get("STOREFRONT_STATE_PATH")
        settings = cls(
            environment=os.environ.get("STOREFRONT_ENV", defaults.environment).lower(),
            api_url=os.environ.get("STOREFRONT_API_URL", defaults.api_url),
            http_timeout=_float_env("STOREFRONT_HTTP_TIMEOUT", defaults.http_timeout),
            poll_interval=_float_env("STOREFRONT_POLL_INTERVAL", defaults.poll_interval),
            confirmation_timeout=_float_env("STOREFRONT_CONFIRMATION_TIMEOUT", defaults.confirmation_timeout),
            storage=os.environ.get("STOREFRONT_STORAGE", defaults.storage).lower(),
            state_path=Path(state_path).expanduser() if state_path else defaults.state_path,
            store_name=os.environ.get("STOREFRONT_STORE_NAME", defaults.store_name),
            currency=os.environ.get("STOREFRONT_CURRENCY", defaults.currency).lower(),
            order_note=os.environ.get("STOREFRONT_ORDER_NOTE", defaults.order_note),
            payment_gateway=os.environ.get("PAYMENT_GATEWAY", defaults.payment_gateway).lower(),
            stripe_publishable_key=os.environ.get("STRIPE_PUBLISHABLE_KEY") or None,
            api_token=os.environ.get("STOREFRONT_API_TOKEN") or None,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("STOREFRONT_POLL_INTERVAL must be greater than zero")
        if self.http_timeout <= 0:
            raise ValueError("STOREFRONT_HTTP_TIMEOUT must be greater than zero")
        if self.storage not in ("file", "memory"):
            raise ValueError(f"Unknown storage backend: {self.storage}")
        if self.payment_gateway not in ("fake", "stripe"):
            raise ValueError(f"Unknown payment gateway: {self.payment_gateway}")
        if self.payment_gateway == "stripe" and not self.stripe_publishable_key:
            raise ValueError("STRIPE_PUBLISHABLE_KEY is required when PAYMENT_GATEWAY=stripe")
