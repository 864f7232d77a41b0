from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./checkout.db"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_publishable_key: str = ""

    # PayPal
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_api_base: str = "https://api-m.sandbox.paypal.com"

    # Cash App
    cashapp_tag: str = "SGEvents"

    # Resend (Email)
    resend_api_key: str = ""
    from_email: str = "tickets@example.com"

    # Application
    base_url: str = "http://localhost:8000"
    api_prefix: str = "/api"
    session_cookie_name: str = "sg_session_id"
    session_ttl_hours: int = 24 * 14
    bcrypt_rounds: int = 12

    # Branding
    org_name: str = "SG Events"
    org_color: str = "#E91E63"

    # CORS
    cors_origins: str = ""  # Comma-separated allowed origins (empty = allow all)

    # Rate limiting
    rate_limit_enabled: bool = True

    # Headless checkout client
    checkout_api_base_url: str = "http://localhost:8000"
    checkout_request_timeout: float = 15.0
    checkout_session_file: str = ""  # Empty = keep session state in memory only

    # Checkout timings (seconds)
    element_ready_grace_delay: float = 1.0
    slow_load_warning_after: float = 5.0
    free_claim_redirect_delay: float = 1.5
    email_required_modal_delay: float = 2.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
