from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App Basics
    app_env: str = "dev"
    app_name: str = "Academy API"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"

    # Database
    database_url: str = "sqlite:///./dev.db"
    db_echo: bool = False
    db_auto_create: bool = True

    # JWT
    jwt_secret: str = "secret_key"
    jwt_alg: str = "HS256"
    jwt_access_ttl_min: int = 60

    # Payments
    # One of: "razorpay", "mercadopago"
    payment_provider: str = "razorpay"
    payment_currency: str = "INR"

    # Razorpay
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""

    # Mercado Pago
    mp_access_token: str = ""
    mp_webhook_url: str = ""
    mp_webhook_secret: str = ""
    # Sandbox and some topics omit the signature headers
    mp_webhook_require_signature: bool = False
    app_base_url: str = "http://localhost:8000"

    # Notifications (best-effort, never blocks a purchase)
    notifications_enabled: bool = True

    # Tell pydantic to read from .env file
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
    )

settings = Settings()
