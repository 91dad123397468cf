from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    bcrypt_rounds: int = 12
    sql_echo: bool = False
    log_level: str = "INFO"

    # Совместный доступ
    public_base_url: str = "http://localhost:3000"
    share_link_token_bytes: int = 32
    invitation_ttl_hours: int = 168
    conflict_retries: int = 3

    # Почта (Postmark). Без токена письма не отправляются
    postmark_server_token: str = ""
    email_sender: str = "noreply@docshare.local"
    email_timeout_seconds: float = 10.0

    # PostgreSQL variables for Docker
    postgres_user: str = ""
    postgres_password: str = ""
    postgres_db: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}

    def share_url(self, token: str) -> str:
        """Публичная ссылка, которую открывает фронтенд"""
        return f"{self.public_base_url.rstrip('/')}/share/{token}"


settings = Settings()
