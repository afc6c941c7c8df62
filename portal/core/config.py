from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    # If DEV and you hit SSL cert issues with a hosted Postgres, set DB_SSL_VERIFY=false in .env
    DB_SSL_VERIFY: bool = True

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REMEMBER_ME_EXPIRE_DAYS: int = 30

    SUPER_ADMIN_EMAIL: str | None = None
    SUPER_ADMIN_PASSWORD: str | None = None
    SUPER_ADMIN_USERNAME: str = "admin"
    ENV: str = "dev"  # "dev" or "prod"

    # --- RATE LIMITING ---
    REDIS_URL: str | None = None
    LOGIN_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_ENABLED: bool = True

    # --- FILE STORAGE ---
    STORAGE_BACKEND: str = "local"  # "local" or "supabase"
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_MB: int = 25
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_BUCKET: str = "card-submissions"

    # --- EMAIL SETTINGS ---
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 2525  # Default to Mailtrap port
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str = "no-reply@psu.edu"
    EMAILS_FROM_NAME: str = "PSU Portal"
    FRONTEND_URL: str = "http://localhost:5173" # For login and verification links

    # Window used by /activities/stats/realtime
    ACTIVE_WINDOW_MINUTES: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
