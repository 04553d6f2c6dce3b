from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseSettings):
    """Defines and validates all environment variables for the application.

    Pydantic reads the variables from the environment or a .env file,
    validates their types, and provides default values if they are not set.
    """
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./portfolio.db")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "a-secret-key")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")

    SENDGRID_API_KEY: str = os.getenv("SENDGRID_API_KEY", "your-sendgrid-api-key")
    EMAIL_SENDER: str = os.getenv("EMAIL_SENDER", "no-reply@yourdomain.com")
    MAGIC_LINK_EXPIRE_MINUTES: int = int(os.getenv("MAGIC_LINK_EXPIRE_MINUTES", 15))

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
