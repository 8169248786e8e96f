import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Network
    HOST: str = os.getenv("PICCROSS_HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PICCROSS_PORT", "1234"))
    IDLE_TIMEOUT: float = float(os.getenv("PICCROSS_IDLE_TIMEOUT", "300"))
    AUTO_CLOSE: bool = _flag("PICCROSS_AUTO_CLOSE", "false")

    # Game
    DIMENSION: int = int(os.getenv("PICCROSS_DIMENSION", "5"))

    LOG_LEVEL: str = os.getenv("PICCROSS_LOG_LEVEL", "INFO")

settings = Settings()
