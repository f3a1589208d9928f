from typing import Dict, List
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "CedraQuest"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Telegram Settings
    TELEGRAM_BOT_TOKEN: str = ""
    INIT_DATA_MAX_AGE_SECONDS: int = 300  # 5 minutes
    INIT_DATA_MAX_FUTURE_SKEW_SECONDS: int = 30

    # Energy Settings
    MAX_ENERGY: int = 10
    ENERGY_REGEN_INTERVAL_SECONDS: int = 1800  # 1 energy per 30 minutes
    ENERGY_PER_GAME: int = 1

    # User Level Settings
    USER_XP_FOR_LEVEL_UP: int = 1000
    USER_MAX_LEVEL: int = 100
    XP_PER_SCORE_POINT: int = 1

    # Game Settings
    BASE_POINTS_PER_GAME: int = 0  # pure score-based rewards
    SCORE_MULTIPLIER: float = 1.0
    MIN_GAME_DURATION_SECONDS: int = 5
    MAX_GAME_DURATION_SECONDS: int = 300

    # Pet Settings
    PET_FEED_COST: int = 20
    PET_XP_PER_FEED: int = 20
    PET_XP_FOR_LEVEL_UP: int = 1200
    PET_MAX_LEVEL: int = 10
    PET_MAX_DAILY_SPEND: int = 600
    PET_MAX_FEEDS_PER_REQUEST: int = 30
    PET_MAX_CLAIM_HOURS: int = 4
    # Scales level * growth_rate so PET_MIN_CLAIM_AMOUNT is reachable within PET_MAX_CLAIM_HOURS
    PET_YIELD_PER_LEVEL_PER_HOUR: int = 500
    PET_GROWTH_RATE: float = 0.8
    PET_MIN_CLAIM_AMOUNT: int = 1000
    PET_CLAIM_COOLDOWN_SECONDS: int = 3600

    # Ranking Settings
    RANK_THRESHOLDS: Dict[str, int] = {
        "RANK1": 0,
        "RANK2": 10000,
        "RANK3": 25000,
        "RANK4": 45000,
        "RANK5": 60000,
        "RANK6": 75000,
    }
    RANK_REWARDS: Dict[str, int] = {
        "RANK1": 0,
        "RANK2": 1000,
        "RANK3": 2000,
        "RANK4": 3000,
        "RANK5": 4000,
        "RANK6": 5000,
    }
    CREDIT_RANK_REWARDS: bool = True

    # Anti-cheat Rate Limiting (actions per window)
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_FEEDS_PER_MINUTE: int = 30
    RATE_LIMIT_GAMES_PER_MINUTE: int = 10

    # State Store Settings
    STATE_BACKEND: str = "redis"  # redis or memory
    STATE_MAX_COMMIT_RETRIES: int = 3
    STATE_OPERATION_TIMEOUT_SECONDS: float = 2.0

    # Claim Authorization Settings
    CLAIM_SIGNING_SECRET: str = "change-me"
    CLAIM_AUTHORIZATION_TTL_SECONDS: int = 300  # 5 minutes

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "https://web.telegram.org",  # Telegram web client
    ]

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
