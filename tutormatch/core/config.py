from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    use_mongo: bool = False
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "tutormatch"

    webhook_secret: str = "dev"
    webhook_max_attempts: int = 6
    outbox_worker: bool = False
    locale: str = "en"
    log_level: str = "INFO"

    # fallbacks for the runtime settings collection
    nearby_city_distance_km: int = 150
    min_match_score: int = 60
    max_matches_limit: int = 100

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
