from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./tickets.db"
    debug: bool = False
    log_level: str = "INFO"
    camera_index: int = 0
    scan_fps: int = 10
    scan_timeout_seconds: float = 30.0
    export_filename: str = "tickets.xlsx"
    export_sheet_name: str = "Tickets"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="")


settings = Settings()
