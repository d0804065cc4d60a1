from dataclasses import dataclass


@dataclass
class PostgresConfig:
    host: str
    port: int
    username: str
    password: str
    database: str = "postgres"
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 10  # seconds
    pool_recycle: int = 3600
    application_name: str = "relay-chat"

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.username)
