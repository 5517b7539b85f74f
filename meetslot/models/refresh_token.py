from datetime import datetime

from sqlmodel import Field, SQLModel

from meetslot.core.interval import naive_utc


class RefreshToken(SQLModel, table=True):
    __tablename__ = "refresh_tokens"
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", index=True)
    jti: str = Field(unique=True, index=True)
    expires_at: datetime = Field(index=True)
    revoked: bool = False

    def model_post_init(self, __context: object) -> None:
        """Ensure expires_at is naive UTC for asyncpg TIMESTAMP WITHOUT TIME ZONE."""
        if self.expires_at is not None:
            self.expires_at = naive_utc(self.expires_at)
