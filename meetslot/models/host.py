from sqlmodel import Field, SQLModel


class HostBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None


class Host(HostBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str


class HostCreate(SQLModel):
    email: str
    password: str
    full_name: str | None = None


class HostPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
