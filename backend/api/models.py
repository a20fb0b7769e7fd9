# backend/api/models.py
from pydantic import BaseModel


class Health(BaseModel):
    ok: bool


class ServerInfo(BaseModel):
    id: str


class ServerList(BaseModel):
    servers: list[ServerInfo]


class Key(BaseModel):
    vless: str
