# backend/core/models.py
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeDescriptor(BaseModel):
    """One panel node as listed in servers.json."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    id: str
    api_url: str = Field(alias="apiUrl")
    web_base_path: str = Field(default="", alias="webBasePath")
    username: str
    password: str
    users_limit: int = Field(alias="usersLimit")
    public_host: str | None = Field(default=None, alias="publicHost")
    public_port: int = Field(default=443, alias="publicPort")
    security: str | None = None
    pbk: str | None = None
    fp: str | None = None
    sni: str | None = None
    sid: str | None = None
    spx: str | None = None
    enabled: bool = True


class Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    remark: str = ""
    client_stats: list | None = Field(default=None, alias="clientStats")


class LoadSnapshot(BaseModel):
    node_id: str
    current_users: int
    users_limit: int
    first_inbound_id: int | None


class FailureKind(str, Enum):
    AUTH_FAILED = "auth-failed"
    READ_FAILED = "read-failed"
    ADD_FAILED = "add-failed"
    LINK_BUILD_FAILED = "link-build-failed"
    NO_AVAILABLE_NODES = "no-available-nodes"


class Failure(BaseModel):
    kind: FailureKind
    node_id: str | None = None
    detail: str = ""


class Unavailable(BaseModel):
    """A node that could not be measured during this aggregation cycle."""
    node_id: str
    reason: Failure


@dataclass(frozen=True)
class SessionToken:
    """Panel session cookie, valid only for the node that issued it."""
    node_id: str
    cookie: str


class CredentialRequest(BaseModel):
    client_label: str
    validity_months: int = Field(gt=0)
    inbound_id: int


class ConnectionDescriptor(BaseModel):
    link: str
    node_id: str
    credential_id: str
    expiry_time: int
