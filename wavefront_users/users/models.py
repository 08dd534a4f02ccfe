import enum
from typing import Annotated, Any

import orjson
import pydantic
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    model_validator,
)


class Permission(enum.StrEnum):
    """Permission tokens known to the platform. Passed through as-is."""

    AGENT_MANAGEMENT = "agent_management"
    ALERTS_MANAGEMENT = "alerts_management"
    DASHBOARD_MANAGEMENT = "dashboard_management"
    EMBEDDED_CHARTS_MANAGEMENT = "embedded_charts"
    EVENTS_MANAGEMENT = "events_management"
    EXTERNAL_LINKS_MANAGEMENT = "external_links_management"
    HOST_TAG_MANAGEMENT = "host_tag_management"
    METRICS_MANAGEMENT = "metrics_management"
    USER_MANAGEMENT = "user_management"
    INTEGRATIONS_MANAGEMENT = "application_management"
    DIRECT_INGESTION = "ingestion"
    BATCH_QUERY_PRIORITY = "batch_query_priority"
    DERIVED_METRICS_MANAGEMENT = "derived_metrics_management"


class WireModel(BaseModel):
    """Received entity. A JSON null leaves the field at its default."""

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class UserGroupProperties(WireModel):
    name_editable: bool = Field(default=False, alias="nameEditable")
    permissions_editable: bool = Field(default=False, alias="permissionsEditable")
    users_editable: bool = Field(default=False, alias="usersEditable")


class UserGroup(WireModel):
    id: str = ""
    name: str = ""
    description: str = ""
    customer: str = ""
    permissions: list[str] = Field(default_factory=list)
    users: list[str] = Field(default_factory=list)
    """Identifiers of the member users
    """
    user_count: int = Field(default=0, alias="userCount")
    properties: UserGroupProperties | None = None
    created_epoch_millis: int | None = Field(default=None, alias="createdEpochMillis")


_GROUP_IDS = TypeAdapter(list[str])
_GROUPS = TypeAdapter(list[UserGroup])


def decode_user_groups(value: Any) -> list[UserGroup]:
    """
    Decode the ``userGroups`` wire value.

    Search results carry plain group ids, while direct user responses carry
    complete group objects. Ids are tried first; groups built from them only
    have ``id`` set.
    """
    if value is None:
        return []
    if isinstance(value, list) and all(isinstance(item, UserGroup) for item in value):
        # built locally, not a wire value. Groups without an id are allowed
        # here and left out when encoding
        return list(value)

    try:
        group_ids = _GROUP_IDS.validate_python(value, strict=True)
    except pydantic.ValidationError:
        try:
            groups = _GROUPS.validate_python(value)
        except pydantic.ValidationError as e:
            raise ValueError(
                "userGroups is neither a list of ids nor a list of groups"
            ) from e
    else:
        groups = [UserGroup(id=group_id) for group_id in group_ids]

    if not all(group.id for group in groups):
        raise ValueError("user group without an id")
    return groups


def encode_user_groups(groups: list[UserGroup] | None) -> list[str]:
    """Only group ids are sent, groups without one are left out"""
    return [group.id for group in groups or () if group.id]


UserGroups = Annotated[
    list[UserGroup],
    BeforeValidator(decode_user_groups),
    PlainSerializer(encode_user_groups, return_type=list[str]),
]


# wire keys left out of request payloads when empty
USER_OPTIONAL_KEYS = frozenset(
    {"customer", "lastSuccessfulLogin", "groups", "userGroups", "credential"}
)
NEW_USER_OPTIONAL_KEYS = frozenset({"groups", "userGroups"})


def _omit_empty(payload: dict[str, Any], keys: frozenset[str]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in keys or value}


class User(WireModel):
    id: str = Field(default="", alias="identifier")
    """Email identifier of the user, assigned by the server
    """
    customer: str = ""
    last_successful_login: int = Field(default=0, alias="lastSuccessfulLogin")
    """Epoch millis
    """
    permissions: list[str] = Field(default_factory=list, alias="groups")
    groups: UserGroups = Field(default_factory=list, alias="userGroups")
    credential: str = ""
    """Write-only. Set it on update to change the password
    """

    def to_payload(self) -> dict[str, Any]:
        return _omit_empty(
            self.model_dump(mode="json", by_alias=True), USER_OPTIONAL_KEYS
        )

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_payload())

    def overwrite_from(self, other: "User") -> None:
        """Copy every field ``other`` was given onto this user"""
        for name in other.model_fields_set:
            setattr(self, name, getattr(other, name))


class NewUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_address: str = Field(default="", alias="emailAddress")
    permissions: list[str] = Field(default_factory=list, alias="groups")
    groups: UserGroups = Field(default_factory=list, alias="userGroups")

    def to_payload(self) -> dict[str, Any]:
        return _omit_empty(
            self.model_dump(mode="json", by_alias=True), NEW_USER_OPTIONAL_KEYS
        )

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_payload())


class UserEnvelope(BaseModel):
    response: User
