from collections.abc import Sequence

import pydantic
from pydantic import TypeAdapter

from wavefront_users.errors import DecodeError, ValidationError
from wavefront_users.ext.wavefront_api import Request, Wavefronter
from wavefront_users.search import SearchCondition
from wavefront_users.users.models import NewUserRequest, User, UserEnvelope


USER_PATH = "/api/v2/user"
USER_SEARCH_TYPE = "user"

_USERS = TypeAdapter(list[User])


def _require_id(user: User) -> None:
    if not user.id:
        raise ValidationError("User identifier is not set")


def _user_path(user: User) -> str:
    return f"{USER_PATH}/{user.id}"


class Users:
    """
    User management on top of a Wavefront API client.

    Users passed to get, update and delete are updated in place with the
    server state, the same instance is returned for convenience.
    """

    def __init__(self, client: Wavefronter):
        self._client = client

    async def get(self, user: User) -> User:
        _require_id(user)
        request = self._client.build_request("GET", _user_path(user))
        user.overwrite_from(await self._fetch_user(request))
        return user

    async def find(
        self, conditions: Sequence[SearchCondition] | None = None
    ) -> list[User]:
        """
        Return all users matching ``conditions``, or every user when None.
        Groups of the returned users only have their ids set.
        """
        results: list[User] = []
        offset = 0
        more_items = True
        while more_items:
            page = await self._client.search(USER_SEARCH_TYPE, conditions, offset)
            try:
                results.extend(_USERS.validate_python(page.items))
            except pydantic.ValidationError as e:
                raise DecodeError(f"Unexpected user search page at {offset}") from e
            more_items = page.more_items
            offset = page.next_offset
        return results

    async def create(
        self,
        new_user: NewUserRequest,
        send_email: bool = False,
        user: User | None = None,
    ) -> User:
        """
        Create a user, optionally sending an invitation email.
        The created user is written into ``user`` when given.
        """
        if not new_user.email_address:
            raise ValidationError("A valid email address must be specified")

        request = self._client.build_request(
            "POST",
            USER_PATH,
            params={"sendEmail": str(send_email).lower()},
            body=new_user.to_json(),
        )
        async with self._client.execute(request) as response:
            body = await response.read()
        try:
            created = UserEnvelope.model_validate_json(body).response
        except pydantic.ValidationError as e:
            raise DecodeError("Unexpected create user response") from e

        if user is None:
            return created
        user.overwrite_from(created)
        return user

    async def update(self, user: User) -> User:
        _require_id(user)
        request = self._client.build_request(
            "PUT", _user_path(user), body=user.to_json()
        )
        user.overwrite_from(await self._fetch_user(request))
        return user

    async def delete(self, user: User) -> None:
        _require_id(user)
        request = self._client.build_request("DELETE", _user_path(user))
        async with self._client.execute(request):
            pass
        user.id = ""

    async def _fetch_user(self, request: Request) -> User:
        async with self._client.execute(request) as response:
            body = await response.read()
        try:
            return User.model_validate_json(body)
        except pydantic.ValidationError as e:
            raise DecodeError(
                f"Unexpected user response for {request.method} {request.url.path}"
            ) from e
