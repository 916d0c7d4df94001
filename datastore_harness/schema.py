"""Record types for the sync schema: BasicModel, Post (HAS_MANY Comment), Comment.

Field names are snake_case in Python and camelCase on the wire.
"""

import uuid
from types import SimpleNamespace
from typing import Any, Callable, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .exceptions import ImmutableFieldError

ModelT = TypeVar("ModelT", bound="SyncModel")


def make_id() -> str:
    """32 lowercase hex characters, used for client-generated keys."""
    return uuid.uuid4().hex


class SyncModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    primary_key: ClassVar[tuple[str, ...]] = ("id",)
    read_only_fields: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")

    created_at: str | None = None
    updated_at: str | None = None

    def key(self) -> tuple[Any, ...]:
        return tuple(getattr(self, f) for f in self.primary_key)

    @classmethod
    def copy_of(
        cls: type[ModelT], source: ModelT, mutator: Callable[[Any], Any]
    ) -> ModelT:
        """Return a modified copy of ``source``; primary key fields cannot change."""
        draft = SimpleNamespace(
            **{name: getattr(source, name) for name in cls.model_fields}
        )
        mutator(draft)
        values = vars(draft)
        for field in cls.primary_key:
            if values.get(field) != getattr(source, field):
                raise ImmutableFieldError(
                    f"Cannot change primary key field {field!r} of {cls.__name__}"
                )
        return cls.model_validate(values)

    def to_input(self) -> dict[str, Any]:
        """Mutation input: camelCase, without read-only or relationship fields."""
        return self.model_dump(
            by_alias=True,
            exclude=set(self.read_only_fields) | self._relationship_fields(),
            exclude_none=True,
        )

    @classmethod
    def _relationship_fields(cls) -> set[str]:
        return set()


class BasicModel(SyncModel):
    id: str = Field(default_factory=make_id)
    body: str


class Post(SyncModel):
    primary_key: ClassVar[tuple[str, ...]] = ("post_id", "title")

    post_id: str
    title: str


class Comment(SyncModel):
    primary_key: ClassVar[tuple[str, ...]] = ("comment_id", "content")

    comment_id: str
    content: str
    post: Post | None = None
    post_id: str | None = None
    post_title: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _link_post(cls, data: Any) -> Any:
        # The BELONGS_TO foreign key always follows the attached post.
        if not isinstance(data, dict) or data.get("post") is None:
            return data
        post = data["post"]
        if isinstance(post, Post):
            post_id, post_title = post.post_id, post.title
        else:
            post_id = post.get("post_id", post.get("postId"))
            post_title = post.get("title")
        data = {k: v for k, v in data.items() if k not in ("postId", "postTitle")}
        data["post_id"] = post_id
        data["post_title"] = post_title
        return data

    @classmethod
    def _relationship_fields(cls) -> set[str]:
        return {"post"}


MODELS: dict[str, type[SyncModel]] = {
    "BasicModel": BasicModel,
    "Post": Post,
    "Comment": Comment,
}
