"""End-to-end checks for a DataStore: save, query, update, delete, observe, observe_query."""

import asyncio
import logging
from typing import Any, Callable

from ..collectors import wait_for_observe, wait_for_snapshots
from ..config import HarnessConfig
from ..datastore import DataStore, RemoteClient
from ..expect import expect
from ..schema import BasicModel, Comment, Post, make_id

logger = logging.getLogger(__name__)


class DataStoreSuite:
    """Setup function for run_tests(): clears the store, then registers every test."""

    def __init__(
        self,
        store: DataStore,
        remote: RemoteClient | None = None,
        config: HarnessConfig | None = None,
    ):
        self.store = store
        self.remote = remote
        self.config = config or HarnessConfig()

    async def __call__(
        self, describe: Any, test: Any, get_test_name: Callable[[], str]
    ) -> None:
        await self.store.clear()
        logger.info("Store cleared, settling for %.1fs", self.config.settle_delay)
        await asyncio.sleep(self.config.settle_delay)

        self._name = get_test_name
        describe("Sanity checks", lambda: self._sanity(test))
        describe("Basic", lambda: self._basic(describe, test))
        describe("observe", lambda: self._observe_suite(describe, test))
        describe("observeQuery", lambda: self._observe_query_suite(describe, test))
        describe("Related entity stuff", lambda: self._related(test))
        describe.skip("Expected error cases")

    def _observe(self, model: type, predicate: Any = None):
        return wait_for_observe(
            self.store, model, predicate, timeout=self.config.observe_timeout
        )

    def _snapshots(self, model: type, predicate: Any = None):
        return wait_for_snapshots(
            self.store, model, predicate, duration=self.config.snapshot_window
        )

    async def _save_posts(self, isolation_id: str) -> tuple[Post, Post]:
        post_a = await self.store.save(
            Post(post_id=make_id(), title=f"{self._name()} - {isolation_id} - post A")
        )
        post_b = await self.store.save(
            Post(post_id=make_id(), title=f"{self._name()} - {isolation_id} - post B")
        )
        return post_a, post_b

    def _sanity(self, test: Any) -> None:
        def test_name_is_accessible():
            expect(self._name()).to_be_truthy()

        test("test name is accessible", test_name_is_accessible)

    def _basic(self, describe: Any, test: Any) -> None:
        describe("Save", lambda: self._save(test))
        describe("Query", lambda: self._query(test))
        describe("Update", lambda: self._update(test))
        describe("Delete", lambda: self._delete(test))

    def _save(self, test: Any) -> None:
        store = self.store

        async def basic_model():
            saved = await store.save(BasicModel(body=self._name()))
            expect(saved).to_be_defined()
            expect(saved.id).to_be_defined()

        async def post_with_id():
            post = await store.save(Post(post_id=make_id(), title=self._name()))
            expect(post).to_be_defined()
            expect(post.post_id).to_be_defined()

        async def comment_with_id():
            comment = await store.save(
                Comment(comment_id=make_id(), content=self._name())
            )
            expect(comment).to_be_defined()
            expect(comment.comment_id).to_be_defined()

        test("Can save a basic model", basic_model)
        test("can save a post (HAS_MANY parent) with an ID", post_with_id)
        test("can create a comment with an ID", comment_with_id)

    def _query(self, test: Any) -> None:
        store = self.store

        async def post_by_pk():
            saved = await store.save(Post(post_id=make_id(), title=self._name()))
            retrieved = await store.query(Post, saved.model_dump())
            expect(retrieved.post_id).to_equal(saved.post_id)
            expect(retrieved.title).to_equal(saved.title)

        async def post_by_pk_predicate():
            saved = await store.save(Post(post_id=make_id(), title=self._name()))
            retrieved = (
                await store.query(Post, lambda p: p.post_id("eq", saved.post_id))
            ).pop()
            expect(retrieved.post_id).to_equal(saved.post_id)
            expect(retrieved.title).to_equal(saved.title)

        async def comment_by_pk():
            saved = await store.save(
                Comment(comment_id=make_id(), content=self._name())
            )
            retrieved = await store.query(Comment, saved.model_dump())
            expect(retrieved.comment_id).to_equal(saved.comment_id)
            expect(retrieved.content).to_equal(saved.content)

        async def comment_by_pk_predicate():
            saved = await store.save(
                Comment(comment_id=make_id(), content=self._name())
            )
            retrieved = (
                await store.query(
                    Comment, lambda c: c.comment_id("eq", saved.comment_id)
                )
            ).pop()
            expect(retrieved.comment_id).to_equal(saved.comment_id)
            expect(retrieved.content).to_equal(saved.content)

        async def all_posts():
            count = 5
            isolation_id = make_id()
            for i in range(count):
                await store.save(
                    Post(
                        post_id=make_id(),
                        title=f"{self._name()} - {isolation_id} - {i}",
                    )
                )
            prefix = f"{self._name()} - {isolation_id}"
            retrieved = [
                p for p in await store.query(Post) if p.title.startswith(prefix)
            ]
            expect(len(retrieved)).to_equal(count)

        test("can retrieve a created post by PK", post_by_pk)
        test("can retrieve a created post by PK predicate", post_by_pk_predicate)
        test("can retrieve a created comment by PK", comment_by_pk)
        test("can retrieve a created comment by PK predicate", comment_by_pk_predicate)
        test("can retrieve all posts", all_posts)

    def _update(self, test: Any) -> None:
        store = self.store

        async def basic_model():
            saved = await store.save(BasicModel(body=self._name()))
            retrieved = await store.query(BasicModel, saved.id)

            def edit(draft):
                draft.body = f"{retrieved.body} - edited"

            updated = await store.save(BasicModel.copy_of(retrieved, edit))
            retrieved_updated = await store.query(BasicModel, saved.id)

            expect(updated.body).to_equal(f"{saved.body} - edited")
            expect(retrieved_updated.body).to_equal(f"{saved.body} - edited")

        async def post_sort_key_is_immutable():
            base_title = f"{self._name()} - {make_id()}"
            saved = await store.save(Post(post_id=make_id(), title=base_title))
            expect(saved.post_id).to_be_defined()

            retrieved = await store.query(Post, saved)
            expect(retrieved.post_id).to_equal(saved.post_id)
            expect(retrieved.title).to_equal(saved.title)

            def edit(draft):
                draft.title = f"{base_title} - edited"

            expect(lambda: Post.copy_of(retrieved, edit)).to_throw()

        async def comment_post():
            isolation_id = make_id()
            post_a, post_b = await self._save_posts(isolation_id)
            comment = await store.save(
                Comment(
                    comment_id=make_id(),
                    content=f"{self._name()} - {isolation_id} - comment",
                    post=post_a,
                )
            )
            retrieved = await store.query(Comment, comment)

            def move(draft):
                draft.post = post_b

            await store.save(Comment.copy_of(retrieved, move))
            retrieved_updated = await store.query(Comment, comment)

            expect(retrieved_updated).to_be_defined()
            expect(retrieved_updated.post.post_id).to_equal(post_b.post_id)

        test("can update basic model (sanity check)", basic_model)
        test("cannot update Post (HAS_ONE parent) SK", post_sort_key_is_immutable)
        test.skip("cannot update Post (HAS_ONE parent) Cluster key")
        test("can update post on Comment (BELONGS_TO FK)", comment_post)

    def _delete(self, test: Any) -> None:
        store = self.store

        async def basic_model_by_instance():
            item = await store.save(BasicModel(body=f"{self._name()} - {make_id()}"))
            before = await store.query(BasicModel, item.id)
            await store.delete(item)
            after = await store.query(BasicModel, item.id)
            expect(before).to_be_defined()
            expect(after).to_be_falsy()

        async def basic_model_missing_pk():
            item = await store.save(BasicModel(body=f"{self._name()} - {make_id()}"))
            before = await store.query(BasicModel, item.id)
            deleted = await store.delete(BasicModel, "does not exist")
            after = await store.query(BasicModel, item.id)
            expect(before).to_be_defined()
            expect(after).to_be_defined()
            expect(deleted).to_equal([])

        async def _saved_post() -> Post:
            return await store.save(
                Post(post_id=make_id(), title=f"{self._name()} - {make_id()} - post")
            )

        async def _saved_comment() -> Comment:
            return await store.save(
                Comment(
                    comment_id=make_id(),
                    content=f"{self._name()} - {make_id()} - comment",
                )
            )

        async def post_by_instance():
            post = await _saved_post()
            await store.delete(post)
            expect(await store.query(Post, post)).to_be_falsy()

        async def post_by_pk():
            post = await _saved_post()
            await store.delete(Post, {"postId": post.post_id, "title": post.title})
            expect(await store.query(Post, post)).to_be_falsy()

        async def post_by_pk_predicate():
            post = await _saved_post()
            await store.delete(
                Post, lambda p: p.post_id("eq", post.post_id).title("eq", post.title)
            )
            expect(await store.query(Post, post)).to_be_falsy()

        async def post_by_cluster_key():
            post = await _saved_post()
            await store.delete(Post, lambda p: p.post_id("eq", post.post_id))
            expect(await store.query(Post, post)).to_be_falsy()

        async def comment_by_instance():
            comment = await _saved_comment()
            await store.delete(comment)
            expect(await store.query(Comment, comment)).to_be_falsy()

        async def comment_by_pk():
            comment = await _saved_comment()
            await store.delete(
                Comment,
                {"comment_id": comment.comment_id, "content": comment.content},
            )
            expect(await store.query(Comment, comment)).to_be_falsy()

        async def comment_by_pk_predicate():
            comment = await _saved_comment()
            await store.delete(
                Comment,
                lambda c: c.comment_id("eq", comment.comment_id).content(
                    "eq", comment.content
                ),
            )
            expect(await store.query(Comment, comment)).to_be_falsy()

        async def missing_comment():
            comment = await _saved_comment()
            deleted = await store.delete(
                Comment,
                {"comment_id": comment.comment_id, "content": "does not exist"},
            )
            expect(await store.query(Comment, comment)).to_be_defined()
            expect(deleted).to_equal([])

        test("can delete BasicModel by instance", basic_model_by_instance)
        test(
            "can delete BasicModel by non-existent PK results in no error ",
            basic_model_missing_pk,
        )
        # Un-skip once a bad PK produces a meaningful error.
        test.skip("can delete BasicModel by bad PK results in meaningful error ")
        test("can delete Post by instance", post_by_instance)
        test("can delete Post by PK", post_by_pk)
        test("can delete Post by PK predicate", post_by_pk_predicate)
        test("can delete Post by PK cluster key", post_by_cluster_key)
        test("can delete Comment by instance", comment_by_instance)
        test("can delete Comment by PK cluster key", comment_by_pk)
        test("can delete Comment by PK predicate", comment_by_pk_predicate)
        test("can delete non-existent Comment without error", missing_comment)
        test.skip("attempting to deleting Comment with partial key error is meaningful")

    def _observe_suite(self, describe: Any, test: Any) -> None:
        describe("sanity checks", lambda: self._observe_basic(test))
        describe("CPK models", lambda: self._observe_cpk(test))

    def _observe_basic(self, test: Any) -> None:
        store = self.store

        async def insert():
            body = f"{self._name()} - {make_id()}"
            pending = self._observe(BasicModel)
            await store.save(BasicModel(body=body))
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("INSERT")
            expect(updates[0].element.body).to_equal(body)

        async def update():
            body = f"{self._name()} - {make_id()}"
            saved = await store.save(BasicModel(body=body))

            def edit(draft):
                draft.body = f"{body} - edited"

            pending = self._observe(BasicModel)
            await store.save(BasicModel.copy_of(saved, edit))
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("UPDATE")
            expect(updates[0].element.body).to_equal(f"{body} - edited")

        async def delete():
            body = f"{self._name()} - {make_id()}"
            saved = await store.save(BasicModel(body=body))

            pending = self._observe(BasicModel)
            await store.delete(saved)
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("DELETE")
            expect(updates[0].element.body).to_equal(body)

        async def another_client():
            record_id = make_id()
            body = f"{self._name()} - {make_id()}"

            def by_id(m):
                return m.id("eq", record_id)

            pending = self._observe(BasicModel, by_id)
            await self.remote.mutate(
                "createBasicModel", {"id": record_id, "body": body, "_version": 0}
            )
            creates = await pending
            expect(creates).to_be_defined()
            expect(creates[0].element.body).to_equal(body)

            pending = self._observe(BasicModel, by_id)
            await self.remote.mutate(
                "updateBasicModel",
                {"id": record_id, "body": f"{body} edited", "_version": 1},
            )
            updates = await pending
            expect(updates).to_be_defined()
            expect(updates[0].element.body).to_equal(f"{body} edited")

            pending = self._observe(BasicModel, by_id)
            await self.remote.mutate(
                "deleteBasicModel", {"id": record_id, "_version": 2}
            )
            deletes = await pending
            expect(deletes).to_be_defined()
            expect(deletes[0].element.body).to_equal(f"{body} edited")

        test("can observe INSERT on ALL changes to BasicModel", insert)
        test("can observe UPDATE on ALL changes to BasicModel", update)
        test("can observe DELETE on ALL changes to BasicModel", delete)
        if self.remote is not None:
            test("can observe changes from another client", another_client)
        else:
            test.skip("can observe changes from another client")

    def _observe_cpk(self, test: Any) -> None:
        store = self.store

        async def insert_post():
            # Needs padding when it runs right after the BasicModel observers.
            await asyncio.sleep(self.config.padding_delay)
            title = f"{self._name()} - {make_id()}"
            pending = self._observe(Post)
            await store.save(Post(post_id=make_id(), title=title))
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("INSERT")
            expect(updates[0].element.title).to_equal(title)

        async def insert_post_by_predicate():
            title = f"{self._name()} - {make_id()}"
            pending = self._observe(Post, lambda p: p.title("eq", title))
            await store.save(Post(post_id=make_id(), title=title))
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("INSERT")
            expect(updates[0].element.title).to_equal(title)

        def comment_update(predicate: Callable[[Comment], Any] | None):
            async def run():
                isolation_id = make_id()
                content = f"{self._name()} - {isolation_id} - comment"
                post_a, post_b = await self._save_posts(isolation_id)
                comment = await store.save(
                    Comment(comment_id=make_id(), content=content, post=post_a)
                )

                def move(draft):
                    draft.post = post_b

                pending = self._observe(
                    Comment, predicate(comment) if predicate else None
                )
                updated = await store.save(Comment.copy_of(comment, move))
                expect(updated).to_be_defined()
                expect(updated.comment_id).to_equal(comment.comment_id)

                updates = await pending
                expect(len(updates)).to_equal(1)
                expect(updates[0].op_type).to_equal("UPDATE")
                expect(updates[0].element.content).to_equal(content)
                expect(updates[0].element.post.post_id).to_equal(post_b.post_id)

            return run

        def by_content(comment):
            return lambda c: c.content("eq", comment.content)

        def by_pk(comment):
            return lambda c: c.comment_id("eq", comment.comment_id).content(
                "eq", comment.content
            )

        async def delete_post():
            title = f"{self._name()} - {make_id()}"
            saved = await store.save(Post(post_id=make_id(), title=title))
            pending = self._observe(Post)
            await store.delete(saved)
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("DELETE")
            expect(updates[0].element.title).to_equal(title)

        async def delete_post_by_predicate():
            title = f"{self._name()} - {make_id()}"
            saved = await store.save(Post(post_id=make_id(), title=title))
            pending = self._observe(Post, lambda p: p.post_id("eq", saved.post_id))
            await store.delete(saved)
            updates = await pending

            expect(len(updates)).to_equal(1)
            expect(updates[0].op_type).to_equal("DELETE")
            expect(updates[0].element.title).to_equal(title)

        async def another_client():
            isolation_id = make_id()
            post_id_a, title_a = make_id(), f"{self._name()} - {isolation_id} - post A"
            post_id_b, title_b = make_id(), f"{self._name()} - {isolation_id} - post B"
            await self.remote.mutate(
                "createPost", {"postId": post_id_a, "title": title_a, "_version": 0}
            )
            await self.remote.mutate(
                "createPost", {"postId": post_id_b, "title": title_b, "_version": 0}
            )

            comment_id = make_id()
            content = f"{self._name()} - {isolation_id}"

            def by_id(m):
                return m.comment_id("eq", comment_id)

            pending = self._observe(Comment, by_id)
            await self.remote.mutate(
                "createComment",
                {
                    "commentId": comment_id,
                    "content": content,
                    "postId": post_id_a,
                    "postTitle": title_a,
                    "_version": 0,
                },
            )
            creates = await pending
            expect(creates).to_be_defined()
            expect(creates[0].element.content).to_equal(content)

            pending = self._observe(Comment, by_id)
            await self.remote.mutate(
                "updateComment",
                {
                    "commentId": comment_id,
                    "content": content,
                    "postId": post_id_b,
                    "postTitle": title_b,
                    "_version": 1,
                },
            )
            updates = await pending
            expect(updates).to_be_defined()
            expect(updates[0].element.content).to_equal(content)

            pending = self._observe(Comment, by_id)
            await self.remote.mutate(
                "deleteComment",
                {"commentId": comment_id, "content": content, "_version": 2},
            )
            deletes = await pending
            expect(deletes).to_be_defined()
            expect(deletes[0].element.content).to_equal(content)

        test("can observe INSERT on ALL changes to Post", insert_post)
        test("can observe INSERT on changes to Post by predicate", insert_post_by_predicate)
        test("can observe UPDATE on ALL changes to Comment", comment_update(None))
        test(
            "can observe UPDATE on changes to Comment by predicate",
            comment_update(by_content),
        )
        test(
            "can observe UPDATE on changes to Comment by PK predicate",
            comment_update(by_pk),
        )
        # Key objects are not accepted as observe() predicates.
        test.skip("can observe UPDATE on changes to Comment by PK object")
        test("can observe DELETE on ALL changes to Post", delete_post)
        test("can observe DELETE on changes to Post by predicate", delete_post_by_predicate)
        if self.remote is not None:
            test("can observe changes from another client", another_client)
        else:
            test.skip("can observe changes from another client")

    def _observe_query_suite(self, describe: Any, test: Any) -> None:
        store = self.store

        async def basic_model():
            pending = self._snapshots(BasicModel)
            saved = await store.save(BasicModel(body=f"{self._name()} - {make_id()}"))
            snapshots = await pending

            expect(len(snapshots)).to_be_greater_than_or_equal(1)
            last = snapshots.pop()
            expect(len(last)).to_be_greater_than_or_equal(1)
            expect(any(m.id == saved.id for m in last)).to_be(True)

        def post_snapshot(predicate: Callable[[str, str], Any] | None):
            async def run():
                post_id = make_id()
                title = f"{self._name()} - {make_id()} - post"
                pending = self._snapshots(
                    Post, predicate(post_id, title) if predicate else None
                )
                saved = await store.save(Post(post_id=post_id, title=title))
                snapshots = await pending

                expect(len(snapshots)).to_be_greater_than_or_equal(1)
                last = snapshots.pop()
                expect(len(last)).to_be_greater_than_or_equal(1)
                expect(any(p.post_id == saved.post_id for p in last)).to_be(True)

            return run

        def sanity():
            test("can get snapshot containing basic model", basic_model)

        def cpk():
            test(
                "can get snapshot containing Post (HAS MANY parent) with ALL",
                post_snapshot(None),
            )
            test(
                "can get snapshot containing Post (HAS MANY parent) with title predicate",
                post_snapshot(lambda post_id, title: lambda p: p.title("eq", title)),
            )
            test(
                "can get snapshot containing Post (HAS MANY parent) with postId predicate",
                post_snapshot(lambda post_id, title: lambda p: p.post_id("eq", post_id)),
            )

        describe("sanity checks", sanity)
        describe("CPK models", cpk)

    def _related(self, test: Any) -> None:
        store = self.store

        async def _post_with_comment() -> tuple[Post, Comment]:
            post = await store.save(
                Post(post_id=make_id(), title=f"{self._name()} post")
            )
            comment = await store.save(
                Comment(
                    comment_id=make_id(),
                    content=f"{self._name()} comment",
                    post=post,
                )
            )
            return post, comment

        async def create():
            post, comment = await _post_with_comment()
            expect(comment).to_be_defined()
            expect(comment.comment_id).to_be_defined()
            expect(comment.post).to_be_defined()

        async def retrieve_with_post():
            post, comment = await _post_with_comment()
            retrieved = await store.query(Comment, comment.model_dump())
            expect(retrieved).to_be_defined()
            expect(retrieved.comment_id).to_equal(comment.comment_id)
            expect(retrieved.content).to_equal(comment.content)
            expect(retrieved.post.post_id).to_equal(post.post_id)

        async def retrieve_by_post_id():
            post, comment = await _post_with_comment()
            comments = await store.query(
                Comment, lambda c: c.post_id("eq", post.post_id)
            )
            expect(comments).to_be_defined()
            expect(len(comments)).to_equal(1)
            expect(comments[0].comment_id).to_equal(comment.comment_id)
            expect(comments[0].post.post_id).to_equal(post.post_id)

        test("can create a comment on a post", create)
        test("created comment on post can be retrieved by PK with post", retrieve_with_post)
        test(
            "can retrieve comment created on post to be retrieved by post id",
            retrieve_by_post_id,
        )
