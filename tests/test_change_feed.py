import unittest

from app.extensions.change_feed import ChangeFeed, ChangeFeedHub
from support import ServiceTestCase


class Counter:
    def __init__(self):
        self.value = 0

    def __call__(self):
        self.value += 1
        return [self.value]


class TestChangeFeedHub(unittest.TestCase):
    def setUp(self):
        self.hub = ChangeFeedHub()
        self.loader = Counter()
        self.feed = ChangeFeed(self.hub, "posts", self.loader, watch=["comments"])

    def test_subscribe_delivers_initial_snapshot(self):
        received = []
        self.feed.subscribe(received.append)

        self.assertEqual(received, [[1]])
        self.assertEqual(self.hub.subscription_count("posts"), 1)
        self.assertEqual(self.hub.subscription_count("comments"), 1)

    def test_publish_redelivers_for_watched_collections_only(self):
        received = []
        self.feed.subscribe(received.append)

        self.hub.publish(["comments"])
        self.hub.publish(["notifications"])
        self.hub.publish(["posts", "comments"])

        self.assertEqual(received, [[1], [2], [3]])

    def test_unsubscribe_is_idempotent_and_stops_delivery(self):
        received = []
        subscription = self.feed.subscribe(received.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        self.hub.publish(["posts"])

        self.assertEqual(received, [[1]])
        self.assertFalse(subscription.active)
        self.assertEqual(self.hub.subscription_count(), 0)

    def test_unsubscribe_from_inside_callback(self):
        received = []
        holder = {}

        def callback(snapshot):
            received.append(snapshot)
            if len(received) == 2:
                holder["subscription"].unsubscribe()

        holder["subscription"] = self.feed.subscribe(callback)
        self.hub.publish(["posts"])
        self.hub.publish(["posts"])

        self.assertEqual(received, [[1], [2]])

    def test_failing_subscriber_does_not_affect_others(self):
        received = []

        def broken(snapshot):
            raise RuntimeError("subscriber bug")

        with self.assertLogs("app.extensions.change_feed", level="ERROR"):
            self.feed.subscribe(broken)
            self.feed.subscribe(received.append)
            self.hub.publish(["posts"])

        self.assertEqual(received[-1], [self.loader.value])
        self.assertEqual(len(received), 2)

    def test_notices_during_delivery_are_coalesced(self):
        received = []

        def callback(snapshot):
            received.append(snapshot)
            if len(received) == 2:
                self.hub.publish(["posts"])
                self.hub.publish(["posts"])

        self.feed.subscribe(callback)
        self.hub.publish(["posts"])

        self.assertEqual(received, [[1], [2], [3]])

    def test_snapshot_failure_is_logged_and_skipped(self):
        def broken_loader():
            raise RuntimeError("query failed")

        feed = ChangeFeed(self.hub, "posts", broken_loader)
        received = []

        with self.assertLogs("app.extensions.change_feed", level="ERROR"):
            subscription = feed.subscribe(received.append)

        self.assertEqual(received, [])
        self.assertTrue(subscription.active)

    def test_notice_during_failed_snapshot_is_still_delivered(self):
        calls = []

        def loader():
            calls.append(len(calls))
            if len(calls) == 1:
                self.hub.publish(["posts"])
                raise RuntimeError("connection reset")
            return ["fresh"]

        feed = ChangeFeed(self.hub, "posts", loader)
        received = []

        with self.assertLogs("app.extensions.change_feed", level="ERROR"):
            feed.subscribe(received.append)

        self.assertEqual(received, [["fresh"]])
        self.assertEqual(len(calls), 2)


class TestDocumentStoreFeeds(ServiceTestCase):
    def setUp(self):
        super().setUp()
        from app.extensions.change_feed import change_feeds
        from app.repositories import comment_repository, document_store, post_repository
        from app.services import post_service

        self.change_feeds = change_feeds
        self.comment_repository = comment_repository
        self.document_store = document_store
        self.post_repository = post_repository
        self.post_service = post_service
        self.subscriptions = []

    def tearDown(self):
        for subscription in self.subscriptions:
            subscription.unsubscribe()
        super().tearDown()

    def _subscribe(self, feed):
        received = []
        self.subscriptions.append(feed.subscribe(received.append))
        return received

    def test_created_post_appears_trimmed_with_zero_counts(self):
        received = self._subscribe(self.post_repository.posts_feed())
        self.assertEqual(received, [[]])

        self.post_service.create_post("owner-uid", "owner", "  Title  ", "  Body text \n")

        posts = received[-1]
        self.assertEqual(len(posts), 1)
        self.assertEqual(posts[0]["title"], "Title")
        self.assertEqual(posts[0]["content"], "Body text")
        self.assertEqual(posts[0]["up_votes"], 0)
        self.assertEqual(posts[0]["down_votes"], 0)
        self.assertEqual(posts[0]["score"], 0)

    def test_posts_are_newest_first_and_comments_oldest_first(self):
        first = self.post_service.create_post("a", "ann", "First", "one")
        second = self.post_service.create_post("b", "bob", "Second", "two")
        for text in ("c1", "c2", "c3"):
            self.comment_repository.create_comment(first, "b", "bob", text)
        self.document_store.commit()

        posts = self.post_repository.posts_feed().snapshot()
        comments = self.comment_repository.comments_feed(first).snapshot()

        self.assertEqual([post["id"] for post in posts], [second, first])
        self.assertEqual([comment["content"] for comment in comments], ["c1", "c2", "c3"])

    def test_rollback_publishes_nothing(self):
        received = self._subscribe(self.post_repository.posts_feed())

        self.post_repository.create_post("a", "ann", "Draft", "never committed")
        self.document_store.rollback()

        self.assertEqual(received, [[]])

    def test_delete_post_empties_its_comment_feed(self):
        post_id = self.post_service.create_post("a", "ann", "Doomed", "body")
        self.comment_repository.create_comment(post_id, "b", "bob", "reply")
        self.document_store.commit()
        received = self._subscribe(self.comment_repository.comments_feed(post_id))
        self.assertEqual(len(received[-1]), 1)

        self.post_service.delete_post(post_id, "a")

        self.assertEqual(received[-1], [])
        self.assertEqual(self.comment_repository.get_comments_by_post(post_id), [])

    def test_unsubscribed_feeds_leave_the_hub(self):
        baseline = self.change_feeds.subscription_count()
        subscription = self.post_repository.posts_feed(watch=()).subscribe(lambda posts: None)
        self.assertEqual(self.change_feeds.subscription_count(), baseline + 1)

        subscription.unsubscribe()
        self.assertEqual(self.change_feeds.subscription_count(), baseline)


if __name__ == "__main__":
    unittest.main()
