import unittest
from unittest.mock import patch

from support import FakeSummaryProvider, ServiceTestCase


class TestThreadSummaryOrchestrator(ServiceTestCase):
    config_overrides = {"THREAD_SUMMARY_THRESHOLD": 3}

    def setUp(self):
        super().setUp()
        from app.services import comment_service, post_service

        self.comment_service = comment_service
        self.provider = self.use_provider(FakeSummaryProvider(summary="Thread recap."))
        self.post_id = post_service.create_post("owner-uid", "owner", "Topic", "Short body")

    def _comment(self, text, uid="commenter-uid", author="commenter"):
        return self.comment_service.create_comment(self.post_id, uid, author, text)

    def test_generates_once_threshold_is_reached(self):
        self._comment("first")
        self._comment("second")
        self.assertEqual(self.provider.calls, [])

        self._comment("third   comment\n\nwith gaps")
        self.assertEqual(len(self.provider.calls), 1)

        content, subject_type, max_length = self.provider.calls[0]
        self.assertEqual(subject_type, "thread")
        self.assertEqual(max_length, 250)
        self.assertEqual(
            content,
            "commenter: first\n\ncommenter: second\n\ncommenter: third comment with gaps",
        )

        cached = self.summary_service.thread_summaries.state(self.post_id)
        self.assertEqual(cached["status"], "present")
        self.assertEqual(cached["summary"], "Thread recap.")
        self.assertEqual(cached["comment_count"], 3)
        self.assertFalse(cached["stale"])

    def test_new_comment_makes_summary_stale_and_regenerates(self):
        for text in ("one", "two", "three"):
            self._comment(text)
        self.assertEqual(len(self.provider.calls), 1)

        # A quiet evaluation with a fresh cache does nothing.
        self.assertFalse(self.summary_service.thread_summaries.evaluate(self.post_id))

        self._comment("four")
        self.assertEqual(len(self.provider.calls), 2)
        self.assertEqual(
            self.summary_service.thread_summaries.state(self.post_id)["comment_count"], 4
        )

    def test_stale_state_is_reported_before_regeneration(self):
        for text in ("one", "two", "three"):
            self._comment(text)

        with patch.object(self.summary_service, "evaluate_after_write", return_value=False):
            self._comment("four")

        state = self.summary_service.thread_summaries.state(self.post_id)
        self.assertEqual(state["status"], "absent")
        self.assertTrue(state["stale"])
        self.assertEqual(state["summary"], "Thread recap.")
        self.assertEqual(state["live_comment_count"], 4)

    def test_failure_is_recorded_and_suppresses_auto_retry(self):
        self.provider.error = "quota exceeded"
        for text in ("one", "two", "three"):
            self._comment(text)
        self.assertEqual(len(self.provider.calls), 1)

        state = self.summary_service.thread_summaries.state(self.post_id)
        self.assertEqual(state["status"], "absent")
        self.assertEqual(state["error"], "quota exceeded")
        self.assertFalse(self.fake_redis.exists("summary:generating:thread:%s" % self.post_id))

        self._comment("four")
        self.assertEqual(len(self.provider.calls), 1)

        # A manual request clears the error and tries again.
        self.provider.error = None
        state = self.summary_service.thread_summaries.request(self.post_id)
        self.assertEqual(len(self.provider.calls), 2)
        self.assertEqual(state["status"], "present")
        self.assertIsNone(state["error"])

    def test_manual_request_on_empty_thread_is_rejected(self):
        with self.assertRaises(ValueError):
            self.summary_service.thread_summaries.request(self.post_id)
        self.assertEqual(self.provider.calls, [])


class TestPostSummaryOrchestrator(ServiceTestCase):
    config_overrides = {"POST_SUMMARY_THRESHOLD": 200}

    def setUp(self):
        super().setUp()
        from app.services import post_service

        self.post_service = post_service
        self.provider = self.use_provider(FakeSummaryProvider(summary="Post recap."))

    def test_short_post_is_never_summarized(self):
        post_id = self.post_service.create_post("owner-uid", "owner", "Short", "x" * 150)
        self.post_service.edit_post(post_id, "owner-uid", "Short", "y" * 150)

        self.assertEqual(self.provider.calls, [])
        self.assertEqual(self.summary_service.post_summaries.state(post_id)["status"], "absent")

    def test_long_post_is_summarized_exactly_once(self):
        post_id = self.post_service.create_post("owner-uid", "owner", "Long", "z" * 250)
        self.assertEqual(len(self.provider.calls), 1)
        self.assertEqual(self.provider.calls[0][1:], ("post", 200))

        self.summary_service.summary_state(post_id)
        self.assertFalse(self.summary_service.post_summaries.evaluate(post_id))
        self.assertEqual(len(self.provider.calls), 1)

        state = self.summary_service.post_summaries.state(post_id)
        self.assertEqual(state["status"], "present")
        self.assertEqual(state["summary"], "Post recap.")

    def test_manual_request_while_generating_is_a_no_op(self):
        post_id = self.post_service.create_post("owner-uid", "owner", "Short", "Not long enough")
        from app.repositories import summary_state_repository

        self.assertTrue(summary_state_repository.try_mark_generating("post", post_id, 60))

        state = self.summary_service.post_summaries.request(post_id)

        self.assertEqual(self.provider.calls, [])
        self.assertEqual(state["status"], "generating")

    def test_manual_request_ignores_threshold(self):
        post_id = self.post_service.create_post("owner-uid", "owner", "Short", "Not long enough")

        state = self.summary_service.post_summaries.request(post_id)

        self.assertEqual(len(self.provider.calls), 1)
        self.assertEqual(state["status"], "present")

    def test_manual_request_falls_back_to_extractive_summary(self):
        self.use_provider(FakeSummaryProvider(configured=False))
        post_id = self.post_service.create_post("owner-uid", "owner", "Long", "w" * 250)

        state = self.summary_service.post_summaries.request(post_id)

        self.assertEqual(state["summary"], "w" * 197 + "...")

    def test_auto_generation_is_skipped_without_remote_provider(self):
        self.use_provider(FakeSummaryProvider(configured=False))
        post_id = self.post_service.create_post("owner-uid", "owner", "Long", "v" * 250)

        self.assertFalse(self.summary_service.post_summaries.evaluate(post_id))
        self.assertEqual(self.summary_service.post_summaries.state(post_id)["status"], "absent")

    def test_background_generation_is_dispatched_as_a_task(self):
        self.app.config["SUMMARY_BACKGROUND_GENERATION"] = True
        try:
            with patch.object(
                self.summary_service.socketio, "start_background_task"
            ) as start_task:
                post_id = self.post_service.create_post("owner-uid", "owner", "Long", "u" * 250)
        finally:
            self.app.config["SUMMARY_BACKGROUND_GENERATION"] = False

        start_task.assert_called_once()
        self.assertEqual(self.provider.calls, [])
        self.assertEqual(
            self.summary_service.post_summaries.state(post_id)["status"], "generating"
        )

    def test_unknown_kind_is_rejected(self):
        with self.assertRaises(ValueError):
            self.summary_service.get_orchestrator("comments")


if __name__ == "__main__":
    unittest.main()
