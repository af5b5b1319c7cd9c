import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from app.services.summary_providers import (
    SummaryProviderChain,
    SummaryProviderError,
    SummaryResponse,
)


class FakeRedis:
    def __init__(self):
        self._values = {}

    def clear(self):
        self._values.clear()

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self._values:
            return None
        self._values[key] = value
        return True

    def get(self, key):
        return self._values.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._values.pop(key, None) is not None:
                removed += 1
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if key in self._values)


class FakeSummaryProvider:
    name = "fake"

    def __init__(self, summary="A short summary.", configured=True, error=None):
        self.summary = summary
        self.configured = configured
        self.error = error
        self.calls = []

    def is_configured(self):
        return self.configured

    def summarize(self, content, subject_type, max_length):
        if not self.configured:
            return None
        self.calls.append((content, subject_type, max_length))
        if self.error:
            raise SummaryProviderError(self.error)
        return SummaryResponse(self.summary, len(self.summary) >= max_length)


class FakeMinio:
    def __init__(self, fail=False):
        self.fail = fail
        self.buckets = set()
        self.objects = {}

    def bucket_exists(self, bucket):
        if self.fail:
            raise ConnectionError("minio down")
        return bucket in self.buckets

    def make_bucket(self, bucket):
        self.buckets.add(bucket)

    def put_object(self, bucket_name, object_name, data, length, content_type, part_size=0):
        if self.fail:
            raise ConnectionError("minio down")
        self.objects[object_name] = (data.read(), content_type)


class ForumTestCase(unittest.TestCase):
    """Builds one app per test class against a throwaway SQLite file."""

    config_overrides = {}

    @classmethod
    def setUpClass(cls):
        db_fd, cls.db_path = tempfile.mkstemp(suffix=".db")
        os.close(db_fd)

        from app import create_app
        from app.db import db
        from app.extensions import minio_client
        from app.repositories import summary_state_repository
        from app.services import summary_service

        overrides = {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{cls.db_path}",
            "JWT_SECRET_KEY": "test-secret",
            "OPENAI_API_KEY": "",
            "HUGGINGFACE_API_KEY": "",
            "SUMMARY_BACKGROUND_GENERATION": False,
            "MEDIA_LOCAL_FALLBACK_ENABLED": True,
        }
        overrides.update(cls.config_overrides)

        cls.app = create_app(overrides)
        cls.db = db
        cls.summary_service = summary_service

        cls.fake_redis = FakeRedis()
        cls.fake_minio = FakeMinio(fail=True)
        cls.provider = FakeSummaryProvider(configured=False)
        cls.patches = [
            patch.object(summary_state_repository, "redis_client", cls.fake_redis),
            patch.object(
                summary_service,
                "get_summary_provider",
                lambda: SummaryProviderChain([cls.provider]),
            ),
            patch("app.extensions.blob_store.get_minio_client", lambda: cls.fake_minio),
        ]
        for patcher in cls.patches:
            patcher.start()
        cls.minio_client = minio_client

    @classmethod
    def tearDownClass(cls):
        for patcher in cls.patches:
            patcher.stop()

        if os.path.exists(cls.db_path):
            os.remove(cls.db_path)

    def setUp(self):
        with self.app.app_context():
            self.db.drop_all()
            self.db.create_all()
        self.fake_redis.clear()
        self.fake_minio.fail = True
        self.fake_minio.objects.clear()
        self.minio_client._ready_buckets.clear()
        self.use_provider(FakeSummaryProvider(configured=False))

        uploads_dir = os.path.join(self.app.static_folder, "uploads")
        if os.path.isdir(uploads_dir):
            shutil.rmtree(uploads_dir)

    def use_provider(self, provider):
        type(self).provider = provider
        return provider


class ServiceTestCase(ForumTestCase):
    """Runs each test inside an application context."""

    def setUp(self):
        super().setUp()
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        self.db.session.remove()
        self.ctx.pop()
