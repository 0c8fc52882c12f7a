"""Audit sinks, settings checks and the subject middleware."""

from __future__ import annotations

import json
import threading
import time
from unittest import mock

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from access_control.audit import (
    AuditAction,
    AuditRecord,
    LoggingAuditSink,
    NullAuditSink,
    RedisAuditSink,
    build_audit_sink,
    notify,
)
from access_control.checks import access_control_settings_are_valid
from access_control.rbac import RBACAuthorizer, RoleStore
from core import redis_client
from core.middleware import SubjectMiddleware
from tests.utils import FailingAuditSink, FakeRedis, RecordingAuditSink, drain_audit_delivery


class AuditSinkTests(SimpleTestCase):
    """Record serialization and delivery to each sink."""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.fake_redis = FakeRedis()
        cls.patcher = mock.patch("access_control.audit.get_redis_client", return_value=cls.fake_redis)
        cls.patcher.start()

    @classmethod
    def tearDownClass(cls):
        cls.patcher.stop()
        super().tearDownClass()

    def setUp(self):
        self.fake_redis.streams.clear()
        self.record = AuditRecord.for_decision(
            "u1", "posts", False, metadata={"evaluation_method": "ABAC", "matched_rules": ["r1"]}
        )

    def test_record_for_decision(self):
        granted = AuditRecord.for_decision("u1", "posts", True, resource_id="u1")

        self.assertEqual(granted.action, AuditAction.ACCESS_GRANTED)
        self.assertTrue(granted.success)
        self.assertEqual(granted.resource_id, "u1")
        self.assertEqual(self.record.action, AuditAction.ACCESS_DENIED)
        self.assertFalse(self.record.success)

    def test_to_dict_is_json_ready(self):
        data = self.record.to_dict()

        self.assertEqual(data["action"], "authz.access_denied")
        self.assertIsInstance(data["timestamp"], str)
        self.assertEqual(json.loads(json.dumps(data))["metadata"]["matched_rules"], ["r1"])

    @override_settings(ACCESS_CONTROL_AUDIT_STREAM="audit:test")
    def test_redis_sink_appends_to_stream(self):
        RedisAuditSink().deliver(self.record)

        entries = self.fake_redis.streams["audit:test"]
        self.assertEqual(len(entries), 1)
        payload = json.loads(entries[0]["record"])
        self.assertEqual(payload["subject_id"], "u1")
        self.assertEqual(payload["metadata"]["evaluation_method"], "ABAC")

    def test_logging_sink_writes_json(self):
        with self.assertLogs("access_control.audit.records", level="INFO") as captured:
            LoggingAuditSink().deliver(self.record)

        payload = json.loads(captured.records[0].getMessage())
        self.assertEqual(payload["action"], "authz.access_denied")
        self.assertEqual(payload["resource"], "posts")

    def test_build_audit_sink(self):
        self.assertIsInstance(build_audit_sink("redis"), RedisAuditSink)
        self.assertIsInstance(build_audit_sink("none"), NullAuditSink)
        self.assertIsInstance(build_audit_sink("logging"), LoggingAuditSink)
        with override_settings(ACCESS_CONTROL_AUDIT_SINK="none"):
            self.assertIsInstance(build_audit_sink(), NullAuditSink)

    def test_notify_swallows_sink_failure(self):
        with self.assertLogs("access_control.audit", level="ERROR") as captured:
            notify(FailingAuditSink(), self.record)
            drain_audit_delivery()

        self.assertIn("Audit delivery failed", captured.output[0])

    def test_notify_without_sink_is_noop(self):
        notify(None, self.record)


class SlowAuditSink(RecordingAuditSink):
    """Sink whose backend takes ``delay`` seconds per record."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay
        self.delivered = threading.Event()

    def deliver(self, record: AuditRecord) -> None:
        time.sleep(self.delay)
        super().deliver(record)
        self.delivered.set()


class BlockedAuditSink(RecordingAuditSink):
    """Sink that holds every delivery until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def deliver(self, record: AuditRecord) -> None:
        self.release.wait(5)
        super().deliver(record)


class AuditDeliveryTests(SimpleTestCase):
    """Decisions return without waiting for the audit backend."""

    def tearDown(self):
        drain_audit_delivery()

    def test_slow_sink_does_not_delay_rbac_decision(self):
        sink = SlowAuditSink(delay=1.0)
        rbac = RBACAuthorizer(RoleStore(), sink)
        rbac.store.assign_role("u1", "user")

        started = time.monotonic()
        allowed = rbac.can_access("u1", "posts", "create")
        elapsed = time.monotonic() - started

        self.assertTrue(allowed)
        self.assertLess(elapsed, 0.5)
        self.assertTrue(sink.delivered.wait(5))
        self.assertEqual(sink.records[0].action, AuditAction.ACCESS_GRANTED)

    def test_records_keep_decision_order(self):
        sink = RecordingAuditSink()
        for resource in ("a", "b", "c"):
            notify(sink, AuditRecord.for_decision("u1", resource, True))
        drain_audit_delivery()

        self.assertEqual([r.resource for r in sink.records], ["a", "b", "c"])

    @override_settings(ACCESS_CONTROL_AUDIT_QUEUE_SIZE=2)
    def test_full_queue_drops_records(self):
        drain_audit_delivery()
        sink = BlockedAuditSink()

        with self.assertLogs("access_control.audit", level="WARNING") as captured:
            for resource in ("a", "b", "c"):
                notify(sink, AuditRecord.for_decision("u1", resource, True))
        sink.release.set()
        drain_audit_delivery()

        self.assertIn("Audit queue full", captured.output[0])
        self.assertEqual([r.resource for r in sink.records], ["a", "b"])

    @override_settings(ACCESS_CONTROL_AUDIT_ASYNC=False)
    def test_inline_delivery(self):
        sink = RecordingAuditSink()
        notify(sink, AuditRecord.for_decision("u1", "posts", True))

        self.assertEqual(len(sink.records), 1)


class RedisClientTests(SimpleTestCase):
    def setUp(self):
        self.addCleanup(setattr, redis_client, "_client", redis_client._client)
        redis_client._client = None

    @override_settings(REDIS_URL="redis://cache:6379/1", REDIS_SOCKET_TIMEOUT=0.25)
    def test_client_uses_socket_timeouts(self):
        with mock.patch("core.redis_client.redis.Redis.from_url") as from_url:
            client = redis_client.get_redis_client()

        self.assertIs(client, from_url.return_value)
        from_url.assert_called_once_with(
            "redis://cache:6379/1",
            decode_responses=True,
            socket_connect_timeout=0.25,
            socket_timeout=0.25,
        )


class SettingsCheckTests(SimpleTestCase):
    def test_valid_settings(self):
        self.assertEqual(access_control_settings_are_valid(None), [])

    @override_settings(ACCESS_CONTROL_POLICY_BACKEND="ldap", ACCESS_CONTROL_AUDIT_SINK="kafka")
    def test_unknown_backend_and_sink(self):
        errors = access_control_settings_are_valid(None)

        self.assertEqual([e.id for e in errors], ["access_control.E001", "access_control.E002"])

    @override_settings(ACCESS_CONTROL_AUDIT_WORKERS=0)
    def test_audit_pool_size_must_be_positive(self):
        errors = access_control_settings_are_valid(None)

        self.assertEqual([e.id for e in errors], ["access_control.E003"])


class SubjectMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = SubjectMiddleware(lambda request: HttpResponse())

    def test_header_sets_subject(self):
        request = self.factory.get("/", HTTP_X_SUBJECT_ID="  u1 ")
        self.middleware(request)

        self.assertEqual(request.subject_id, "u1")

    def test_missing_or_blank_header(self):
        request = self.factory.get("/")
        self.middleware(request)
        self.assertIsNone(request.subject_id)

        blank = self.factory.get("/", HTTP_X_SUBJECT_ID="   ")
        self.middleware(blank)
        self.assertIsNone(blank.subject_id)
