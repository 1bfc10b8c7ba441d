"""
Tests for the health probes and request correlation middleware.
"""
from django.test import Client, TestCase
import json


class HealthEndpointsTest(TestCase):
    """Test health check endpoints."""

    def setUp(self):
        self.client = Client()

    def test_healthz_returns_ok(self):
        response = self.client.get('/healthz')
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertEqual(data['status'], 'ok')

    def test_readyz_returns_ok_when_db_healthy(self):
        response = self.client.get('/readyz')
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertEqual(data['status'], 'ok')
        self.assertTrue(data['db'])


class RequestIdMiddlewareTest(TestCase):
    """Test request correlation headers."""

    def setUp(self):
        self.client = Client()

    def test_request_id_added_to_response(self):
        response = self.client.get('/healthz')
        self.assertIn('X-Request-Id', response)
        self.assertEqual(len(response['X-Request-Id']), 36)  # UUID format length

    def test_inbound_request_id_is_echoed(self):
        response = self.client.get('/healthz', HTTP_X_REQUEST_ID='abc12345-trace')
        self.assertEqual(response['X-Request-Id'], 'abc12345-trace')

    def test_malformed_request_id_is_replaced(self):
        response = self.client.get('/healthz', HTTP_X_REQUEST_ID='bad id!')
        self.assertNotEqual(response['X-Request-Id'], 'bad id!')
        self.assertEqual(len(response['X-Request-Id']), 36)

    def test_timing_header_added(self):
        response = self.client.get('/healthz')
        self.assertIn('X-Response-Time-ms', response)
        self.assertGreaterEqual(int(response['X-Response-Time-ms']), 0)

    def test_unknown_api_path_returns_json_404(self):
        response = self.client.get('/api/does-not-exist/')
        self.assertEqual(response.status_code, 404)
