from django.core.exceptions import PermissionDenied
from django.http import Http404
from django.test import SimpleTestCase

from inventory.exceptions import ConflictError

from .exceptions import api_exception_handler


class ApiExceptionHandlerTests(SimpleTestCase):
    def test_django_http404_is_not_found(self):
        resp = api_exception_handler(Http404("No Location matches the given query."), {})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data, {"message": "No Location matches the given query.", "code": "NOT_FOUND"})

    def test_django_permission_denied(self):
        resp = api_exception_handler(PermissionDenied(), {})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["code"], "PERMISSION_DENIED")

    def test_domain_error_keeps_its_status(self):
        resp = api_exception_handler(ConflictError("Inventory already exists"), {})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data, {"message": "Inventory already exists", "code": "CONFLICT"})

    def test_unexpected_error_is_generic_500(self):
        with self.assertLogs("core.exceptions", level="ERROR"):
            resp = api_exception_handler(RuntimeError("boom"), {})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data, {"message": "Internal server error", "code": "INTERNAL"})
