"""
RBAC and auth tests:
- Login returns tokens, bad credentials return 401
- Trainee token hitting admin endpoints returns 403
- Special viewer may read admin data but not write it
- Admin token hitting trainee endpoints returns 403
"""
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User


class RBACTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username="admin", password="pass123", full_name="Admin", role="admin")
        self.viewer = User.objects.create_user(username="viewer", password="pass123", role="special_viewer")
        self.trainee = User.objects.create_user(username="Bob", password="pass123", role="trainee")

    def _auth_header(self, user: User) -> dict:
        token = str(AccessToken.for_user(user))
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    def test_login_returns_tokens(self):
        res = self.client.post("/api/auth/login", {"username": "bob", "password": "pass123"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertIn("accessToken", res.data)
        self.assertEqual(res.data["user"]["username"], "Bob")
        self.assertEqual(res.data["user"]["role"], "trainee")

    def test_login_bad_password_returns_401(self):
        res = self.client.post("/api/auth/login", {"username": "Bob", "password": "nope"}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data["code"], "invalid_credentials")

    def test_login_disabled_account_returns_401(self):
        self.trainee.is_active = False
        self.trainee.save()
        res = self.client.post("/api/auth/login", {"username": "Bob", "password": "pass123"}, format="json")
        self.assertEqual(res.status_code, 401)

    def test_me(self):
        self.client.credentials(**self._auth_header(self.admin))
        res = self.client.get("/api/auth/me")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["fullName"], "Admin")

    def test_anonymous_returns_401(self):
        res = self.client.get("/api/admin/submissions")
        self.assertEqual(res.status_code, 401)

    def test_trainee_hitting_admin_endpoint_returns_403(self):
        self.client.credentials(**self._auth_header(self.trainee))
        res = self.client.get("/api/admin/submissions")
        self.assertEqual(res.status_code, 403)

    def test_viewer_can_read(self):
        self.client.credentials(**self._auth_header(self.viewer))
        res = self.client.get("/api/admin/records")
        self.assertEqual(res.status_code, 200)

    def test_viewer_cannot_write(self):
        self.client.credentials(**self._auth_header(self.viewer))
        res = self.client.post("/api/admin/tests", {"title": "X", "questions": []}, format="json")
        self.assertEqual(res.status_code, 403)
        res = self.client.post("/api/admin/submissions/1/retake")
        self.assertEqual(res.status_code, 403)

    def test_admin_hitting_trainee_endpoint_returns_403(self):
        self.client.credentials(**self._auth_header(self.admin))
        res = self.client.get("/api/trainee/tests")
        self.assertEqual(res.status_code, 403)
