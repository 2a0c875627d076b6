"""
Integration tests for the dispatch HTTP API.

These tests walk an emergency through its whole life over HTTP, from
creation through hospital acceptance and driver assignment to
completion, and check role gating and the error envelope.  The tests
use Django REST Framework's APIClient within the APITestCase base
class.
"""
import uuid

from django.test import override_settings
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from dispatch.models import AuditEvent, Driver, EmergencyRequest, Hospital, User


@override_settings(DISPATCH_BROADCAST_INLINE=True)
class DispatchAPITests(APITestCase):
    def setUp(self) -> None:
        """Create a requester, one nearby hospital and two drivers."""
        self.requester = User.objects.create_user(username="user1", password="P@ssw0rd1", role="user")
        self.hospital_user = User.objects.create_user(username="hospital1", password="P@ssw0rd1", role="hospital")
        self.hospital = Hospital.objects.create(
            user=self.hospital_user, name="SF General", address="1001 Potrero Ave",
            latitude=37.7849, longitude=-122.4294, max_capacity=5,
        )
        self.driver_user = User.objects.create_user(username="driver1", password="P@ssw0rd1", role="driver")
        self.driver = Driver.objects.create(user=self.driver_user, license_number="LIC-1", is_approved=True)
        self.pending_driver_user = User.objects.create_user(username="driver2", password="P@ssw0rd1", role="driver")
        self.pending_driver = Driver.objects.create(user=self.pending_driver_user, license_number="LIC-2")

    def authenticate(self, user: User) -> APIClient:
        """Return an authenticated APIClient for the given user."""
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def create_emergency(self, **overrides):
        body = {"pickupLatitude": 37.7749, "pickupLongitude": -122.4194,
                "pickupAddress": "Market St", "medicalNotes": "chest pain"}
        body.update(overrides)
        return self.authenticate(self.requester).post("/api/user/emergency", body, format="json")

    def test_login_issues_tokens_and_profile(self):
        client = APIClient()
        response = client.post("/api/auth/login", {"username": "hospital1", "password": "P@ssw0rd1"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["token"])
        self.assertTrue(response.data["jwt_access"])
        self.assertEqual(response.data["user"]["hospitalId"], str(self.hospital.id))
        # both token kinds authenticate
        client.credentials(HTTP_AUTHORIZATION=f"Token {response.data['token']}")
        self.assertEqual(client.get("/api/hospital/emergency/pending").status_code, status.HTTP_200_OK)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['jwt_access']}")
        self.assertEqual(client.get("/api/hospital/emergency/pending").status_code, status.HTTP_200_OK)

    def test_login_rejects_bad_password(self):
        response = APIClient().post("/api/auth/login", {"username": "user1", "password": "nope"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["ok"])
        self.assertTrue(AuditEvent.objects.filter(action="login", detail__result="fail").exists())

    def test_full_dispatch_flow(self):
        response = self.create_emergency()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        request_id = response.data["data"]["requestId"]
        self.assertEqual(response.data["data"]["status"], "pending")

        hospital = self.authenticate(self.hospital_user)
        pending = hospital.get("/api/hospital/emergency/pending").data["data"]
        self.assertEqual([p["requestId"] for p in pending], [request_id])

        response = hospital.post(f"/api/hospital/emergency/{request_id}/accept")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], "accepted")
        self.assertEqual([d["id"] for d in response.data["data"]["availableDrivers"]], [str(self.driver.id)])

        response = hospital.post(f"/api/hospital/emergency/{request_id}/assign",
                                 {"driverId": str(self.driver.id)}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        assignment_id = response.data["data"]["assignmentId"]

        driver = self.authenticate(self.driver_user)
        current = driver.get("/api/driver/assignment/current").data["data"]
        self.assertEqual(current["assignmentId"], assignment_id)

        for step in ("en_route", "arrived", "completed"):
            response = driver.put(f"/api/driver/assignment/{assignment_id}/status", {"status": step}, format="json")
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data["data"]["status"], step)

        body = self.authenticate(self.requester).get(f"/api/user/emergency/{request_id}").data["data"]
        self.assertEqual(body["status"], "completed")
        self.assertEqual(body["hospital"]["id"], str(self.hospital.id))
        self.assertIsNone(driver.get("/api/driver/assignment/current").data["data"])
        self.driver.refresh_from_db()
        self.assertTrue(self.driver.is_available)

    def test_second_accept_returns_conflict_envelope(self):
        request_id = self.create_emergency().data["data"]["requestId"]
        hospital = self.authenticate(self.hospital_user)
        hospital.post(f"/api/hospital/emergency/{request_id}/accept")
        response = hospital.post(f"/api/hospital/emergency/{request_id}/accept")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {"ok": False, "error": {
            "code": "conflict", "message": "emergency request is no longer pending"}})

    def test_skipped_step_is_conflict(self):
        request_id = self.create_emergency().data["data"]["requestId"]
        hospital = self.authenticate(self.hospital_user)
        hospital.post(f"/api/hospital/emergency/{request_id}/accept")
        assignment_id = hospital.post(f"/api/hospital/emergency/{request_id}/assign",
                                      {"driverId": str(self.driver.id)}, format="json").data["data"]["assignmentId"]
        driver = self.authenticate(self.driver_user)
        response = driver.put(f"/api/driver/assignment/{assignment_id}/status", {"status": "arrived"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = driver.put(f"/api/driver/assignment/{assignment_id}/status", {"status": "flying"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_coordinates_rejected(self):
        response = self.create_emergency(pickupLatitude=123)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["ok"])
        self.assertFalse(EmergencyRequest.objects.exists())

    def test_cancel_and_history(self):
        first = self.create_emergency().data["data"]["requestId"]
        second = self.create_emergency(pickupAddress="Mission St").data["data"]["requestId"]
        client = self.authenticate(self.requester)
        response = client.post(f"/api/user/emergency/{first}/cancel")
        self.assertEqual(response.data["data"]["status"], "cancelled")
        response = client.get("/api/user/emergency/history", {"page": 1, "pageSize": 1})
        self.assertEqual(response.data["pagination"], {"total": 2, "page": 1, "pageSize": 1})
        self.assertEqual(response.data["data"][0]["requestId"], second)
        response = client.get("/api/user/emergency/history", {"pageSize": 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_nearby_hospitals(self):
        client = self.authenticate(self.requester)
        response = client.get("/api/hospitals/nearby", {"latitude": 37.7749, "longitude": -122.4194})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        (candidate,) = response.data["data"]
        self.assertEqual(candidate["id"], str(self.hospital.id))
        self.assertTrue(1.40 <= candidate["distance"] <= 1.46)
        self.assertEqual(candidate["availability"], "Available")

        request_id = self.create_emergency().data["data"]["requestId"]
        response = client.get(f"/api/user/emergency/{request_id}/nearby-hospitals", {"maxDistance": 1})
        self.assertEqual(response.data["data"], [])

    def test_driver_registration_approval(self):
        hospital = self.authenticate(self.hospital_user)
        pending = hospital.get("/api/hospital/drivers", {"status": "pending"}).data["data"]
        self.assertEqual([d["id"] for d in pending], [str(self.pending_driver.id)])
        response = hospital.post(f"/api/hospital/drivers/{self.pending_driver.id}/approve")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pending_driver.refresh_from_db()
        self.assertTrue(self.pending_driver.is_approved)
        self.assertEqual(self.pending_driver.approved_by_id, self.hospital.id)
        response = hospital.post(f"/api/hospital/drivers/{self.pending_driver.id}/approve")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_driver_status_toggle(self):
        driver = self.authenticate(self.driver_user)
        response = driver.put("/api/driver/status", {"isAvailable": False}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["data"]["isAvailable"])

    def test_roles_are_enforced(self):
        self.assertEqual(self.authenticate(self.requester).get("/api/hospital/emergency/pending").status_code,
                         status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.authenticate(self.hospital_user).post("/api/user/emergency", {}, format="json")
                         .status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.authenticate(self.requester).put("/api/driver/status", {"isAvailable": True},
                                                               format="json").status_code,
                         status.HTTP_403_FORBIDDEN)
        self.assertEqual(APIClient().get("/api/user/emergency/history").status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_ids_are_not_found(self):
        client = self.authenticate(self.requester)
        response = client.get(f"/api/user/emergency/{uuid.uuid4()}")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "not_found")
        self.assertEqual(client.get("/api/user/emergency/not-a-uuid").status_code, status.HTTP_404_NOT_FOUND)

    def test_healthz(self):
        response = APIClient().get("/healthz")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.json()["db"])
