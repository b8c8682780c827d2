"""
HTTP API tests for the referral network.

Authentication and hospital registration run through the real login flow
inside an ``APITestCase``; the referral endpoints use
``APIClient.force_authenticate`` with the shared fixtures.

To run the tests:

```
pytest -q hospitals/tests
```
"""
import pytest
from django.urls import reverse
from rest_framework.test import APIClient, APITestCase

from hospitals.models import Hospital, Notification, Referral, ResourceSnapshot, User


class AccountAndRegistrationTests(APITestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.existing = Hospital.objects.create(id="REG-EXIST", name="Existing Hospital", location="Old Town")
        ResourceSnapshot.objects.create(hospital=self.existing, data={"beds": {"total": 5, "occupied": 1}})

    def _signup(self, username="nurse1", password="Str0ng!Pass"):
        return self.client.post(reverse("signup_view"), {"username": username, "password": password}, format="json")

    def test_signup_returns_tokens_and_no_binding(self):
        r = self._signup()
        self.assertEqual(r.status_code, 201)
        self.assertTrue(r.data["token"])
        self.assertTrue(r.data["jwt_access"])
        self.assertIsNone(r.data["hospitalBinding"])

    def test_signup_rejects_duplicate_username(self):
        self._signup()
        r = self._signup()
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.data["ok"])

    def test_login_success_and_failure(self):
        User.objects.create_user(username="doc", password="Str0ng!Pass", hospital=self.existing)
        ok = self.client.post(reverse("login_view"), {"username": "doc", "password": "Str0ng!Pass"}, format="json")
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.data["hospitalBinding"]["hospitalId"], "REG-EXIST")
        bad = self.client.post(reverse("login_view"), {"username": "doc", "password": "nope"}, format="json")
        self.assertEqual(bad.status_code, 400)
        self.assertFalse(bad.data["ok"])

    def test_jwt_refresh_and_logout(self):
        tokens = self._signup().data
        r = self.client.post(reverse("jwt_refresh_view"), {"refresh": tokens["jwt_refresh"]}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.data["jwt_access"])

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['jwt_access']}")
        r = self.client.post(reverse("jwt_logout_view"), {"refresh": tokens["jwt_refresh"]}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["blacklisted"], 1)

        self.client.credentials()
        r = self.client.post(reverse("jwt_refresh_view"), {"refresh": tokens["jwt_refresh"]}, format="json")
        self.assertEqual(r.status_code, 401)

    def test_hospital_scoped_endpoints_require_a_binding(self):
        token = self._signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        r = self.client.get("/api/resources")
        self.assertEqual(r.status_code, 403)

    def test_register_new_hospital_creates_default_snapshot(self):
        token = self._signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        r = self.client.post("/api/hospitals/register", {
            "registrationNumber": "REG-NEW-9",
            "name": "New Hope",
            "location": "Hilltop",
            "email": "desk@newhope.example",
        }, format="json")
        self.assertEqual(r.status_code, 201)
        self.assertTrue(r.data["created"])
        self.assertEqual(r.data["hospitalBinding"]["hospitalId"], "REG-NEW-9")
        snap = ResourceSnapshot.objects.get(hospital_id="REG-NEW-9")
        self.assertEqual(snap.data["oxygenCylinders"], {"available": 0})

        r = self.client.get("/api/resources")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["data"]["hospitalId"], "REG-NEW-9")

    def test_register_stores_hospital_fields_as_plain_text(self):
        token = self._signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        r = self.client.post("/api/hospitals/register", {
            "registrationNumber": "REG-PT-1",
            "name": "<b>Mercy</b> & Grace",
            "location": "Dock <script>alert(1)</script>Road",
        }, format="json")
        self.assertEqual(r.status_code, 201)
        hospital = Hospital.objects.get(id="REG-PT-1")
        self.assertEqual(hospital.name, "Mercy & Grace")
        self.assertNotIn("<", hospital.location)
        self.assertEqual(r.data["hospital"]["name"], "Mercy & Grace")

    def test_register_existing_number_links_user(self):
        token = self._signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        r = self.client.post("/api/hospitals/register", {"registrationNumber": "REG-EXIST"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertFalse(r.data["created"])
        self.assertEqual(User.objects.get(username="nurse1").hospital_id, "REG-EXIST")
        self.assertEqual(Hospital.objects.get(id="REG-EXIST").name, "Existing Hospital")

    def test_register_new_hospital_requires_a_name(self):
        token = self._signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        r = self.client.post("/api/hospitals/register", {"registrationNumber": "REG-X"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertFalse(Hospital.objects.filter(id="REG-X").exists())

    def test_healthz(self):
        r = self.client.get("/healthz")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["db"])


# ---------------------------------------------------------------------------
# Hospital-scoped endpoints
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.django_db


def _send(client, to_id, **resources):
    return client.post("/api/referrals/send", {
        "toHospitalId": to_id,
        "requiredSpecialist": "Orthopaedic surgeon",
        "resourcesRequested": resources,
    }, format="json")


def test_network_excludes_self_and_filters(sender_client, receiver, sender, make_hospital):
    make_hospital("REG-Z", "Zeta Ventilation Centre", location="Harbour", resources={
        "ventilators": {"total": 2, "occupied": 0},
    })
    r = sender_client.get("/api/hospitals/network")
    assert r.status_code == 200
    ids = [h["id"] for h in r.data["data"]]
    assert sender.id not in ids
    assert set(ids) == {"REG-A", "REG-Z"}

    # receiver's ventilators are all occupied
    r = sender_client.get("/api/hospitals/network", {"resource": "ventilators"})
    assert [h["id"] for h in r.data["data"]] == ["REG-Z"]

    r = sender_client.get("/api/hospitals/network", {"q": "harb"})
    assert [h["id"] for h in r.data["data"]] == ["REG-Z"]

    r = sender_client.get("/api/hospitals/network", {"resource": "helicopters"})
    assert r.status_code == 400


def test_hospital_detail(sender_client, receiver):
    r = sender_client.get(f"/api/hospitals/{receiver.id}")
    assert r.status_code == 200
    assert r.data["data"]["resources"]["availability"]["bedsAvailable"] == 2
    assert sender_client.get("/api/hospitals/NOPE").status_code == 404


def test_resource_update_and_dashboard(receiver_client, receiver):
    r = receiver_client.post("/api/resources/update", {"path": "beds.total", "value": 20}, format="json")
    assert r.status_code == 200
    assert r.data["data"]["beds"]["total"] == 20

    r = receiver_client.post("/api/resources/update", {"path": "beds.colour", "value": 1}, format="json")
    assert r.status_code == 400

    r = receiver_client.get("/api/dashboard/overview")
    assert r.status_code == 200
    assert r.data["data"]["beds"]["available"] == 12
    assert r.data["hospitalName"] == "Alpha General"


def test_referral_round_trip_over_http(sender_client, receiver_client, sender, receiver):
    r = _send(sender_client, receiver.id, bed=2, bloodBank={"O+": 1})
    assert r.status_code == 201
    rid = r.data["referralId"]

    r = receiver_client.get("/api/referrals", {"direction": "incoming"})
    assert [i["referralId"] for i in r.data["data"]] == [rid]

    r = receiver_client.get(f"/api/referrals/{rid}")
    assert r.status_code == 200
    assert r.data["data"]["status"] == "pending"
    assert r.data["data"]["direction"] == "incoming"

    r = receiver_client.post(f"/api/referrals/{rid}/accept")
    assert r.status_code == 200
    assert r.data["data"]["status"] == "accepted"

    r = receiver_client.post(f"/api/referrals/{rid}/accept")
    assert r.status_code == 409
    assert r.data["code"] == "invalid_transition"

    r = sender_client.get(f"/api/referrals/{rid}/status")
    assert r.data["status"] == "accepted"

    r = sender_client.get("/api/notifications")
    assert r.data["unread"] == 1
    assert r.data["data"][0]["title"] == "Referral Accepted"


def test_sender_cannot_accept_and_outsiders_cannot_read(sender_client, sender, receiver, make_hospital, make_staff):
    rid = _send(sender_client, receiver.id, bed=1).data["referralId"]
    r = sender_client.post(f"/api/referrals/{rid}/accept")
    assert r.status_code == 403

    outsider = APIClient()
    outsider.force_authenticate(user=make_staff("gamma", make_hospital("REG-G")))
    assert outsider.get(f"/api/referrals/{rid}").status_code == 403
    assert outsider.post(f"/api/referrals/{rid}/reject").status_code == 403
    assert Referral.objects.get(referral_id=rid).status == "pending"


def test_accept_shortage_reports_breakdown(sender_client, receiver_client, receiver):
    rid = _send(sender_client, receiver.id, bed=5).data["referralId"]
    r = receiver_client.post(f"/api/referrals/{rid}/accept")
    assert r.status_code == 400
    assert r.data["shortages"] == [{"resource": "bed", "label": "Beds", "requested": 5, "available": 2}]
    assert Referral.objects.get(referral_id=rid).status == "pending"


def test_send_validation_errors(sender_client, receiver, sender):
    r = _send(sender_client, receiver.id)
    assert r.status_code == 400
    assert r.data["code"] == "empty_request"

    r = _send(sender_client, receiver.id, bloodBank={"Z+": 1})
    assert r.status_code == 400

    r = _send(sender_client, sender.id, bed=1)
    assert r.status_code == 400
    assert r.data["code"] == "self_referral"

    r = _send(sender_client, "REG-UNKNOWN", bed=1)
    assert r.status_code == 404
    assert not Referral.objects.exists()


def test_reject_over_http(sender_client, receiver_client, receiver):
    rid = _send(sender_client, receiver.id, icuBeds=1).data["referralId"]
    r = receiver_client.post(f"/api/referrals/{rid}/reject")
    assert r.status_code == 200
    assert r.data["data"]["status"] == "rejected"
    assert ResourceSnapshot.objects.get(hospital=receiver).data["icuBeds"] == {"total": 4, "occupied": 1}


def test_notifications_read_and_alert(sender_client, receiver_client, receiver):
    rid = _send(sender_client, receiver.id, bed=1).data["referralId"]
    r = receiver_client.get("/api/notifications", {"unreadOnly": "true"})
    assert [n["referralId"] for n in r.data["data"]] == [rid]

    r = receiver_client.post("/api/notifications/read", {"referralId": rid}, format="json")
    assert r.data["updated"] == 1

    r = receiver_client.post("/api/notifications/alert", {
        "type": "critical", "title": "Generator failure", "message": "Running on backup power",
    }, format="json")
    assert r.status_code == 201
    assert Notification.objects.filter(hospital=receiver, type="critical", read=False).count() == 1
    r = receiver_client.get("/api/notifications")
    assert r.data["unread"] == 1
    assert r.data["data"][0]["title"] == "Generator failure"


def test_alert_can_be_marked_read_by_id(receiver_client, sender_client, receiver, sender):
    r = receiver_client.post("/api/notifications/alert", {"type": "warning", "title": "Oxygen delivery late"}, format="json")
    alert_id = r.data["data"]["id"]
    assert receiver_client.get("/api/notifications").data["unread"] == 1

    # another hospital cannot touch this inbox entry
    r = sender_client.post("/api/notifications/read", {"notificationId": alert_id}, format="json")
    assert r.data["updated"] == 0
    assert Notification.objects.get(id=alert_id).read is False

    r = receiver_client.post("/api/notifications/read", {"notificationId": alert_id}, format="json")
    assert r.status_code == 200
    assert r.data["updated"] == 1
    assert r.data["unread"] == 0
    assert receiver_client.get("/api/notifications").data["unread"] == 0


def test_mark_read_requires_a_target(receiver_client, receiver):
    r = receiver_client.post("/api/notifications/read", {}, format="json")
    assert r.status_code == 400
