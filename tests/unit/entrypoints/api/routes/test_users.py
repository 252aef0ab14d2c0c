"""Tests for admin user management routes."""

from fastapi.testclient import TestClient

from joymed.core.auth.types import Account


class TestListPending:
    """Test GET /api/users/pending."""

    def test_admin_lists_pending(
        self,
        admin_client: TestClient,
        admin_token: str,
        pending_doctor: Account,
        link_doctor: Account,
    ) -> None:
        """Should list only pending accounts."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.get("/api/users/pending")

        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [pending_doctor.id]

    def test_doctor_refused(self, admin_client: TestClient, doctor_token: str) -> None:
        """Should refuse doctor credentials."""
        admin_client.cookies.set("auth_token", doctor_token)

        response = admin_client.get("/api/users/pending")

        assert response.status_code == 403

    def test_anonymous(self, admin_client: TestClient) -> None:
        """Should require a credential."""
        assert admin_client.get("/api/users/pending").status_code == 401

    def test_link_tokens_ignored(self, admin_client: TestClient, link_doctor: Account) -> None:
        """Should never accept link tokens on the admin portal."""
        response = admin_client.get(
            "/api/users/pending", params={"token": link_doctor.link_token}
        )

        assert response.status_code == 401

    def test_not_on_doctor_portal(self, doctor_client: TestClient, admin_token: str) -> None:
        """Should not exist on the doctor portal."""
        doctor_client.cookies.set("auth_token", admin_token)

        assert doctor_client.get("/api/users/pending").status_code == 404


class TestValidate:
    """Test POST /api/users/{account_id}/validate."""

    def test_approve(
        self, admin_client: TestClient, admin_token: str, pending_doctor: Account
    ) -> None:
        """Should approve a pending account."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(
            f"/api/users/{pending_doctor.id}/validate", json={"status": "approved"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "approved"

    def test_unknown_status(
        self, admin_client: TestClient, admin_token: str, pending_doctor: Account
    ) -> None:
        """Should reject values outside the status enum."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(
            f"/api/users/{pending_doctor.id}/validate", json={"status": "maybe"}
        )

        assert response.status_code == 422

    def test_pending_is_not_a_decision(
        self, admin_client: TestClient, admin_token: str, pending_doctor: Account
    ) -> None:
        """Should reject pending as a target status."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(
            f"/api/users/{pending_doctor.id}/validate", json={"status": "pending"}
        )

        assert response.status_code == 422
        assert response.json()["detail"]["fields"] == {
            "status": "Status must be approved or rejected"
        }

    def test_already_decided(
        self, admin_client: TestClient, admin_token: str, rejected_doctor: Account
    ) -> None:
        """Should refuse to re-validate a rejected account."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(
            f"/api/users/{rejected_doctor.id}/validate", json={"status": "approved"}
        )

        assert response.status_code == 422


class TestRegenerateToken:
    """Test POST /api/users/{account_id}/regenerate-token."""

    def test_admin_regenerates(
        self,
        admin_client: TestClient,
        doctor_client: TestClient,
        admin_token: str,
        link_doctor: Account,
    ) -> None:
        """Should retire the old link for the doctor portal too."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(f"/api/users/{link_doctor.id}/regenerate-token")

        assert response.status_code == 200
        new_token = response.json()["linkToken"]
        assert new_token != link_doctor.link_token

        old = doctor_client.post(
            "/api/auth/identify-by-token", json={"token": link_doctor.link_token}
        )
        new = doctor_client.post("/api/auth/identify-by-token", json={"token": new_token})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_password_mode_account(
        self, admin_client: TestClient, admin_token: str, password_doctor: Account
    ) -> None:
        """Should refuse accounts without link access."""
        admin_client.cookies.set("auth_token", admin_token)

        response = admin_client.post(f"/api/users/{password_doctor.id}/regenerate-token")

        assert response.status_code == 422
