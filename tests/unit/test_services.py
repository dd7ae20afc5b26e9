"""Tests for the REST services against an httpx.MockTransport."""

import json
from collections.abc import Callable
from datetime import date
from pathlib import Path

import httpx
import pytest

from src.api.auth import AuthService
from src.api.client import ApiClient
from src.api.presets import FALLBACK_JOB_ROLES, PresetService
from src.api.records import RecordsService
from src.api.users import UserService
from src.core.config import ApiConfig
from src.core.errors import AuthError, NetworkError, ServerError
from src.core.result import Err, Ok
from src.core.schemas import ApplicantFields, FilterCriteria

Handler = Callable[[httpx.Request], httpx.Response]

RECORD = {
    "_id": "r1",
    "fullName": "Alice Example",
    "email": "alice@example.com",
    "position": "QA Engineer",
    "company": "Acme",
    "annualCTC": 900000,
    "location": "Pune",
    "status": "Applied",
    "dateOfApplication": "2024-03-01T00:00:00.000Z",
}


def _client(handler: Handler) -> ApiClient:
    return ApiClient(ApiConfig(base_url="http://ats.test/api"), transport=httpx.MockTransport(handler))


def _fields() -> ApplicantFields:
    return ApplicantFields(
        full_name="Alice Example",
        email="alice@example.com",
        position="QA Engineer",
        company="Acme",
        annual_ctc=900000,
        location="Pune",
        date_of_application=date(2024, 3, 1),
    )


def _route(routes: dict[tuple[str, str], httpx.Response], seen: list[httpx.Request]) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return routes[(request.method, request.url.path)]

    return handler


# ---------------------------------------------------------------------------
# AuthService
# ---------------------------------------------------------------------------


class TestAuthService:
    async def test_login_success(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("POST", "/api/auth/login"): httpx.Response(
                200,
                json={"success": True, "token": "tok", "user": {"userid": "alice", "role": "admin"}},
            ),
        }
        async with _client(_route(routes, seen)) as client:
            result = await AuthService(client).login("alice", "pw")

        assert isinstance(result, Ok)
        assert result.value.token == "tok"
        assert result.value.principal.id == "alice"
        assert result.value.principal.role == "admin"
        assert json.loads(seen[0].content) == {"userid": "alice", "password": "pw"}

    async def test_login_rejected(self) -> None:
        routes = {
            ("POST", "/api/auth/login"): httpx.Response(
                401, json={"success": False, "message": "Invalid credentials"},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await AuthService(client).login("alice", "bad")

        assert isinstance(result, Err)
        assert isinstance(result.error, AuthError)
        assert result.error.message == "Invalid credentials"

    async def test_login_success_false_with_200(self) -> None:
        routes = {("POST", "/api/auth/login"): httpx.Response(200, json={"success": False})}
        async with _client(_route(routes, [])) as client:
            result = await AuthService(client).login("alice", "bad")
        assert isinstance(result, Err)
        assert result.error.message == "Login failed"

    async def test_login_missing_token_is_server_error(self) -> None:
        routes = {
            ("POST", "/api/auth/login"): httpx.Response(
                200, json={"success": True, "user": {"userid": "alice"}},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await AuthService(client).login("alice", "pw")
        assert isinstance(result, Err)
        assert isinstance(result.error, ServerError)

    async def test_health_probe(self) -> None:
        routes = {("GET", "/api/health"): httpx.Response(200, json={"status": "ok"})}
        async with _client(_route(routes, [])) as client:
            assert await AuthService(client).health_probe() is True

    async def test_health_probe_failure_is_false(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            assert await AuthService(client).health_probe() is False

    async def test_verify_sends_bearer(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("GET", "/api/auth/verify"): httpx.Response(
                200, json={"success": True, "user": {"userid": "bob", "role": "user"}},
            ),
        }
        async with _client(_route(routes, seen)) as client:
            auth = AuthService(client)
            auth.attach_token("tok")
            result = await auth.verify()

        assert isinstance(result, Ok)
        assert result.value.id == "bob"
        assert seen[0].headers["Authorization"] == "Bearer tok"

    async def test_verify_expired_token(self) -> None:
        routes = {("GET", "/api/auth/verify"): httpx.Response(401, json={"message": "Token expired"})}
        async with _client(_route(routes, [])) as client:
            result = await AuthService(client).verify()
        assert isinstance(result, Err)
        assert isinstance(result.error, AuthError)

    async def test_change_password(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("PUT", "/api/auth/change-password"): httpx.Response(
                200, json={"success": True, "message": "Password updated"},
            ),
        }
        async with _client(_route(routes, seen)) as client:
            result = await AuthService(client).change_password("old", "newpass")

        assert result == Ok("Password updated")
        assert json.loads(seen[0].content) == {"currentPassword": "old", "newPassword": "newpass"}


# ---------------------------------------------------------------------------
# RecordsService
# ---------------------------------------------------------------------------


class TestRecordsService:
    async def test_list_records(self) -> None:
        routes = {("GET", "/api/applicants"): httpx.Response(200, json={"success": True, "data": [RECORD]})}
        async with _client(_route(routes, [])) as client:
            result = await RecordsService(client).list_records()

        assert isinstance(result, Ok)
        assert [r.id for r in result.value] == ["r1"]

    async def test_list_records_without_data(self) -> None:
        routes = {("GET", "/api/applicants"): httpx.Response(200, json={"success": True})}
        async with _client(_route(routes, [])) as client:
            assert await RecordsService(client).list_records() == Ok([])

    async def test_list_records_malformed_entry(self) -> None:
        routes = {
            ("GET", "/api/applicants"): httpx.Response(
                200, json={"data": [{**RECORD, "status": "Ghosted"}]},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await RecordsService(client).list_records()
        assert isinstance(result, Err)
        assert isinstance(result.error, ServerError)

    async def test_create_record_multipart(self, tmp_path: Path) -> None:
        resume = tmp_path / "cv.pdf"
        resume.write_bytes(b"%PDF-1.7\n")
        seen: list[httpx.Request] = []
        routes = {("POST", "/api/applicants"): httpx.Response(201, json={"data": RECORD})}

        async with _client(_route(routes, seen)) as client:
            result = await RecordsService(client).create_record(_fields(), resume)

        assert isinstance(result, Ok)
        assert result.value.id == "r1"
        body = seen[0].read()
        assert seen[0].headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="fullName"' in body
        assert b'filename="cv.pdf"' in body
        assert b"%PDF-1.7" in body

    async def test_update_record_without_resume(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("PUT", "/api/applicants/r1"): httpx.Response(
                200, json={"data": {**RECORD, "status": "Hired"}},
            ),
        }
        async with _client(_route(routes, seen)) as client:
            result = await RecordsService(client).update_record("r1", _fields())

        assert isinstance(result, Ok)
        assert result.value.status == "Hired"
        assert b"fullName=Alice+Example" in seen[0].read()

    async def test_delete_sends_admin_password(self) -> None:
        seen: list[httpx.Request] = []
        routes = {("DELETE", "/api/applicants/r1"): httpx.Response(200, json={"message": "Deleted"})}
        async with _client(_route(routes, seen)) as client:
            result = await RecordsService(client).delete_record("r1", "admin-pw")

        assert result == Ok("Deleted")
        assert json.loads(seen[0].content) == {"adminPassword": "admin-pw"}

    async def test_delete_wrong_password(self) -> None:
        routes = {
            ("DELETE", "/api/applicants/r1"): httpx.Response(
                403, json={"message": "Invalid admin password"},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await RecordsService(client).delete_record("r1", "nope")
        assert isinstance(result, Err)
        assert result.error.message == "Invalid admin password"

    async def test_export_passes_criteria(self, tmp_path: Path) -> None:
        seen: list[httpx.Request] = []
        routes = {("GET", "/api/applicants/export"): httpx.Response(200, content=b"xlsx")}
        destination = tmp_path / "export.xlsx"
        criteria = FilterCriteria(status="Hired", application_date=date(2024, 3, 1))

        async with _client(_route(routes, seen)) as client:
            result = await RecordsService(client).export_records(criteria, destination)

        assert result == Ok(destination)
        assert dict(seen[0].url.params) == {"status": "Hired", "applicationDate": "2024-03-01"}


# ---------------------------------------------------------------------------
# PresetService
# ---------------------------------------------------------------------------


class TestPresetService:
    async def test_lists(self) -> None:
        routes = {
            ("GET", "/api/companies"): httpx.Response(
                200, json={"success": True, "companies": [{"_id": "c1", "companyName": "Acme"}]},
            ),
            ("GET", "/api/positions"): httpx.Response(
                200, json={"success": True, "positions": [{"_id": "p1", "positionName": "QA Lead"}]},
            ),
        }
        async with _client(_route(routes, [])) as client:
            presets = PresetService(client)
            companies = await presets.list_companies()
            roles = await presets.job_roles()

        assert isinstance(companies, Ok)
        assert companies.value[0].company_name == "Acme"
        assert roles == ["QA Lead"]

    async def test_job_roles_fallback(self) -> None:
        routes = {("GET", "/api/positions"): httpx.Response(500, json={"message": "down"})}
        async with _client(_route(routes, [])) as client:
            roles = await PresetService(client).job_roles()
        assert roles == list(FALLBACK_JOB_ROLES)
        assert len(roles) == 15

    async def test_wrong_shape(self) -> None:
        routes = {("GET", "/api/companies"): httpx.Response(200, json={"success": False})}
        async with _client(_route(routes, [])) as client:
            result = await PresetService(client).list_companies()
        assert isinstance(result, Err)
        assert result.error.message == "Invalid response format for companies"

    async def test_create_company_and_position(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("POST", "/api/companies"): httpx.Response(201, json={"success": True}),
            ("POST", "/api/positions"): httpx.Response(
                201, json={"success": True, "message": "Position added"},
            ),
        }
        async with _client(_route(routes, seen)) as client:
            presets = PresetService(client)
            company = await presets.create_company("Globex")
            position = await presets.create_position("SRE")

        assert company == Ok("Company created successfully")
        assert position == Ok("Position added")
        assert json.loads(seen[0].content) == {"companyName": "Globex"}
        assert json.loads(seen[1].content) == {"positionName": "SRE"}

    async def test_update_and_delete_by_id(self) -> None:
        seen: list[httpx.Request] = []
        routes = {
            ("PUT", "/api/companies/c1"): httpx.Response(200, json={"success": True}),
            ("DELETE", "/api/positions/p1"): httpx.Response(200, json={"success": True}),
        }
        async with _client(_route(routes, seen)) as client:
            presets = PresetService(client)
            updated = await presets.update_company("c1", "Initech")
            deleted = await presets.delete_position("p1")

        assert updated == Ok("Company updated successfully")
        assert deleted == Ok("Position deleted successfully")
        assert json.loads(seen[0].content) == {"companyName": "Initech"}

    async def test_duplicate_name_rejected(self) -> None:
        routes = {
            ("POST", "/api/companies"): httpx.Response(
                409, json={"success": False, "message": "Company already exists"},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await PresetService(client).create_company("Acme")

        assert isinstance(result, Err)
        assert isinstance(result.error, ServerError)
        assert result.error.message == "Company already exists"


# ---------------------------------------------------------------------------
# UserService
# ---------------------------------------------------------------------------


class TestUserService:
    async def test_list_users(self) -> None:
        routes = {
            ("GET", "/api/users"): httpx.Response(
                200, json={"users": [{"userid": "alice", "role": "admin"}, {"userid": "bob", "role": "user"}]},
            ),
        }
        async with _client(_route(routes, [])) as client:
            result = await UserService(client).list_users()

        assert isinstance(result, Ok)
        assert [(u.userid, u.role) for u in result.value] == [("alice", "admin"), ("bob", "user")]

    async def test_create_user(self) -> None:
        seen: list[httpx.Request] = []
        routes = {("POST", "/api/users"): httpx.Response(201, json={"message": "Created"})}
        async with _client(_route(routes, seen)) as client:
            result = await UserService(client).create_user("carol", "pw123456", "Admin")

        assert result == Ok("Created")
        assert json.loads(seen[0].content) == {"userid": "carol", "password": "pw123456", "role": "admin"}

    async def test_create_user_bad_role(self) -> None:
        async with _client(_route({}, [])) as client:
            with pytest.raises(ValueError):
                await UserService(client).create_user("carol", "pw", "owner")

    async def test_update_user_only_given_fields(self) -> None:
        seen: list[httpx.Request] = []
        routes = {("PUT", "/api/users/bob"): httpx.Response(200, json={})}
        async with _client(_route(routes, seen)) as client:
            result = await UserService(client).update_user("bob", role="admin")

        assert result == Ok("User updated successfully")
        assert json.loads(seen[0].content) == {"role": "admin"}

    async def test_delete_user_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        async with _client(handler) as client:
            result = await UserService(client).delete_user("bob")
        assert isinstance(result, Err)
        assert isinstance(result.error, NetworkError)
