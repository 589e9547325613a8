"""
Pytest configuration for the data-access tests.

Why: Force AnyIO to use the asyncio backend; every adapter operation is a
coroutine and the tests run them through the AnyIO pytest plugin.
"""
import pytest

from manabee.identity_access.auth_service import AuthService
from manabee.identity_access.domain import IdentityRecord, Role
from manabee.storage.facade import Storage
from manabee.storage.local_adapter import LocalBackendAdapter
from manabee.storage.local_store import LocalStore
from manabee.storage.remote_supabase import SupabaseBackendAdapter
from manabee.tests.fake_supabase import FakeSupabaseClient


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store() -> LocalStore:
    return LocalStore()


@pytest.fixture
def local(store: LocalStore) -> LocalBackendAdapter:
    return LocalBackendAdapter(store)


@pytest.fixture
def seeded_store() -> LocalStore:
    """Store with one account per role; the tutor still has an initial password."""
    s = LocalStore()
    s.set(
        "manabee_users_v2",
        [
            {"id": "t1", "name": "Tutor", "role": "TUTOR", "email": "tutor@x.com", "password": "123", "isInitialPassword": True},
            {"id": "s1", "name": "Student", "role": "STUDENT", "email": "student@x.com"},
            {"id": "g1", "name": "Guardian", "role": "GUARDIAN", "email": "parent@x.com", "password": "pw-guard", "isInitialPassword": False},
            {"id": "a1", "name": "Admin", "role": "ADMIN", "email": "admin@x.com", "password": "pw-admin", "isInitialPassword": False},
        ],
    )
    return s


@pytest.fixture
def seeded_local(seeded_store: LocalStore) -> LocalBackendAdapter:
    return LocalBackendAdapter(seeded_store)


@pytest.fixture
def auth(seeded_local: LocalBackendAdapter) -> AuthService:
    return AuthService(Storage(seeded_local))


@pytest.fixture
def fake_client() -> FakeSupabaseClient:
    client = FakeSupabaseClient()
    client.add_profile(id="t1", name="Tutor", role="TUTOR", email="tutor@x.com", password="123", initial=True)
    client.add_profile(id="s1", name="Student", role="STUDENT", email="student@x.com")
    client.add_profile(id="a1", name="Admin", role="ADMIN", email="admin@x.com", password="pw-admin")
    return client


@pytest.fixture
def remote(fake_client: FakeSupabaseClient) -> SupabaseBackendAdapter:
    return SupabaseBackendAdapter(fake_client)


@pytest.fixture
def tutor() -> IdentityRecord:
    return IdentityRecord(id="t1", name="Tutor", role=Role.TUTOR, email="tutor@x.com")
