"""Tests for the user, client and enquiry services (in-memory SQLite)."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.domain.directory.clients import ClientService
from crmvault.domain.directory.enquiries import EnquiryService
from crmvault.domain.directory.users import UserService
from crmvault.infrastructure.database.models import Client, User
from crmvault.infrastructure.database.repositories import (
    UserClientRepository,
    UserHierarchyRepository,
    UserSearchIndexRepository,
)
from crmvault.shared.context import ActorContext, clear_actor_context, set_actor_context
from crmvault.shared.crypto import EncryptionContext
from crmvault.shared.exceptions import AccessDeniedError, ConflictError, NotFoundError


def _ids(records) -> set:
    return {record.id for record in records}


@pytest.fixture
def users(async_session: AsyncSession, encryption_context: EncryptionContext) -> UserService:
    return UserService(async_session, encryption_context)


@pytest.fixture
def clients(async_session: AsyncSession, encryption_context: EncryptionContext) -> ClientService:
    return ClientService(async_session, encryption_context)


@pytest.fixture
def enquiries(async_session: AsyncSession, encryption_context: EncryptionContext) -> EnquiryService:
    return EnquiryService(async_session, encryption_context)


async def _new_client(clients: ClientService, name: str, domains: list[str], owner=None):
    return await clients.create_client(
        package="gold",
        client_name=name,
        person_name="Jane Doe",
        address="1 Main St",
        phone="+1 555 0100",
        email=f"contact@{name.lower()}.test",
        domains=domains,
        city="Pune",
        assign_to=owner,
    )


async def _new_enquiry(enquiries: EnquiryService, company: str, domain: str):
    return await enquiries.submit(
        company_name=company,
        full_name="John Smith",
        email=f"john@{domain}",
        mobile="+1 555 0199",
        address="2 Side St",
        enquiry_details="Need a quote",
        domain=domain,
        ip_address="203.0.113.7",
        user_agent="pytest",
    )


class TestUserService:
    """Tests for UserService."""

    @pytest.mark.asyncio
    async def test_register_stores_ciphertext(self, async_session, users):
        record = await users.register("Alice@Example.com", "hash")

        stored = await async_session.get(User, record.id)
        assert "alice" not in stored.email_encrypted.lower()
        assert record.email == "Alice@Example.com"

    @pytest.mark.asyncio
    async def test_find_by_email_case_insensitive(self, users):
        record = await users.register("alice@example.com", "hash")
        await users.register("alicia@example.com", "hash")

        found = await users.find_by_email("ALICE@example.com")

        assert found is not None
        assert found.id == record.id
        assert await users.find_by_email("bob@example.com") is None

    @pytest.mark.asyncio
    async def test_prefix_sharing_emails_are_told_apart(self, users):
        """Both share every n-gram; decryption decides."""
        first = await users.register("alexander@example.com", "hash")
        second = await users.register("alexandra@example.com", "hash")

        assert (await users.find_by_email("alexander@example.com")).id == first.id
        assert (await users.find_by_email("alexandra@example.com")).id == second.id

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, users):
        await users.register("alice@example.com", "hash")

        with pytest.raises(ConflictError):
            await users.register(" Alice@example.com ", "hash")

    @pytest.mark.asyncio
    async def test_role_name_comes_from_role(self, users, make_role):
        role = await make_role("manager")

        record = await users.register("m@example.com", "hash", role.id)

        assert record.role_name == "manager"
        assert (await users.get_user(record.id)).email == "m@example.com"

    @pytest.mark.asyncio
    async def test_delete_user(self, async_session, users):
        manager = await users.register("manager@example.com", "hash")
        report = await users.register("report@example.com", "hash")
        hierarchy = UserHierarchyRepository(async_session)
        await hierarchy.add_edge(manager.id, report.id)

        await users.delete_user(report.id)

        assert await hierarchy.edges() == []
        assert await UserSearchIndexRepository(async_session).index_values(report.id, "email") == set()
        assert await users.find_by_email("report@example.com") is None
        with pytest.raises(NotFoundError):
            await users.delete_user(report.id)


class TestClientService:
    """Tests for ClientService."""

    @pytest.mark.asyncio
    async def test_create_encrypts_every_pii_field(self, async_session, clients, make_user):
        owner = await make_user("owner@example.com")
        record = await _new_client(clients, "Acme", ["https://www.acme.io"], owner.id)

        row = await async_session.get(Client, record.id)
        assert "Acme" not in row.client_name_encrypted
        assert "acme.io" not in row.domains_encrypted
        assert row.city == "Pune"
        assert record.domains == ("https://www.acme.io",)

    @pytest.mark.asyncio
    async def test_search_by_domain_respects_scope(self, async_session, clients, make_role, make_user):
        role = await make_role("sales")
        alice = await make_user("alice@example.com", role)
        bob = await make_user("bob@example.com", role)
        mine = await _new_client(clients, "Example", ["example.com"], alice.id)
        await _new_client(clients, "Examiner", ["examiner.org"], bob.id)

        found = await clients.search_by_domain("exam", actor_id=alice.id)

        assert _ids(found) == {mine.id}

    @pytest.mark.asyncio
    async def test_search_by_domain_reverifies_prefix(self, clients, make_role, make_user):
        admin = await make_user("root@example.com", await make_role("admin"))
        example = await _new_client(clients, "Example", ["https://example.com/home"])
        await _new_client(clients, "Examiner", ["examiner.org"])

        found = await clients.search_by_domain("example.c", actor_id=admin.id)

        assert _ids(found) == {example.id}
        assert await clients.search_by_domain("xyz", actor_id=admin.id) == []
        assert await clients.search_by_domain("ex", actor_id=admin.id) == []

    @pytest.mark.asyncio
    async def test_search_by_name(self, clients, make_role, make_user):
        admin = await make_user("root@example.com", await make_role("admin"))
        acme = await _new_client(clients, "Acme Corp", ["acme.io"])
        await _new_client(clients, "Acmeister", ["acmeister.io"])

        found = await clients.search_by_name("acme c", actor_id=admin.id)

        assert _ids(found) == {acme.id}

    @pytest.mark.asyncio
    async def test_get_client_enforces_scope(self, clients, make_role, make_user):
        role = await make_role("sales")
        alice = await make_user("alice@example.com", role)
        bob = await make_user("bob@example.com", role)
        record = await _new_client(clients, "Acme", ["acme.io"], alice.id)

        assert (await clients.get_client(record.id, actor_id=alice.id)).client_name == "Acme"
        with pytest.raises(AccessDeniedError):
            await clients.get_client(record.id, actor_id=bob.id)

    @pytest.mark.asyncio
    async def test_actor_defaults_to_request_context(self, clients, make_role, make_user):
        alice = await make_user("alice@example.com", await make_role("sales"))
        record = await _new_client(clients, "Acme", ["acme.io"], alice.id)

        set_actor_context(ActorContext(user_id=alice.id))
        try:
            assert _ids(await clients.list_clients()) == {record.id}
        finally:
            clear_actor_context()

    @pytest.mark.asyncio
    async def test_update_domains_reindexes(self, clients, make_role, make_user):
        admin = await make_user("root@example.com", await make_role("admin"))
        record = await _new_client(clients, "Acme", ["acme.io"])

        updated = await clients.update_domains(record.id, ["newdomain.com"])

        assert updated.domains == ("newdomain.com",)
        assert await clients.search_by_domain("acme", actor_id=admin.id) == []
        assert _ids(await clients.search_by_domain("newdo", actor_id=admin.id)) == {record.id}

    @pytest.mark.asyncio
    async def test_delete_client(self, async_session, clients, make_user):
        owner = await make_user("owner@example.com")
        record = await _new_client(clients, "Acme", ["acme.io"], owner.id)

        await clients.delete_client(record.id)

        assert await UserClientRepository(async_session).client_ids_for_user(owner.id) == set()
        with pytest.raises(NotFoundError):
            await clients.get_client(record.id, actor_id=owner.id)


class TestEnquiryService:
    """Tests for EnquiryService."""

    @pytest.mark.asyncio
    async def test_submit_and_search_unrestricted(self, enquiries, make_role, make_user):
        admin = await make_user("root@example.com", await make_role("admin"))
        first = await _new_enquiry(enquiries, "Example Ltd", "example.com")
        await _new_enquiry(enquiries, "Other Inc", "other.net")

        by_domain = await enquiries.search_by_domain("https://exam", actor_id=admin.id)
        by_name = await enquiries.search_by_company_name("example", actor_id=admin.id)

        assert _ids(by_domain) == {first.id}
        assert _ids(by_name) == {first.id}
        assert by_domain[0].ip_address == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_restricted_actor_sees_client_domains_only(
        self, clients, enquiries, make_role, make_user
    ):
        alice = await make_user("alice@example.com", await make_role("sales"))
        await _new_client(clients, "Example", ["https://www.example.com"], alice.id)
        visible = await _new_enquiry(enquiries, "Example Ltd", "example.com")
        await _new_enquiry(enquiries, "Examples Inc", "examples.com")
        await _new_enquiry(enquiries, "Other Inc", "other.net")

        listed = await enquiries.list_for_actor(actor_id=alice.id)
        searched = await enquiries.search_by_company_name("exampl", actor_id=alice.id)

        assert _ids(listed) == {visible.id}
        assert _ids(searched) == {visible.id}

    @pytest.mark.asyncio
    async def test_unrestricted_lists_everything(self, enquiries, make_role, make_user):
        employee = await make_user("e@example.com", await make_role("employee"))
        first = await _new_enquiry(enquiries, "Example Ltd", "example.com")
        second = await _new_enquiry(enquiries, "Other Inc", "other.net")

        assert _ids(await enquiries.list_for_actor(actor_id=employee.id)) == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_actor_without_clients_sees_nothing(self, enquiries, make_role, make_user):
        alice = await make_user("alice@example.com", await make_role("sales"))
        await _new_enquiry(enquiries, "Example Ltd", "example.com")

        assert await enquiries.list_for_actor(actor_id=alice.id) == []

    @pytest.mark.asyncio
    async def test_out_of_scope_enquiries_are_never_decrypted(
        self, clients, enquiries, make_role, make_user, monkeypatch
    ):
        alice = await make_user("alice@example.com", await make_role("sales"))
        await _new_client(clients, "Example", ["example.com"], alice.id)
        await _new_enquiry(enquiries, "Other Example", "example.com")
        await enquiries.submit(
            company_name="Other Inc",
            full_name="Secret Person",
            email="secret@other.net",
            mobile="+1 555 0142",
            address="3 Hidden Rd",
            enquiry_details="Private",
            domain="other.net",
        )
        opened: list[str] = []
        decrypt = enquiries.cipher.decrypt

        def recording_decrypt(envelope: str) -> str:
            plaintext = decrypt(envelope)
            opened.append(plaintext)
            return plaintext

        monkeypatch.setattr(enquiries.cipher, "decrypt", recording_decrypt)

        found = await enquiries.search_by_company_name("other", actor_id=alice.id)

        assert [r.company_name for r in found] == ["Other Example"]
        assert "Other Inc" not in opened
        assert "Secret Person" not in opened
        assert "secret@other.net" not in opened
