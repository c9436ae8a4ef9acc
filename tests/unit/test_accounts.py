"""
Unit Tests - Accounts
"""
import json
from datetime import timedelta

import httpx
import pytest

from storefront.config.settings import EmailSettings
from storefront.integrations.email import EmailService
from storefront.services.accounts import (
    AccountService,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from storefront.services.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed

CUSTOMER_PASSWORD = "secret123"


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("hunter22")

        assert hashed != "hunter22"
        assert verify_password("hunter22", hashed)
        assert not verify_password("hunter23", hashed)

    def test_malformed_hash(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")


class TestTokens:
    def test_claims(self, customer):
        claims = decode_access_token(create_access_token(customer))

        assert claims["sub"] == str(customer.id)
        assert claims["email"] == "jane@example.com"
        assert claims["is_admin"] is False

    def test_expired(self, customer):
        token = create_access_token(customer, expires_delta=timedelta(seconds=-1))

        with pytest.raises(Unauthorized):
            decode_access_token(token)

    def test_garbage(self):
        with pytest.raises(Unauthorized):
            decode_access_token("not.a.token")


class TestAccountService:
    async def test_register(self, db):
        user, token = await AccountService(db).register(
            email="New.User@Example.com",
            password="s3cret!",
            first_name="New",
            last_name="User",
        )

        assert user.email == "new.user@example.com"
        assert decode_access_token(token)["sub"] == str(user.id)

    async def test_register_duplicate(self, db):
        with pytest.raises(Conflict):
            await AccountService(db).register(
                email="jane@example.com", password="another1", first_name="J", last_name="D"
            )

    async def test_register_short_password(self, db):
        with pytest.raises(ValidationFailed):
            await AccountService(db).register(
                email="x@example.com", password="12345", first_name="X", last_name="Y"
            )

    async def test_register_sends_welcome(self, db):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        mailer = EmailService(
            settings=EmailSettings(enabled=True, RESEND_API_KEY="re_test"),
            transport=httpx.MockTransport(handler),
        )
        await AccountService(db, mailer).register(
            email="welcome@example.com", password="secret1", first_name="Wes", last_name="L"
        )

        [request] = sent
        assert request.headers["Authorization"] == "Bearer re_test"
        assert b"welcome@example.com" in request.content

    async def test_welcome_escapes_name(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "email-2"})

        mailer = EmailService(
            settings=EmailSettings(enabled=True, RESEND_API_KEY="re_test"),
            transport=httpx.MockTransport(handler),
        )
        await mailer.send_welcome("mallory@example.com", '<img src=x onerror="alert(1)">')

        [payload] = sent
        assert "<img" not in payload["html"]
        assert "&lt;img src=x onerror=&quot;alert(1)&quot;&gt;" in payload["html"]

    async def test_failed_email_does_not_block_registration(self, db):
        mailer = EmailService(
            settings=EmailSettings(enabled=True, RESEND_API_KEY="re_test"),
            transport=httpx.MockTransport(lambda r: httpx.Response(500)),
        )

        user, _ = await AccountService(db, mailer).register(
            email="resilient@example.com", password="secret1", first_name="R", last_name="S"
        )

        assert user.id is not None

    async def test_login(self, db):
        user, token = await AccountService(db).login("JANE@example.com", CUSTOMER_PASSWORD)

        assert user.email == "jane@example.com"
        assert token

    @pytest.mark.parametrize("email,password", [
        ("jane@example.com", "wrong-password"),
        ("nobody@example.com", CUSTOMER_PASSWORD),
    ])
    async def test_login_rejected(self, db, email, password):
        with pytest.raises(Unauthorized):
            await AccountService(db).login(email, password)

    async def test_update_profile(self, db, customer):
        user = await AccountService(db).update_profile(customer.id, phone="+27 21 555 0100")

        assert user.phone == "+27 21 555 0100"
        assert user.first_name == "Jane"

    async def test_update_profile_requires_a_field(self, db, customer):
        with pytest.raises(ValidationFailed):
            await AccountService(db).update_profile(customer.id)


class TestAddressBook:
    FIELDS = {
        "first_name": "Jane",
        "last_name": "Doe",
        "address_line_1": "1 Long Street",
        "city": "Cape Town",
        "postal_code": "8001",
        "country": "ZA",
    }

    async def test_new_default_unsets_previous(self, db, customer):
        accounts = AccountService(db)
        first = await accounts.add_address(customer.id, type="shipping", is_default=True, **self.FIELDS)
        billing = await accounts.add_address(customer.id, type="billing", is_default=True, **self.FIELDS)
        second = await accounts.add_address(customer.id, type="shipping", is_default=True, **self.FIELDS)

        addresses = {a.id: a for a in await accounts.list_addresses(customer.id)}

        assert not addresses[first.id].is_default
        assert addresses[second.id].is_default
        assert addresses[billing.id].is_default

    async def test_defaults_listed_first(self, db, customer):
        accounts = AccountService(db)
        await accounts.add_address(customer.id, type="shipping", **self.FIELDS)
        default = await accounts.add_address(customer.id, type="billing", is_default=True, **self.FIELDS)

        addresses = await accounts.list_addresses(customer.id)

        assert addresses[0].id == default.id

    async def test_update(self, db, customer):
        accounts = AccountService(db)
        address = await accounts.add_address(customer.id, type="shipping", **self.FIELDS)

        updated = await accounts.update_address(customer.id, address.id, city="Durban")

        assert updated.city == "Durban"

    async def test_delete_missing(self, db, customer):
        with pytest.raises(NotFound):
            await AccountService(db).delete_address(customer.id, 404)

    async def test_other_users_address(self, db, users):
        accounts = AccountService(db)
        address = await accounts.add_address(users["customer"].id, type="shipping", **self.FIELDS)

        with pytest.raises(NotFound):
            await accounts.update_address(users["admin"].id, address.id, city="Durban")

    async def test_invalid_type(self, db, customer):
        with pytest.raises(ValidationFailed):
            await AccountService(db).add_address(customer.id, type="pickup", **self.FIELDS)
