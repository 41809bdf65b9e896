"""
Tests for the role capability table, token handling and password auth.
"""
import unittest
import uuid
from datetime import timedelta

from tests._support import PASSWORD, DatabaseTestCase

from homestay.core.config import get_settings
from homestay.core.errors import AuthenticationError, ConflictError, ValidationError
from homestay.core.permissions import ROLE_CAPABILITIES, Capability, has_capability
from homestay.core.security import (
    ACCESS_TOKEN,
    PASSWORD_RESET_TOKEN,
    REFRESH_TOKEN,
    _create_token,
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from homestay.models import Role
from homestay.schemas.user import UserCreate
from homestay.services.users import UserService

settings = get_settings()


class PermissionTableTests(unittest.TestCase):
    def test_admin_has_every_capability(self):
        for capability in Capability:
            self.assertTrue(has_capability(Role.ADMIN, capability), capability)

    def test_every_role_is_mapped(self):
        self.assertEqual(set(ROLE_CAPABILITIES), set(Role))

    def test_cleaner_is_limited_to_cleaning_work(self):
        self.assertTrue(has_capability(Role.CLEANER, Capability.CLEANINGS_WORK))
        self.assertTrue(has_capability(Role.CLEANER, Capability.UPLOADS_WRITE))
        for capability in (
            Capability.RESERVATIONS_READ,
            Capability.DEPOSITS_MANAGE,
            Capability.GUESTS_READ,
            Capability.FINANCE_READ,
            Capability.CLEANINGS_MANAGE,
        ):
            self.assertFalse(has_capability(Role.CLEANER, capability), capability)

    def test_finance_reads_and_approves_but_does_not_book(self):
        self.assertTrue(has_capability(Role.FINANCE, Capability.FINANCE_APPROVE))
        self.assertTrue(has_capability(Role.FINANCE, Capability.DEPOSITS_LEDGER))
        self.assertFalse(has_capability(Role.FINANCE, Capability.RESERVATIONS_WRITE))
        self.assertFalse(has_capability(Role.FINANCE, Capability.DEPOSITS_OVERRIDE))

    def test_agent_books_but_cannot_override(self):
        self.assertTrue(has_capability(Role.AGENT, Capability.RESERVATIONS_WRITE))
        self.assertTrue(has_capability(Role.AGENT, Capability.DEPOSITS_MANAGE))
        self.assertFalse(has_capability(Role.AGENT, Capability.CHECKIN_OVERRIDE))
        self.assertFalse(has_capability(Role.AGENT, Capability.RESERVATIONS_DELETE))
        self.assertFalse(has_capability(Role.AGENT, Capability.USERS_MANAGE))


class TokenTests(unittest.TestCase):
    def setUp(self):
        self.user_id = uuid.uuid4()

    def test_access_token_round_trip(self):
        token = create_access_token(self.user_id)
        self.assertEqual(decode_token(token, settings.jwt_secret, ACCESS_TOKEN), self.user_id)

    def test_refresh_token_uses_its_own_secret(self):
        token = create_refresh_token(self.user_id)
        self.assertEqual(decode_token(token, settings.jwt_refresh_secret, REFRESH_TOKEN), self.user_id)
        with self.assertRaises(AuthenticationError):
            decode_token(token, settings.jwt_secret, REFRESH_TOKEN)

    def test_token_type_is_enforced(self):
        reset = create_password_reset_token(self.user_id)
        with self.assertRaises(AuthenticationError) as ctx:
            decode_token(reset, settings.jwt_secret, ACCESS_TOKEN)
        self.assertEqual(ctx.exception.message, "Invalid token type")
        self.assertEqual(decode_token(reset, settings.jwt_secret, PASSWORD_RESET_TOKEN), self.user_id)

    def test_expired_token(self):
        token = _create_token(self.user_id, ACCESS_TOKEN, settings.jwt_secret, timedelta(seconds=-30))
        with self.assertRaises(AuthenticationError) as ctx:
            decode_token(token, settings.jwt_secret, ACCESS_TOKEN)
        self.assertEqual(ctx.exception.message, "Token has expired")

    def test_garbage_token(self):
        with self.assertRaises(AuthenticationError) as ctx:
            decode_token("not-a-token", settings.jwt_secret, ACCESS_TOKEN)
        self.assertEqual(ctx.exception.message, "Invalid authentication token")


class PasswordTests(unittest.TestCase):
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-password")
        self.assertNotEqual(hashed, "s3cret-password")
        self.assertTrue(verify_password("s3cret-password", hashed))
        self.assertFalse(verify_password("wrong-password", hashed))

    def test_malformed_hash_does_not_verify(self):
        self.assertFalse(verify_password("anything", "not-a-bcrypt-hash"))


class UserServiceAuthTests(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.service = UserService(self.db)
        self.user = await self.make_user(Role.AGENT, email="agent@homestay.com")

    async def test_authenticate_sets_last_login(self):
        user = await self.service.authenticate("Agent@Homestay.com", PASSWORD)
        self.assertEqual(user.id, self.user.id)
        self.assertIsNotNone(user.last_login_at)

    async def test_authenticate_failures_look_the_same(self):
        with self.assertRaises(AuthenticationError) as wrong:
            await self.service.authenticate("agent@homestay.com", "bad-password")
        with self.assertRaises(AuthenticationError) as unknown:
            await self.service.authenticate("nobody@homestay.com", PASSWORD)
        self.assertEqual(wrong.exception.message, unknown.exception.message)

        await self.service.deactivate(self.user.id, uuid.uuid4())
        with self.assertRaises(AuthenticationError):
            await self.service.authenticate("agent@homestay.com", PASSWORD)

    async def test_create_rejects_duplicate_email(self):
        with self.assertRaises(ConflictError):
            await self.service.create(
                UserCreate(name="Dup", email="agent@homestay.com", password="another-password")
            )

    async def test_cannot_deactivate_self(self):
        with self.assertRaises(ValidationError):
            await self.service.deactivate(self.user.id, self.user.id)

    async def test_refresh_issues_new_pair(self):
        _, refresh = self.service.issue_tokens(self.user)
        user, access, new_refresh = await self.service.refresh(refresh)
        self.assertEqual(user.id, self.user.id)
        self.assertEqual(decode_token(access, settings.jwt_secret, ACCESS_TOKEN), self.user.id)
        self.assertTrue(new_refresh)

    async def test_password_reset_flow(self):
        self.assertIsNone(await self.service.request_password_reset("nobody@homestay.com"))
        token = await self.service.request_password_reset("agent@homestay.com")
        self.assertIsNotNone(token)

        await self.service.reset_password(token, "brand-new-password")
        user = await self.service.authenticate("agent@homestay.com", "brand-new-password")
        self.assertEqual(user.id, self.user.id)

        with self.assertRaises(AuthenticationError):
            await self.service.reset_password(create_access_token(self.user.id), "another-password")


if __name__ == "__main__":
    unittest.main()
