"""
Tests for request payload format rules.

Covers password strength, scope code, phone number and roll number formats
on the create, update and password change payloads.
"""
from uuid import uuid4

import pytest
from pydantic import ValidationError

from app.core.security import validate_password_strength
from app.domain.schemas.auth import PasswordChangeRequest
from app.domain.schemas.user import UserCreate, UserRead, UserUpdate


def create_payload(**overrides) -> dict:
    data = {
        "email": "pupil@edulingua.org",
        "username": "pupil",
        "name": "Pupil",
        "password": "Pupil@1234",
        "roles": ["STUDENT"],
        "state_code": "KA",
        "district_code": "BLR",
        "school_code": "SCH-001",
        "class_code": "10A",
    }
    data.update(overrides)
    return data


class TestPasswordStrength:
    """Password rules shared by account creation and password change."""

    @pytest.mark.parametrize(
        "password, message",
        [
            ("Ab1@", "at least 8 characters"),
            ("Pupil @1234", "whitespace"),
            ("pupil@1234", "uppercase"),
            ("PUPIL@1234", "lowercase"),
            ("Pupil@abcd", "number"),
            ("Pupil12345", "special character"),
        ],
    )
    def test_weak_passwords(self, password, message):
        with pytest.raises(ValueError, match=message):
            validate_password_strength(password)

    def test_strong_password_returned_unchanged(self):
        assert validate_password_strength("Pupil@1234") == "Pupil@1234"

    def test_create_rejects_weak_password(self):
        with pytest.raises(ValidationError) as exc_info:
            UserCreate(**create_payload(password="password123"))

        assert exc_info.value.errors()[0]["loc"] == ("password",)

    def test_password_change_rejects_weak_new_password(self):
        with pytest.raises(ValidationError, match="special character"):
            PasswordChangeRequest(current_password="anything", new_password="NewSecret456")

    def test_password_change_does_not_check_current_password(self):
        """Test only the new password is held to the strength rules."""
        request = PasswordChangeRequest(current_password="old", new_password="NewSecret@456")

        assert request.new_password == "NewSecret@456"


class TestScopeCodeFormat:
    """Codes are uppercase alphanumeric with optional hyphens."""

    def test_valid_codes(self):
        user = UserCreate(**create_payload())

        assert user.school_code == "SCH-001"

    @pytest.mark.parametrize("field", ["state_code", "district_code", "school_code", "class_code"])
    @pytest.mark.parametrize("code", ["ka", "SCH 001", "SCH_001", "10a"])
    def test_invalid_codes_rejected_on_create(self, field, code):
        with pytest.raises(ValidationError, match="uppercase alphanumeric"):
            UserCreate(**create_payload(**{field: code}))

    def test_invalid_code_rejected_on_update(self):
        with pytest.raises(ValidationError) as exc_info:
            UserUpdate(school_code="sch001")

        assert exc_info.value.errors()[0]["loc"] == ("school_code",)

    def test_names_are_free_text(self):
        update = UserUpdate(school_name="Govt. High School, Jayanagar")

        assert update.school_name == "Govt. High School, Jayanagar"

    def test_stored_codes_are_not_revalidated_on_read(self):
        """Test responses serialize legacy rows written before the format rule."""
        user = UserRead(
            id=uuid4(),
            email="legacy@edulingua.org",
            username="legacy",
            name="Legacy",
            is_active=True,
            email_verified=False,
            state_code="ka",
        )

        assert user.state_code == "ka"


class TestPhoneAndRollNumber:

    @pytest.mark.parametrize("phone", ["+91-9876543210", "9876543210", "(080) 2345 6789", "+1.555.1234"])
    def test_valid_phone_numbers(self, phone):
        assert UserUpdate(phone_number=phone).phone_number == phone

    @pytest.mark.parametrize("phone", ["call me", "98765-43210-99-1", "+91 98765 abc"])
    def test_invalid_phone_numbers(self, phone):
        with pytest.raises(ValidationError, match="Invalid phone number format"):
            UserCreate(**create_payload(phone_number=phone))

    @pytest.mark.parametrize("roll_number", ["10A/01", "2024-KA-0042", "17"])
    def test_valid_roll_numbers(self, roll_number):
        assert UserCreate(**create_payload(roll_number=roll_number)).roll_number == roll_number

    @pytest.mark.parametrize("roll_number", ["10a/1", "10A 01", "#17"])
    def test_invalid_roll_numbers(self, roll_number):
        with pytest.raises(ValidationError, match="Invalid roll number format"):
            UserUpdate(roll_number=roll_number)

    def test_optional_fields_may_be_omitted(self):
        user = UserCreate(**create_payload())

        assert user.phone_number is None
        assert user.roll_number is None
