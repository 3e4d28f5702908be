from uuid import UUID

import pytest
from src.modules.user.jwt_claims import extract_user_data_from_jwt


def test_extract_oauth_user_data():
    """Test extracting data from OAuth user JWT claims."""
    payload = {
        "sub": "49583cbd-b4ef-43f8-ac3d-2fb113730947",
        "aud": "authenticated",
        "email": "author@example.com",
        "app_metadata": {"provider": "github", "providers": ["github"]},
        "user_metadata": {
            "full_name": "Ada Author",
            "name": "ada",
            "user_name": "ada-author",
        },
        "role": "authenticated",
    }

    user_data = extract_user_data_from_jwt(payload)

    assert user_data["user_id"] == UUID("49583cbd-b4ef-43f8-ac3d-2fb113730947")
    assert user_data["email"] == "author@example.com"
    assert user_data["name"] == "Ada Author"


def test_extract_minimal_claims():
    """Missing email and metadata fall back to defaults."""
    payload = {"sub": "b22d8937-8671-4251-b8b1-b1bb44b01e4c", "user_metadata": None}

    user_data = extract_user_data_from_jwt(payload)

    assert user_data["email"] == "b22d8937-8671-4251-b8b1-b1bb44b01e4c@users.prpm.dev"
    assert user_data["name"] == ""


def test_non_uuid_subject_rejected():
    with pytest.raises(ValueError):
        extract_user_data_from_jwt({"sub": "107428996114671035041"})
