from uuid import UUID


def extract_user_data_from_jwt(payload: dict) -> dict:
    """Extract user data from JWT claims for database sync."""
    user_id = UUID(str(payload.get("sub", "")))

    user_metadata = payload.get("user_metadata", {}) or {}

    name = user_metadata.get("full_name") or user_metadata.get("name", "")

    return {
        "user_id": user_id,
        "email": payload.get("email") or f"{user_id}@users.prpm.dev",
        "name": name,
    }
