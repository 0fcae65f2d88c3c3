from pydantic import BaseModel, Field

from capms.schemas.user import UserOut


# ── Request Body ──────────────────────────────────────────────────────
class LoginRequest(BaseModel):
    # email or registration number
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "identifier": "admin@capms.com",
                "password": "YourPassword123",
            }
        }
    }


# ── Response Bodies ───────────────────────────────────────────────────
class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserOut


class OptionsOut(BaseModel):
    branches: list[str]
    semesters: list[str]
    sections: list[str]
