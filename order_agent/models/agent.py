"""
Pydantic models for the agent's own state: the persisted store/vendor configuration and
operator notifications.
"""
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from order_agent.errors import ConfigurationError

PASSWORD_MASK = "********"


class AgentConfig(BaseModel):
    """
    Store credentials and polling options for the single vendor this agent prints for.
    Unknown keys are dropped and loosely-typed values coerced, so whatever the UI or an
    older config file sends can be stored safely.
    """

    api_url: str = ""
    username: str = ""
    password: str = ""
    vendor_id: str = ""
    check_interval: float = 60
    printer_id: str = ""
    autostart: bool = False
    print_width: int = 48

    class Config:
        extra = "ignore"

    @field_validator("api_url", mode="before")
    @classmethod
    def _strip_api_url(cls, v: Any) -> str:
        return str(v or "").strip().rstrip("/")

    @field_validator("username", "password", "printer_id", mode="before")
    @classmethod
    def _coerce_str(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("vendor_id", mode="before")
    @classmethod
    def _coerce_vendor_id(cls, v: Any) -> str:
        # Vendor ids arrive as numbers from the API and as strings from forms
        return "" if v is None else str(v).strip()

    @field_validator("check_interval", mode="before")
    @classmethod
    def _coerce_check_interval(cls, v: Any) -> float:
        try:
            return float(v)
        except (TypeError, ValueError):
            return 0

    @field_validator("print_width", mode="before")
    @classmethod
    def _coerce_print_width(cls, v: Any) -> int:
        try:
            return int(v) or 48
        except (TypeError, ValueError):
            return 48

    def has_credentials(self) -> bool:
        return bool(self.api_url and self.username and self.password)

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless apiUrl, username and password are all set."""
        if not self.has_credentials():
            raise ConfigurationError(
                "Incomplete configuration: API URL, username and password are required"
            )

    def require_vendor_id(self) -> str:
        if not self.vendor_id:
            raise ConfigurationError("Vendor ID is not configured")
        return self.vendor_id

    def effective_check_interval(self, default: float, minimum: float) -> float:
        """Polling interval in seconds: non-positive falls back to default, then clamped to minimum."""
        interval = self.check_interval if self.check_interval > 0 else default
        return max(interval, minimum)

    def masked(self) -> dict[str, Any]:
        """Dump for display, with the password replaced by a fixed mask."""
        data = self.model_dump()
        if data["password"]:
            data["password"] = PASSWORD_MASK
        return data


class Notification(BaseModel):
    """Operator-facing notification (the desktop shell showed these as toasts)."""

    type: Literal["info", "success", "warning", "error"]
    message: str
    order_id: Optional[str] = None
    print_status: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
