from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Mapping

# Wire name -> attribute name
FLAG_NAMES: dict[str, str] = {
    "enableStaffSelection": "staff_selection",
    "enableStaffShiftManagement": "staff_shift_management",
    "enableReservationUpdate": "reservation_update",
    "enableManualReservation": "manual_reservation",
    "enableCouponFeature": "coupon",
    "enableCustomerManagement": "customer_management",
    "enableReminderEmail": "reminder_email",
    "enableAnalyticsReport": "analytics_report",
    "enableRepeatRateAnalysis": "repeat_rate_analysis",
    "enableLineNotification": "line_notification",
}


@dataclass(frozen=True)
class FeatureFlags:
    """Per-tenant capability set, read once at the start of a request."""

    staff_selection: bool = True
    staff_shift_management: bool = False
    reservation_update: bool = True
    manual_reservation: bool = True
    coupon: bool = False
    customer_management: bool = True
    reminder_email: bool = False
    analytics_report: bool = True
    repeat_rate_analysis: bool = False
    line_notification: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, bool]) -> "FeatureFlags":
        """Build from wire names; unknown names are ignored, missing ones keep defaults."""
        known = {FLAG_NAMES[name]: bool(enabled) for name, enabled in values.items() if name in FLAG_NAMES}
        return replace(cls(), **known)

    def to_mapping(self) -> dict[str, bool]:
        values = asdict(self)
        return {wire: values[attr] for wire, attr in FLAG_NAMES.items()}
