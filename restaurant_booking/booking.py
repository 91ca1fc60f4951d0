"""Booking channel classification and booking guidance text."""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .models import BookingPlatform, BookingProfile, Place

# Hostnames matched exactly or as a parent domain (www.opentable.com -> opentable.com).
PLATFORM_DOMAINS: Dict[str, BookingPlatform] = {
    "opentable.com": BookingPlatform.OPENTABLE,
    "opentable.co.uk": BookingPlatform.OPENTABLE,
    "opentable.jp": BookingPlatform.OPENTABLE,
    "resy.com": BookingPlatform.RESY,
    "reserve.google.com": BookingPlatform.GOOGLE_RESERVE,
}

# Hosts that only count as booking platforms on their reservation paths.
PLATFORM_PATH_HINTS: Dict[str, Tuple[BookingPlatform, Tuple[str, ...]]] = {
    "yelp.com": (BookingPlatform.YELP, ("reservations", "book")),
    "google.com": (BookingPlatform.GOOGLE_RESERVE, ("/reserve",)),
}

BOOKING_KEYWORDS = (
    "reservation",
    "reservations",
    "book",
    "booking",
    "table",
    "reserve",
    "dine",
    "dining",
    "order",
    "menu",
)

PLATFORM_DISPLAY_NAMES: Dict[BookingPlatform, str] = {
    BookingPlatform.OPENTABLE: "OpenTable",
    BookingPlatform.RESY: "Resy",
    BookingPlatform.YELP: "Yelp Reservations",
    BookingPlatform.GOOGLE_RESERVE: "Google Reserve",
    BookingPlatform.RESTAURANT_WEBSITE: "Restaurant Website",
}


def _hostname(url: str) -> str:
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    host = urlparse(candidate).hostname or ""
    return host.lower().rstrip(".")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def detect_platform(website: str) -> Optional[BookingPlatform]:
    """Return the online booking platform a website URL points at, if any."""
    host = _hostname(website)
    lowered = website.lower()
    for domain, platform in PLATFORM_DOMAINS.items():
        if _host_matches(host, domain):
            return platform
    for domain, (platform, hints) in PLATFORM_PATH_HINTS.items():
        if _host_matches(host, domain) and any(h in lowered for h in hints):
            return platform
    if any(keyword in lowered for keyword in BOOKING_KEYWORDS):
        return BookingPlatform.RESTAURANT_WEBSITE
    return None


def analyze_booking_profile(website: Optional[str], phone: Optional[str]) -> BookingProfile:
    has_phone = bool(phone and phone.strip())
    website = (website or "").strip() or None

    if website:
        platform = detect_platform(website)
        if platform is not None:
            return BookingProfile(
                is_reservable=True,
                online_booking_supported=True,
                phone_required=False,
                booking_url=website,
                platform=platform,
            )
        return BookingProfile(
            is_reservable=True,
            online_booking_supported=False,
            phone_required=has_phone,
            booking_url=website,
            platform=BookingPlatform.OTHER,
        )

    if has_phone:
        return BookingProfile(is_reservable=True, phone_required=True)
    return BookingProfile()


def booking_instructions(place: Place) -> str:
    profile = place.booking_profile
    lines: List[str] = []

    if profile.online_booking_supported and profile.booking_url:
        name = PLATFORM_DISPLAY_NAMES.get(profile.platform, "Online Booking Platform")
        lines.append(f"Book online via {name}")
        lines.append(f"   Visit: {profile.booking_url}")
        if profile.platform == BookingPlatform.OPENTABLE:
            lines.append("   Instant confirmation, easy cancellation and modification")
        elif profile.platform == BookingPlatform.RESY:
            lines.append("   Real-time availability")
        elif profile.platform == BookingPlatform.RESTAURANT_WEBSITE:
            lines.append("   Direct booking with the restaurant")
        lines.append("")
    elif profile.platform == BookingPlatform.OTHER and profile.booking_url:
        lines.append("Website available")
        lines.append(f"   Visit: {profile.booking_url}")
        lines.append("   Check the website for a reservation system")
        lines.append("")

    if place.phone:
        if profile.phone_required and not profile.online_booking_supported:
            lines.append("Call to make a reservation (required)")
            lines.append(f"   Phone: {place.phone}")
            lines.append("   Online booking not available, phone reservations only")
        else:
            lines.append("Alternative: call for a reservation")
            lines.append(f"   Phone: {place.phone}")
            lines.append("   Useful for special requests or large parties")
        lines.append("")

    if not profile.is_reservable:
        lines.append("Walk-in only")
        lines.append("   This restaurant may not accept reservations")
        lines.append("   Consider arriving early during peak hours")
        lines.append("")

    lines.append("General tips:")
    lines.append("   - Consider calling ahead, especially for peak dining times")
    if place.rating_value >= 4.5:
        lines.append("   - Highly rated restaurant, reservations are strongly recommended")
    if place.price_tier and place.price_tier >= 3:
        lines.append("   - Fine dining establishment, advance reservations recommended")

    status = place.opening_status
    if status is not None:
        if status.weekly_schedule_text:
            lines.append("")
            lines.append("Opening hours:")
            lines.extend(f"   {text}" for text in status.weekly_schedule_text)
        lines.append("")
        lines.append("Currently open" if status.is_open_now else "Currently closed")

    return "\n".join(lines)
