"""
Unit tests for the message classifier.
"""

import pytest

from sync_stays.parsers.classifier import CLASSIFIER_VERSION, MessageType, classify_message

AIRBNB_BODY = """
New booking confirmed! Nora arrives Mar 12.

Check-in        Checkout
Thu, Mar 12     Sun, Mar 15
"""


@pytest.mark.unit
def test_airbnb_confirmation_is_candidate() -> None:
    """Test that an Airbnb confirmation is classified as a candidate."""
    result = classify_message("Reservation confirmed - Nora Weber arrives Mar 12", AIRBNB_BODY)

    assert result.message_type == MessageType.RESERVATION_CONFIRMATION
    assert result.is_candidate is True
    assert any(r.startswith("Confirmed: Airbnb") for r in result.reasons)


@pytest.mark.unit
def test_lodgify_confirmation_requires_arrival_and_departure() -> None:
    """Test that a Lodgify confirmation needs both arrival and departure in the body."""
    subject = "New Confirmed Booking: Liz Servin (#B16389402)"

    complete = classify_message(subject, "BOOKING (#B16389402) Arrival: Mar 12 Departure: Mar 15")
    missing_departure = classify_message(subject, "BOOKING (#B16389402) Arrival: Mar 12")

    assert complete.is_candidate is True
    assert missing_departure.is_candidate is False
    assert missing_departure.message_type == MessageType.UNKNOWN


@pytest.mark.unit
@pytest.mark.parametrize(
    "subject,body,expected",
    [
        ("Inquiry for Beach House", "Check-in Mar 12", MessageType.BOOKING_INQUIRY),
        ("Re: Reservation confirmed", "Check-in Mar 12", MessageType.GUEST_MESSAGE),
        ("Cancellation request", "Check-in Mar 12", MessageType.CANCELLATION_REQUEST),
        ("Write a review for Nora", "", MessageType.REVIEW_REQUEST),
        ("Nora left a 5-star review", "", MessageType.REVIEW_POSTED),
        ("Your payout has been sent", "", MessageType.PLATFORM_SYSTEM),
    ],
)
def test_blocklist_rules_win(subject: str, body: str, expected: MessageType) -> None:
    """Test that blocklisted message kinds are never candidates."""
    result = classify_message(subject, body)

    assert result.message_type == expected
    assert result.is_candidate is False
    assert result.reasons[0].startswith("Blocked:")


@pytest.mark.unit
def test_reply_anchor_only_checks_subject() -> None:
    """Test that a quoted "Re:" inside the body does not block a confirmation."""
    body = "Re: your listing\n" + AIRBNB_BODY

    result = classify_message("Reservation confirmed - Nora Weber arrives Mar 12", body)

    assert result.is_candidate is True


@pytest.mark.unit
def test_unrecognized_message_defaults_to_unknown() -> None:
    """Test that text matching no rule is a non-candidate."""
    result = classify_message("Hello", "Just checking in about the weather")

    assert result.message_type == MessageType.UNKNOWN
    assert result.is_candidate is False


@pytest.mark.unit
def test_classification_to_dict_carries_version() -> None:
    """Test that the stored classification includes the rule version."""
    data = classify_message("Hello", "").to_dict()

    assert data["version"] == CLASSIFIER_VERSION
    assert data["message_type"] == "unknown"
