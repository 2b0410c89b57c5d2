"""Tests for offer row parsing and discount labels."""

from datetime import datetime

import pytest

from hichers.schemas.offer import DiscountFields, TimeStatus
from hichers.services.offer_parsing import (
    combine_date_time,
    compute_discount_label,
    derive_time_status,
    offer_from_remote,
)


@pytest.mark.parametrize(
    "offer_type, fields, label",
    [
        (1, {"items_buying": "1", "items_free": "1"}, "Buy 1 Get 1"),
        (2, {"percent_discount": "20.0"}, "20%"),
        (3, {"cash_discount": "5.50"}, "£5.5"),
        (4, {"cash_discount": "10", "minimum_spend": "50"}, "£10 off with min spend £50"),
        (5, {"items_buying": "3", "items_free": "1"}, "Buy 3 Get 1 Free"),
        (6, {"percent_discount": "30"}, "Flash Sale 30%"),
        (6, {"percent_discount": "0", "cash_discount": "4"}, "Flash Sale £4"),
        (99, {"percent_discount": "30"}, ""),
    ],
)
def test_discount_labels(offer_type, fields, label):
    assert compute_discount_label(offer_type, DiscountFields(**fields)) == label


def test_combine_date_time_accepts_slashes_and_loose_times():
    assert combine_date_time("2025/01/15", "9:5", "00:00") == datetime(2025, 1, 15, 9, 5)
    assert combine_date_time("2025-01-15", "", "23:59") == datetime(2025, 1, 15, 23, 59)
    assert combine_date_time("soon", "09:00", "00:00") is None
    assert combine_date_time("2025-02-30", "09:00", "00:00") is None


def test_derive_time_status(now):
    start = datetime(2025, 1, 10)
    end = datetime(2025, 1, 20)

    assert derive_time_status(start, end, now) is TimeStatus.PRESENT
    assert derive_time_status(datetime(2025, 2, 1), datetime(2025, 2, 2), now) is TimeStatus.FUTURE
    assert derive_time_status(start, datetime(2025, 1, 12), now) is TimeStatus.PAST


def test_load_offers_row(now):
    offer = offer_from_remote(
        {
            "offerid": "17",
            "offername": "Half price lattes",
            "offerinformation": "Every weekday morning",
            "offertypeid": "2",
            "percentagediscount": "50.00",
            "validfromdate": "2025-01-01T00:00:00.000Z",
            "validfromtime": "07:00:00",
            "validtodate": "2025-01-31",
            "validtotime": "11:00",
            "expireflag": False,
            "mapid": "88",
            "timestatus": "future",
        },
        now,
    )

    assert offer.id == 17
    assert offer.valid_from == "2025-01-01"
    assert offer.valid_from_time == "07:00"
    assert offer.discount.percent_discount == "50"
    assert offer.discount_label == "50%"
    assert offer.map_id == 88
    assert offer.is_active is True
    # the window wins over the reported status
    assert offer.time_status is TimeStatus.PRESENT


def test_saved_payload_shape_round_trips(now):
    offer = offer_from_remote(
        {
            "offerID": 3,
            "offerName": "Tenner off",
            "offerTypeID": 3,
            "cashDiscount": "10",
            "validfrom": "2025/02/01 09:00",
            "validto": "2025/02/03 17:30",
        },
        now,
    )

    assert offer.valid_from == "2025-02-01"
    assert offer.valid_until_time == "17:30"
    assert offer.discount_label == "£10"
    assert offer.time_status is TimeStatus.FUTURE


def test_missing_dates_fall_back_to_reported_status(now):
    assert offer_from_remote({"offerid": 1, "timestatus": "Past"}, now).time_status is TimeStatus.PAST
    untitled = offer_from_remote({"offerid": 2, "timestatus": "later"}, now)
    assert untitled.time_status is None
    assert untitled.title == "Untitled Offer"
