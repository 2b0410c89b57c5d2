"""Tests for the remote Hichers API gateway."""

import asyncio
import builtins

import httpx
import pytest

from hichers.exceptions import AuthRequiredError, NetworkError, RemoteApiError, TimeoutError
from hichers.schemas.loyalty import SchemeType
from hichers.schemas.offer import TimeStatus
from hichers.schemas.session import Session
from hichers.services.gateway import LoyaltyGateway, extract_error_message


def _slow(seconds: float):
    async def handler(request):
        await asyncio.sleep(seconds)
        return httpx.Response(200, json={})

    return handler


@pytest.fixture
def anonymous_gateway(remote_api, base_url):
    return LoyaltyGateway(Session(), base_url=base_url, transport=remote_api.transport)


@pytest.mark.asyncio
async def test_requires_token_for_protected_endpoints(anonymous_gateway, remote_api):
    with pytest.raises(AuthRequiredError):
        await anonymous_gateway.request("offer/load-offers", "POST", {"userID": 1})
    assert remote_api.requests == []


@pytest.mark.asyncio
async def test_otp_endpoints_work_without_token(anonymous_gateway, remote_api):
    remote_api.add("POST", "auth/generate-otp", json={"response": "Success", "userID": 7})

    result = await anonymous_gateway.generate_otp("+44", "7700900123")

    assert result["userID"] == 7
    sent = remote_api.requests[0]
    assert "authorization" not in sent.headers
    assert remote_api.body(sent) == {
        "countryCode": "+44",
        "mobileNumber": "7700900123",
        "webFlag": True,
    }


@pytest.mark.asyncio
async def test_attaches_bearer_token_and_json_headers(gateway, remote_api):
    remote_api.add("GET", "loyalty/load-loyalty-scheme", json={"data": []})

    await gateway.load_loyalty_schemes()

    sent = remote_api.requests[0]
    assert sent.headers["authorization"] == "Bearer test-token"
    assert sent.headers["content-type"] == "application/json"
    assert sent.url.params["userID"] == "42"


@pytest.mark.asyncio
async def test_empty_success_body_on_offer_endpoint_is_empty_dict(gateway, remote_api):
    remote_api.add("POST", "offer/save-offer")

    assert await gateway.save_offer({"offerName": "Spring"}) == {}


@pytest.mark.asyncio
async def test_plain_text_offer_response_is_wrapped(gateway, remote_api):
    remote_api.add("POST", "offer/save-offer", text="Offer saved")

    result = await gateway.save_offer({"offerName": "Spring"})

    assert result == {"success": True, "message": "Offer saved"}


@pytest.mark.asyncio
async def test_plain_text_scheme_save_response_is_wrapped(gateway, remote_api):
    remote_api.add("POST", "loyalty/save-loyalty-scheme", text="Loyalty scheme saved")

    result = await gateway.save_loyalty_scheme({"loyaltySchemeName": "Gold"})

    assert result == {"success": True, "message": "Loyalty scheme saved"}


@pytest.mark.asyncio
async def test_plain_text_scheme_list_is_an_error(gateway, remote_api):
    remote_api.add("GET", "loyalty/load-loyalty-scheme", text="<html>oops</html>")

    with pytest.raises(RemoteApiError):
        await gateway.request("loyalty/load-loyalty-scheme")


@pytest.mark.asyncio
async def test_plain_text_on_other_endpoints_is_an_error(gateway, remote_api):
    remote_api.add("POST", "web/web-info", text="<html>oops</html>")

    with pytest.raises(RemoteApiError):
        await gateway.web_info()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"json": {"message": "Offer name is required"}}, "Offer name is required"),
        ({"json": {"errors": [{"message": "Invalid user"}]}}, "Invalid user"),
        ({"text": "Service Unavailable"}, "Service Unavailable"),
        ({"json": {"status": "fail"}}, "HTTP error! status: 500"),
    ],
)
async def test_error_message_extraction(gateway, remote_api, kwargs, expected):
    remote_api.add("POST", "offer/save-offer", status_code=500, **kwargs)

    with pytest.raises(RemoteApiError) as excinfo:
        await gateway.save_offer({})

    assert excinfo.value.status == 500
    assert excinfo.value.message == expected


def test_extract_error_message_on_empty_body():
    assert extract_error_message("", 404) == "HTTP error! status: 404"


@pytest.mark.asyncio
async def test_timeout_on_offer_read_is_soft(gateway, remote_api):
    gateway.timeout = 0.05
    remote_api.add("POST", "offer/load-offers", handler=_slow(1))

    raw = await gateway.request("offer/load-offers", "POST", {"userID": 42})
    assert raw == {"success": False, "error": "API timeout"}

    assert await gateway.load_offers() == {"offers": []}


@pytest.mark.asyncio
async def test_httpx_timeout_on_loyalty_read_is_soft(gateway, remote_api):
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    remote_api.add("GET", "loyalty/load-loyalty-scheme", handler=handler)

    assert await gateway.load_loyalty_schemes() == {"schemes": []}


@pytest.mark.asyncio
async def test_timeout_on_other_endpoints_raises(gateway, remote_api):
    gateway.timeout = 0.05
    remote_api.add("POST", "web/web-info", handler=_slow(1))

    with pytest.raises(TimeoutError) as excinfo:
        await gateway.web_info()

    assert isinstance(excinfo.value, builtins.TimeoutError)


@pytest.mark.asyncio
async def test_timeout_on_offer_write_raises(gateway, remote_api):
    gateway.timeout = 0.05
    remote_api.add("POST", "offer/save-offer", handler=_slow(1))

    with pytest.raises(TimeoutError):
        await gateway.save_offer({"offerName": "Spring"})


@pytest.mark.asyncio
async def test_error_body_mentioning_timeout_is_not_a_timeout(gateway, remote_api):
    remote_api.add("POST", "web/web-info", status_code=500, json={"message": "upstream timeout"})

    with pytest.raises(RemoteApiError) as excinfo:
        await gateway.web_info()

    assert not isinstance(excinfo.value, builtins.TimeoutError)


@pytest.mark.asyncio
async def test_connection_failure_is_network_error(gateway, remote_api):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    remote_api.add("POST", "web/web-info", handler=handler)

    with pytest.raises(NetworkError):
        await gateway.web_info()


@pytest.mark.asyncio
async def test_each_call_owns_its_deadline(gateway, remote_api):
    gateway.timeout = 0.2
    remote_api.add("POST", "offer/load-offers", handler=_slow(1))
    remote_api.add("GET", "loyalty/load-loyalty-scheme", json={"data": [{"loyaltyschemeid": 1}]})

    offers, schemes = await asyncio.gather(gateway.load_offers(), gateway.load_loyalty_schemes())

    assert offers == {"offers": []}
    assert len(schemes["schemes"]) == 1


@pytest.mark.asyncio
async def test_load_offers_maps_remote_rows(gateway, remote_api):
    remote_api.add(
        "POST",
        "offer/load-offers",
        json={
            "message": "Offers loaded",
            "data": [
                {
                    "offerid": 7,
                    "offername": "Winter warmer",
                    "offerinformation": "20% off all hot drinks",
                    "offertypeid": 2,
                    "percentagediscount": "20",
                    "validfromdate": "2025-01-10",
                    "validfromtime": "09:00",
                    "validtodate": "2025-01-20",
                    "validtotime": "18:00",
                    "expireflag": True,
                    "timestatus": "PAST",
                    "mapid": 99,
                }
            ],
        },
    )

    result = await gateway.load_offers()

    [offer] = result["offers"]
    assert offer.id == 7
    assert offer.title == "Winter warmer"
    assert offer.valid_from == "2025-01-10"
    assert offer.is_active is False
    assert offer.map_id == 99
    assert offer.discount_label == "20%"
    # Derived from the window around the fixed clock, not the reported status.
    assert offer.time_status is TimeStatus.PRESENT

    sent = remote_api.requests[0]
    assert sent.url.params["userID"] == "42"
    assert remote_api.body(sent) == {"userID": 42}


@pytest.mark.asyncio
async def test_load_offers_accepts_bare_list(gateway, remote_api):
    remote_api.add("POST", "offer/load-offers", json=[{"offerid": 1, "timestatus": "Future"}])

    [offer] = (await gateway.load_offers())["offers"]

    assert offer.time_status is TimeStatus.FUTURE


@pytest.mark.asyncio
async def test_load_loyalty_schemes_maps_rows(gateway, remote_api):
    remote_api.add(
        "GET",
        "loyalty/load-loyalty-scheme",
        json={
            "data": [
                {
                    "loyaltyschemeid": 3,
                    "loyaltyschemename": "Coffee Card",
                    "loyaltyschemetypeid": 3,
                    "stampstocollect": "9",
                    "freeitems": "1",
                    "timestatus": "present",
                    "expireflag": False,
                    "usercount": "12",
                }
            ]
        },
    )

    [scheme] = (await gateway.load_loyalty_schemes())["schemes"]

    assert scheme.scheme_type is SchemeType.STAMPS
    assert scheme.is_active is True
    assert scheme.member_count == 12


@pytest.mark.asyncio
async def test_save_loyalty_scheme_adds_user_id(gateway, remote_api):
    remote_api.add("POST", "loyalty/save-loyalty-scheme", json={"response": "Success"})

    await gateway.save_loyalty_scheme({"loyaltySchemeName": "Gold"})

    assert remote_api.body(remote_api.requests[0])["userID"] == 42


@pytest.mark.asyncio
async def test_view_offer_sends_ids(gateway, remote_api):
    remote_api.add("POST", "offer/view-offer", json={"offer": {"offerid": 5}})

    await gateway.view_offer(5, 11)

    assert remote_api.body(remote_api.requests[0]) == {"offerID": 5, "mapID": 11}

