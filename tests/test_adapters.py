from datetime import date, datetime

import httpx
import pytest

from congress_sync.adapters import (
    CongressApiClient,
    CongressBillsAdapter,
    CongressHearingsAdapter,
    CongressMembersAdapter,
    extract_cosponsor_count,
)
from congress_sync.config import CongressApiConfig
from congress_sync.exceptions import CongressApiError
from congress_sync.models.adapter_models import AdapterStatus
from congress_sync.utils.rate_limit_monitor import RateLimitMonitor
from congress_sync.utils.rate_limiter import RateLimiter

from .factories import bill_payload, hearing_payload, member_payload


@pytest.fixture
def monitor(fake_sleep) -> RateLimitMonitor:
    return RateLimitMonitor(sleep=fake_sleep)


@pytest.fixture
async def client(fake_api, monitor, api_config):
    api_client = CongressApiClient(api_config, monitor, transport=httpx.MockTransport(fake_api.handler))
    yield api_client
    await api_client.close()


def _limiter(fake_sleep) -> RateLimiter:
    return RateLimiter(rate=1000.0, burst=1, sleep=fake_sleep)


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"cosponsors": {"count": 3, "url": "https://x"}}, 3),
        ({"cosponsors": [{"bioguideId": "A"}, {"bioguideId": "B"}]}, 2),
        ({"cosponsorsCount": 7}, 7),
        ({"cosponsors": {"count": 4}, "cosponsorsCount": 9}, 4),
        ({"title": "no cosponsor data"}, None),
    ],
)
def test_extract_cosponsor_count(payload, expected) -> None:
    assert extract_cosponsor_count(payload) == expected


async def test_bill_list_pages_until_limit(fake_api, client, monitor, fake_sleep) -> None:
    fake_api.bills = [bill_payload(n) for n in range(1, 8)]
    adapter = CongressBillsAdapter(client, monitor, _limiter(fake_sleep))
    adapter.page_size = 3

    response = await adapter.fetch(congress=118, limit=5)

    assert response.status == AdapterStatus.SUCCESS
    assert [bill.bill_number for bill in response.data] == [1, 2, 3, 4, 5]
    assert response.metrics.pages_fetched == 2
    assert response.pagination.has_next
    assert monitor.get_stats().total_requests == 2

    first = fake_api.requests[0]
    assert first.url.path == "/v3/bill/118"
    assert first.url.params["api_key"] == "test-key"
    assert first.url.params["format"] == "json"
    assert first.url.params["sort"] == "updateDate desc"
    assert fake_api.requests[1].url.params["offset"] == "3"
    assert fake_api.requests[1].url.params["limit"] == "2"


async def test_bill_list_date_window_params(fake_api, client, monitor) -> None:
    adapter = CongressBillsAdapter(client, monitor)

    await adapter.fetch(date_from=datetime(2024, 1, 1), date_to=datetime(2024, 2, 1, 6, 30))

    params = fake_api.requests[0].url.params
    assert params["fromDateTime"] == "2024-01-01T00:00:00Z"
    assert params["toDateTime"] == "2024-02-01T06:30:00Z"


async def test_bill_normalization(fake_api, client, monitor) -> None:
    fake_api.bills = [bill_payload(42, law="118-5", cosponsors=11)]
    adapter = CongressBillsAdapter(client, monitor)

    bill = await adapter.fetch_detail(118, "hr", 42)

    assert bill.natural_key() == (118, "hr", 42)
    assert bill.latest_action_date == date(2024, 1, 10)
    assert bill.update_date == datetime(2024, 1, 10, 12, 0)
    assert bill.law_number == "Public Law 118-5"
    assert bill.is_law is True
    assert bill.cosponsor_count == 11
    assert bill.sponsor_bioguide_id == "A000001"
    assert bill.policy_area == "Government Operations and Politics"
    assert bill.api_response_data["number"] == "42"


async def test_list_rows_leave_detail_fields_empty(fake_api, client, monitor) -> None:
    fake_api.bills = [bill_payload(42, law="118-5", cosponsors=11)]
    adapter = CongressBillsAdapter(client, monitor)

    bill = (await adapter.fetch()).data[0]

    assert bill.title == "A bill to do things"
    assert bill.latest_action_text == "Introduced in House"
    assert (bill.law_number, bill.is_law, bill.cosponsor_count) == (None, False, None)
    assert (bill.sponsor_bioguide_id, bill.policy_area) == (None, None)
    assert "sponsors" not in bill.api_response_data


async def test_bad_records_are_collected_not_raised(fake_api, client, monitor) -> None:
    broken = bill_payload(2)
    del broken["type"]
    fake_api.bills = [bill_payload(1), broken, bill_payload(3)]
    adapter = CongressBillsAdapter(client, monitor)

    response = await adapter.fetch(limit=10)

    assert response.status == AdapterStatus.PARTIAL_SUCCESS
    assert len(response.data) == 2
    assert response.metrics.records_attempted == 3
    assert response.metrics.records_failed == 1
    assert response.errors[0].error_type == "KeyError"


async def test_bill_type_requires_congress(client, monitor) -> None:
    with pytest.raises(ValueError):
        await CongressBillsAdapter(client, monitor).fetch(bill_type="hr")


async def test_detail_returns_none_on_404(fake_api, client, monitor) -> None:
    fake_api.bills = [bill_payload(1)]
    adapter = CongressBillsAdapter(client, monitor)

    assert (await adapter.fetch_detail(118, "HR", 1)).bill_number == 1
    assert await adapter.fetch_detail(118, "hr", 999) is None


async def test_page_failure_raises_api_error(fake_api, client, monitor) -> None:
    fake_api.failures["/bill"] = [503]

    with pytest.raises(CongressApiError) as excinfo:
        await CongressBillsAdapter(client, monitor).fetch()

    assert excinfo.value.status_code == 503
    assert "503" in str(excinfo.value)


async def test_429_marks_monitor(fake_api, client, monitor) -> None:
    def rate_limited(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"retry-after": "90"}, json={"error": {"message": "OVER_RATE_LIMIT"}})

    limited_client = CongressApiClient(client.config, monitor, transport=httpx.MockTransport(rate_limited))
    try:
        with pytest.raises(CongressApiError) as excinfo:
            await limited_client.get("/bill")
    finally:
        await limited_client.close()

    assert excinfo.value.retry_after == 90
    assert monitor.should_throttle().wait_seconds == pytest.approx(90, abs=1)


async def test_missing_api_key_is_unauthorized(monitor) -> None:
    keyless = CongressApiClient(CongressApiConfig(key=None), monitor, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    try:
        with pytest.raises(CongressApiError) as excinfo:
            await keyless.get("/bill")
    finally:
        await keyless.close()

    assert excinfo.value.status_code == 401


async def test_member_normalization(fake_api, client, monitor) -> None:
    fake_api.members = [member_payload("D000001"), member_payload("R000002", name="Roe, John", end_year=2023)]
    adapter = CongressMembersAdapter(client, monitor)

    response = await adapter.fetch(current_member=True, limit=10)
    current, former = response.data

    assert fake_api.requests[0].url.params["currentMember"] == "true"
    assert current.first_name == "Jane"
    assert current.last_name == "Doe"
    assert current.party == "Democratic"
    assert current.district == 12
    assert current.chamber == "House of Representatives"
    assert current.is_current is True
    assert current.depiction_url.endswith("d000001.jpg")
    assert former.is_current is False


async def test_member_party_from_history(client, monitor) -> None:
    adapter = CongressMembersAdapter(client, monitor)

    member = adapter.normalize({
        "bioguideId": "S000033",
        "name": "Sanders, Bernard",
        "partyHistory": [{"partyName": "Independent"}, {"partyAbbreviation": "I"}],
        "terms": [{"chamber": "Senate", "startYear": 2007}],
    })

    assert member.party == "I"
    assert member.chamber == "Senate"


async def test_member_state_filter_path(fake_api, client, monitor) -> None:
    await CongressMembersAdapter(client, monitor).fetch(current_member=False, state="ca")

    request = fake_api.requests[0]
    assert request.url.path == "/v3/member/CA"
    assert "currentMember" not in request.url.params


async def test_hearing_normalization(fake_api, client, monitor) -> None:
    fake_api.hearings = [hearing_payload(54186)]
    adapter = CongressHearingsAdapter(client, monitor)

    hearing = (await adapter.fetch(congress=118, chamber="House")).data[0]

    assert fake_api.requests[0].url.path == "/v3/hearing/118/house"
    assert hearing.natural_key() == (118, "house", "54186")
    assert hearing.hearing_date == datetime(2024, 2, 1, 15, 0)
    assert hearing.location == "2154, Rayburn House Office Building"
    assert hearing.committee_code == "hsgo00"


async def test_hearing_without_jacket_number_fails_normalization(client, monitor) -> None:
    adapter = CongressHearingsAdapter(client, monitor)

    with pytest.raises(ValueError):
        adapter.normalize({"congress": 118, "chamber": "Senate", "title": "Nominations"})


async def test_hearing_chamber_requires_congress(client, monitor) -> None:
    with pytest.raises(ValueError):
        await CongressHearingsAdapter(client, monitor).fetch(chamber="senate")
