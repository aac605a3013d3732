from congress_sync.cli.sync_cli import build_parser, enrich_bills, set_watch_priority
from congress_sync.services.container import SyncServices

from .factories import bill_payload


async def test_services_share_monitor_and_token_bucket(services: SyncServices) -> None:
    adapters = [
        services.bill_sync.adapter,
        services.member_sync.adapter,
        services.hearing_sync.adapter,
    ]

    assert all(adapter.monitor is services.monitor for adapter in adapters)
    assert all(adapter.client is services.client for adapter in adapters)
    assert len({id(adapter.rate_limiter) for adapter in adapters}) == 1
    assert services.orchestrator.ledger is services.ledger
    assert services.bill_sync.change_detection is services.change_detection


async def test_watch_priority_round_trip(services: SyncServices, fake_api) -> None:
    fake_api.bills = [bill_payload(5)]
    await services.bill_sync.sync_bills()

    found = await set_watch_priority(services, build_parser().parse_args(["watch", "118", "HR", "5", "--priority", "7"]))
    missing = await set_watch_priority(services, build_parser().parse_args(["watch", "118", "hr", "6"]))

    assert (found, missing) == (0, 1)
    result = await services.bill_sync.sync_priority(min_priority=7)
    assert result.records_fetched == 1


async def test_enrich_command_limits_to_watch_list(services: SyncServices, fake_api) -> None:
    fake_api.bills = [bill_payload(1), bill_payload(2)]
    await services.bill_sync.sync_bills()
    await set_watch_priority(services, build_parser().parse_args(["watch", "118", "hr", "2", "--priority", "9"]))

    code = await enrich_bills(services, build_parser().parse_args(["enrich", "--watchlisted"]))

    assert code == 0
    detail_paths = [request.url.path for request in fake_api.requests if request.url.path != "/v3/bill"]
    assert detail_paths == ["/v3/bill/118/hr/2"]
