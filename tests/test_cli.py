import pytest

from congress_sync.cli.sync_cli import COMMANDS, build_parser


def test_sync_defaults() -> None:
    args = build_parser().parse_args(["sync"])

    assert args.command == "sync"
    assert args.strategy == "incremental"
    assert args.resources == ["bills", "members", "hearings"]
    assert args.run_async is False
    assert args.command in COMMANDS


def test_sync_with_options() -> None:
    args = build_parser().parse_args(["--verbose", "sync", "--strategy", "full", "--resources", "bills", "--async"])

    assert args.verbose is True
    assert args.strategy == "full"
    assert args.resources == ["bills"]
    assert args.run_async is True


def test_watch_arguments() -> None:
    args = build_parser().parse_args(["watch", "118", "hr", "1", "--priority", "9"])

    assert (args.congress, args.bill_type, args.bill_number, args.priority) == (118, "hr", 1, 9)


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["sync", "--strategy", "sometimes"])


def test_enrich_arguments() -> None:
    args = build_parser().parse_args(["enrich", "--sponsor-only", "--limit", "10"])

    assert (args.sponsor_only, args.watchlisted, args.limit) == (True, False, 10)
    assert args.command in COMMANDS
