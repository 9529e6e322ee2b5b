import pytest

from voicerooms import cli
from voicerooms.config import RoomsRuntimeConfig, apply_config_data, load_toml
from voicerooms.models import AccountReputation, MembershipLevel, PaidTier


def test_apply_config_data_maps_sections() -> None:
    data = {
        "rooms": {
            "client_id": "abc",
            "http_timeout_s": 3.5,
            "state_path": "",
            "membership_level": "Regular",
            "paid_tier": "supporter",
            "reputation": "veteran",
            "config_path": "/elsewhere.toml",
        },
        "logging": {"level": "DEBUG", "file": "", "console": False},
        "quota": {
            "base_permanent_rooms": {"newbie": 1, "regular": 3},
            "paid_tier_bonus_rooms": {"supporter": 5},
        },
        "devices": [
            {"id": "desk", "base_url": "http://10.0.0.5:3010", "access_token": "t"},
            {"id": "laptop", "base_url": "http://10.0.0.6:3010", "online": False},
        ],
    }

    cfg = apply_config_data(RoomsRuntimeConfig(config_path="/here.toml"), data)

    assert cfg.config_path == "/here.toml"
    assert cfg.client_id == "abc"
    assert cfg.http_timeout_s == 3.5
    assert cfg.state_path is None
    assert cfg.log_level == "DEBUG"
    assert cfg.log_console is False
    assert cfg.log_file is None

    table = cfg.quota_table()
    assert table.base_rooms == {MembershipLevel.NEWBIE: 1, MembershipLevel.REGULAR: 3}
    assert table.paid_tier_bonus_rooms == {PaidTier.SUPPORTER: 5}

    desk, laptop = cfg.devices
    assert (desk.id, desk.access_token, desk.is_online) == ("desk", "t", True)
    assert (laptop.access_token, laptop.is_online) == (None, False)

    profile = cfg.quota_profile()
    assert profile.membership_level is MembershipLevel.REGULAR
    assert profile.reputation is AccountReputation.VETERAN
    assert profile.reputation_bonus_rooms == 8
    assert profile.reputation_bonus_capacity == 50


def test_empty_data_keeps_base() -> None:
    base = RoomsRuntimeConfig(client_id="x")
    assert apply_config_data(base, {}) is base


@pytest.mark.parametrize(
    "devices",
    [{"id": "x"}, ["not a table"], [{"base_url": "http://h"}]],
)
def test_bad_devices_rejected(devices) -> None:
    with pytest.raises(ValueError):
        apply_config_data(RoomsRuntimeConfig(), {"devices": devices})


def test_unknown_quota_names_rejected() -> None:
    cfg = apply_config_data(
        RoomsRuntimeConfig(), {"quota": {"base_permanent_rooms": {"wizard": 9}}}
    )
    with pytest.raises(ValueError):
        cfg.quota_table()


def test_first_run_config_loads(tmp_path) -> None:
    config_path = str(tmp_path / "conf" / "voicerooms.toml")
    state_path = str(tmp_path / "state.toml")
    assert cli._ensure_first_run_files(config_path, state_path) is True
    assert cli._ensure_first_run_files(config_path, state_path) is False

    cfg = apply_config_data(RoomsRuntimeConfig(), load_toml(config_path))
    assert cfg.state_path == state_path
    assert len(cfg.client_id) == 32
    assert cfg.devices == ()
    assert cfg.reputation is None
    assert cfg.log_datefmt is None

    table = cfg.quota_table()
    assert table.base_rooms[MembershipLevel.OUTSTANDING] == 10
    assert table.paid_tier_bonus_rooms[PaidTier.UNLIMITED] == 50


def test_print_quota(tmp_path, capsys) -> None:
    config_path = tmp_path / "voicerooms.toml"
    config_path.write_text(
        """
[rooms]
membership_level = "regular"
paid_tier = "supporter"
trust_score = 85
reputation = "active"
days_active = 30

[quota.base_permanent_rooms]
regular = 3

[quota.paid_tier_bonus_rooms]
supporter = 5
""",
        encoding="utf-8",
    )

    cli.main(["--config", str(config_path), "--print-quota"])
    out = capsys.readouterr().out

    assert "max_permanent_rooms=10" in out
    assert "max_members_per_room=45" in out
    assert "server_capacity=510" in out


def test_bad_config_exits_with_2(tmp_path) -> None:
    config_path = tmp_path / "voicerooms.toml"
    config_path.write_text('[rooms]\npaid_tier = "platinum"\n', encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        cli.main(["--config", str(config_path), "--print-quota"])
    assert exc.value.code == 2


def test_home_override(monkeypatch, tmp_path) -> None:
    from voicerooms import paths

    monkeypatch.setenv("VOICEROOMS_HOME", str(tmp_path / "home"))
    assert paths.default_config_path() == tmp_path / "home" / "voicerooms.toml"
    assert paths.default_state_path() == tmp_path / "home" / "state.toml"


def test_logging_levels_table(tmp_path) -> None:
    import logging

    from voicerooms.logging_config import configure_logging

    cfg = apply_config_data(
        RoomsRuntimeConfig(),
        {
            "logging": {
                "level": "warning",
                "console": False,
                "file": str(tmp_path / "logs" / "voicerooms.log"),
                "levels": {"voicerooms.transport": "debug", "urllib3": "error"},
            }
        },
    )
    assert cfg.log_levels == (("voicerooms.transport", "debug"), ("urllib3", "error"))

    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(cfg)
        assert root.level == logging.WARNING
        assert logging.getLogger("voicerooms.transport").level == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.ERROR
        assert (tmp_path / "logs" / "voicerooms.log").exists()
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.getLogger("voicerooms.transport").setLevel(logging.NOTSET)
        logging.getLogger("urllib3").setLevel(logging.NOTSET)
        logging.captureWarnings(False)
