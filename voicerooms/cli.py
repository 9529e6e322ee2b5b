from __future__ import annotations

import argparse
import os
import sys
import uuid
from dataclasses import replace
from pathlib import Path

from . import capacity
from .config import RoomsRuntimeConfig, apply_config_data, load_toml
from .logging_config import configure_logging
from .paths import default_config_path, default_state_path, ensure_private_dir
from .service import RoomService


def _write_default_config(config_path: str, state_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    client_id = uuid.uuid4().hex

    content = f"""# voicerooms configuration (TOML)
#
# This file was created on first run.
# Edit it, then start voicerooms again.

[rooms]

# Where room state (permanent, guest and OpenLink rooms, rotation settings)
# is kept. Maintained by voicerooms.
state_path = {state_path!r}

# Identifier sent to hosting devices as deviceId / clientId.
client_id = {client_id!r}

# Timeout for requests to hosting devices.
http_timeout_s = 10.0

# How often to sweep for guest/OpenLink rooms past their deadline
# (covers timers missed while the machine slept). 0 disables.
sweep_interval_s = 30.0

# How often to broadcast permanent room summaries to every online device,
# which is how devices catch up on missed notifications. 0 disables.
sync_interval_s = 300.0

# Identity and membership inputs (normally supplied by the account and
# membership services).
owner_id = ""
owner_handle = ""
membership_level = "newbie"   # newbie | regular | outstanding
paid_tier = "none"            # none | supporter | unlimited
trust_score = 0
reputation = ""               # new | standard | active | established | veteran
days_active = 0
banned = false

# Permanent room allowances. These mirror the membership service tables;
# update them when that service changes its levels.
[quota.base_permanent_rooms]
newbie = 1
regular = 3
outstanding = 10

[quota.paid_tier_bonus_rooms]
none = 0
supporter = 5
unlimited = 50

# Linked devices that can host rooms. Repeat the table per device.
#
# [[devices]]
# id = "desktop"
# base_url = "http://192.168.1.20:3010"
# access_token = ""
# online = true

[logging]

# Log level for voicerooms itself.
level = "INFO"

# Log to stderr.
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""

# Per-logger levels, e.g. to trace requests to hosting devices.
#
# [logging.levels]
# "voicerooms.transport" = "DEBUG"
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)
    try:
        os.chmod(config_path, 0o600)
    except OSError:
        pass


def _ensure_first_run_files(config_path: str, state_path: str) -> bool:
    if os.path.exists(config_path):
        return False
    _write_default_config(config_path, state_path)
    return True


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="voicerooms", description="Run the voice room lifecycle service"
    )

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument(
        "--state",
        default=None,
        help="Path to the room state file (default comes from config)",
    )
    p.add_argument(
        "--sweep-interval",
        type=float,
        default=None,
        help="Expiry sweep interval seconds (0 disables)",
    )
    p.add_argument(
        "--print-quota",
        action="store_true",
        help="Print the quota summary for the configured profile and exit",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def format_quota_summary(cfg: RoomsRuntimeConfig) -> str:
    profile = cfg.quota_profile()
    table = cfg.quota_table()
    members = capacity.max_members_per_room(profile)
    unlimited = capacity.has_unlimited_capacity(profile)
    lines = [
        f"membership_level={profile.membership_level.value} paid_tier={profile.paid_tier.value}",
        f"max_permanent_rooms={capacity.max_permanent_rooms(profile, table)}",
        f"max_members_per_room={'unlimited' if unlimited else members}",
        f"server_capacity={capacity.server_capacity(profile)}",
        f"banned={profile.is_banned}",
    ]
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    state_path = str(args.state) if args.state else str(default_state_path())

    if _ensure_first_run_files(config_path, state_path):
        print(
            "Created default voicerooms config. Edit it before starting:\n"
            f"- Config: {config_path}\n"
            "\nThen re-run voicerooms.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = RoomsRuntimeConfig(config_path=config_path, state_path=state_path)
    try:
        cfg = apply_config_data(cfg, load_toml(config_path))
        cfg.quota_profile()
        cfg.quota_table()
    except (OSError, ValueError) as e:
        print(f"voicerooms: bad config {config_path}: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    if args.state:
        cfg = replace(cfg, state_path=str(args.state))
    if args.sweep_interval is not None:
        cfg = replace(cfg, sweep_interval_s=float(args.sweep_interval))
    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    if args.print_quota:
        print(format_quota_summary(cfg))
        return

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = RoomService(cfg)
    svc.start()
    svc.recalculate_server_capacity(cfg.quota_profile())
    svc.run_forever()


if __name__ == "__main__":
    main()
