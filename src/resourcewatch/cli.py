from __future__ import annotations

import json

import click

from .config import load_settings
from .service import run_forever, run_once
from .util.logging import setup_logging
from .util.time import isoformat_or_none


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--name", type=str, help="Watcher name, also the default cache file stem")
@click.option("--prefix", type=str, help="Key prefix of this watcher in the configuration file")
@click.option("--config", "config_file", type=click.Path(path_type=str), help="JSON configuration file")
@click.option("--cache-dir", type=click.Path(path_type=str), help="Directory holding the cached resource")
@click.option("--logs-dir", type=click.Path(path_type=str), help="Log directory")
@click.option("--url", type=str, help="Default resource URL")
@click.option("--interval-ms", type=click.IntRange(min=1), help="Default polling interval in milliseconds")
@click.option("--timeout-ms", type=click.IntRange(min=1), help="Default fetch timeout in milliseconds")
@click.option("--user-agent", type=str, help="Custom user agent")
@click.option("--once", is_flag=True, help="Run a single refresh cycle and print a summary")
def main(once: bool, **kwargs):
    """Keep a cached copy of a remote JSON resource up to date."""
    settings = load_settings(kwargs)
    if not once:
        run_forever(settings)
        return
    setup_logging(settings.logs_dir, settings.log_level)
    summary = run_once(settings)
    click.echo(
        json.dumps(
            {
                "watcher": summary.watcher,
                "startup": summary.startup.value,
                "reconfigure": summary.reconfigure.value,
                "refresh": summary.refresh.value,
                "cache_path": summary.cache_path,
                "resource_url": summary.resource_url,
                "last_refresh": isoformat_or_none(summary.last_refresh),
            },
            indent=2,
        )
    )


if __name__ == "__main__":  # pragma: no cover
    main()
