from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from flask import Flask

from hightide.config.settings import SettingsError, load_settings
from hightide.handlers.policies import policies_bp
from hightide.policy.errors import ConfigError
from hightide.reload.manager import ConfigManager

logger = logging.getLogger("hightide")


def create_app(manager: ConfigManager | None = None) -> Flask:
    """Build the Flask app. Without a manager, settings are read and the policy file loaded now."""
    if manager is None:
        manager = ConfigManager(load_settings())

    app = Flask(__name__)
    app.config["CONFIG_MANAGER"] = manager
    app.register_blueprint(policies_bp)
    return app


def run() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    port = int(os.getenv("PORT", "8080"))
    try:
        manager = ConfigManager(load_settings())
    except (ConfigError, SettingsError) as exc:
        logger.error("Cannot start hightide: %s", exc)
        sys.exit(1)

    app = create_app(manager)
    manager.start_reload()
    logger.info("hightide listening on http://0.0.0.0:%d with %d policies",
                port, len(manager.get_all_policies()))
    try:
        app.run(host="0.0.0.0", port=port)
    finally:
        manager.stop_reload()


if __name__ == "__main__":
    run()
