import logging
from typing import Any

import pydantic

from classpoints.core.exceptions import ValidationError
from classpoints.db.documents import CONFIG
from classpoints.db.store import JsonStore
from classpoints.models import SystemConfig
from classpoints.models.common import utcnow
from classpoints.services.events import EventBus

logger = logging.getLogger(__name__)


class ConfigService:
    def __init__(self, store: JsonStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def get(self) -> SystemConfig:
        return self.store.read(CONFIG)

    def update(self, changes: dict[str, Any], operator_id: str | None = None) -> SystemConfig:
        changes = {key: value for key, value in changes.items() if value is not None}
        with self.store.transaction(CONFIG):
            current = self.store.read(CONFIG)
            previous_mode = current.mode
            merged = current.model_dump()
            merged.update(changes)
            merged["updated_at"] = utcnow()
            try:
                config = SystemConfig.model_validate(merged)
            except pydantic.ValidationError as exc:
                field = ".".join(str(part) for part in exc.errors()[0]["loc"])
                raise ValidationError(f"Invalid value for {field}", details={"field": field}) from exc
            self.store.write(CONFIG, config)

        logger.info("Config updated by %s: %s", operator_id or "system", ", ".join(sorted(changes)) or "-")
        self.bus.config_updated(config.to_json())
        if config.mode != previous_mode:
            self.bus.mode_changed(config.mode, config.mode_label, operator_id)
        return config

    def set_mode(self, mode: str, operator_id: str | None = None) -> SystemConfig:
        with self.store.transaction(CONFIG):
            config = self.store.read(CONFIG)
            changed = config.mode != mode
            config.mode = mode
            config.updated_at = utcnow()
            self.store.write(CONFIG, config)

        logger.info("Mode set to %s by %s", mode, operator_id or "anonymous")
        if changed:
            self.bus.mode_changed(config.mode, config.mode_label, operator_id)
        return config

    def toggle_reset(self, enabled: bool | None = None, operator_id: str | None = None) -> SystemConfig:
        with self.store.transaction(CONFIG):
            config = self.store.read(CONFIG)
            config.points_reset_enabled = (not config.points_reset_enabled) if enabled is None else enabled
            config.updated_at = utcnow()
            self.store.write(CONFIG, config)

        logger.warning("Points reset %s by %s", "enabled" if config.points_reset_enabled else "disabled", operator_id)
        self.bus.config_updated(config.to_json())
        return config
