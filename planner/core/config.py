import copy
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "path": "~/.academic_planner/planner.db",
    },
    "logging": {
        "level": "INFO",
        "file": "~/.academic_planner/planner.log",
    },
    "api": {
        "enabled": False,
        "host": "127.0.0.1",
        "port": 8765,
    },
    "mail": {
        "backend": "log",
        "smtp_host": "${SMTP_HOST}",
        "smtp_port": 587,
        "smtp_user": "${SMTP_USER}",
        "smtp_password": "${SMTP_PASSWORD}",
        "from_email": "${SMTP_FROM_EMAIL}",
        "from_name": "Academic Planner",
    },
    "components": {
        "Recurring Assignments": {
            "enable": True,
            "update_interval": 3600,
        },
        "Deadline Notifications": {
            "enable": True,
            "update_interval": 900,
            "unread_cap": 10,
            "keep_recent_read": 5,
            "sweep_threshold": 15,
        },
        "Email Digest": {
            "enable": True,
            "update_interval": 60,
        },
    },
}


class ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, config: "Config"):
        self.config = config
        self.last_modified = 0.0
        self.cooldown = 1.0

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return

        current_time = time.time()
        if current_time - self.last_modified < self.cooldown:
            return

        if Path(event.src_path) == self.config.config_file:
            try:
                self.last_modified = current_time
                self.config.reload()
            except Exception as e:
                logging.error(f"Error handling config change: {e}")


class Config:
    """YAML-backed application config with env substitution and optional file watching."""

    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        self.change_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self._loading = False
        self.observer: Optional[Observer] = None

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
        else:
            self.config_file = Path.cwd() / "config.yaml"
        self.config_dir = self.config_file.parent

        logging.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._ensure_config_exists()
        self._load_config()

        if watch:
            self.observer = Observer()
            self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()
            logging.info(f"Path monitored for reloading: {self.config_dir}")

    def register_change_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Register a callback to be called when config changes"""
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Reload config and notify listeners"""
        if self._loading:
            return

        self._loading = True
        try:
            logging.info("Config file change detected - reloading configuration")
            # Wait briefly for the file to be fully written
            time.sleep(0.1)

            old_config = copy.deepcopy(self.data)
            self._load_config()
            self._log_config_changes(old_config, self.data)

            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logging.error(f"Error in config change callback: {e}")
        except Exception as e:
            logging.exception(f"Error reloading config: {e}")
        finally:
            self._loading = False

    def _log_config_changes(self, old_config: Dict, new_config: Dict) -> None:
        """Log the differences between old and new configs"""
        def compare_dict(path: str, dict1: Dict, dict2: Dict) -> None:
            for key in set(dict1.keys()) | set(dict2.keys()):
                current_path = f"{path}.{key}" if path else key
                if key in dict1 and key in dict2:
                    if isinstance(dict1[key], dict) and isinstance(dict2[key], dict):
                        compare_dict(current_path, dict1[key], dict2[key])
                    elif dict1[key] != dict2[key]:
                        logging.info(f"Config changed: {current_path}: {dict1[key]} -> {dict2[key]}")
                elif key in dict1:
                    logging.info(f"Config removed: {current_path}: {dict1[key]}")
                else:
                    logging.info(f"Config added: {current_path}: {dict2[key]}")

        logging.info("=== Configuration Changes Detected ===")
        compare_dict("", old_config, new_config)
        logging.info("=== End of Configuration Changes ===")

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if not self.config_dir.exists():
            logging.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)

        if not self.config_file.exists():
            logging.info(f"Creating default config file: {self.config_file}")
            self.config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))

    def _load_env_file(self) -> None:
        """Load environment variables from the first .env found near the config or in the CWD"""
        for path in (self.config_dir / ".env", self.config_dir.parent / ".env", Path.cwd() / ".env"):
            if path.exists():
                logging.info(f"Loading environment variables from: {path}")
                load_dotenv(path, override=False)
                return
        logging.debug("No .env file found, skipping environment variable loading")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR} / $VAR strings with environment values"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        if isinstance(data, str):
            if data.startswith("${") and data.endswith("}"):
                return os.environ.get(data[2:-1], data)
            if data.startswith("$") and len(data) > 1:
                return os.environ.get(data[1:], data)
        return data

    def _load_config(self) -> None:
        """Load configuration from file; on error keep the previous (or default) data"""
        try:
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f)

            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")

            new_data = self._substitute_env_vars(new_data)
            logging_cfg = new_data.get("logging") or {}
            if logging_cfg.get("file"):
                logging_cfg["file"] = os.path.expanduser(logging_cfg["file"])
            self.data = new_data
        except Exception as e:
            logging.error(f"Error loading config: {e}")
            if hasattr(self, "data"):
                logging.info("Keeping previous configuration")
            else:
                logging.info("Using default configuration")
                self.data = self._substitute_env_vars(copy.deepcopy(DEFAULT_CONFIG))

    def get_component_config(self, component_name: str) -> Optional[Dict[str, Any]]:
        """Get config for a specific component"""
        return (self.data.get("components") or {}).get(component_name)

    def save_component_config(self, component_name: str, config: Dict[str, Any]) -> None:
        """Save configuration for a specific component"""
        self.data.setdefault("components", {})[component_name] = config
        with open(self.config_file, "w") as f:
            yaml.safe_dump(self.data, f, sort_keys=False)
