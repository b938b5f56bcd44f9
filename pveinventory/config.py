import logging

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from .client import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_SERVER = 'https://localhost:8006/api2/json'


# Config validation
class ProxmoxConfig(BaseModel):
    # Unquoted YAML values such as password: 123456 load as numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    server: str = DEFAULT_SERVER
    username: str = 'root'
    realm: str = 'pam'
    password: str = ''
    otp: str = ''
    verify_ssl: bool = True
    timeout: int = DEFAULT_TIMEOUT


def load_config(config_path=None, overrides=None):
    """
    Build the effective configuration.

    Values from the 'proxmox' section of a YAML file replace the defaults;
    overrides (explicit command line flags) replace both. None-valued
    overrides are ignored.

    :param config_path: Optional path to a YAML file
    :param overrides: Optional dict of explicit settings
    :return: ProxmoxConfig
    """
    raw_config = {}
    if config_path:
        with open(config_path, 'r') as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid config: {e}")
        if not isinstance(loaded, dict):
            raise ValueError(f"Invalid config: {config_path} is not a mapping")
        raw_config = dict(loaded.get('proxmox') or {})
        logger.debug(f"Loaded settings {sorted(raw_config)} from {config_path}")
    for key, value in (overrides or {}).items():
        if value is not None:
            raw_config[key] = value
    try:
        return ProxmoxConfig(**raw_config)
    except ValidationError as e:
        raise ValueError(f"Invalid config: {e}")
