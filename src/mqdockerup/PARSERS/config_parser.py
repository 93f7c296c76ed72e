# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Parser for the daemon configuration.
Layers defaults, a YAML file, a .env file and the process environment.
"""
import os
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..exceptions import ConfigError
from ..MODELS.config import AppConfig


class ConfigParser:
    """
    Parser for the YAML configuration file.

    Environment variables override file values and are named SECTION_KEY,
    e.g. MAIN_UPDATE_CHECK_INTERVAL or ACCESS_TOKENS_GITHUB.
    """
    def __init__(self, context: Optional[Mapping[str, Optional[str]]] = None, env_file: Optional[str] = None):
        """
        Initializes the parser.

        :param context: Environment variables. Defaults to the process environment.
        :param env_file: Optional .env file whose values sit below the environment.
        """
        environment: Dict[str, str] = {}
        if env_file:
            if not os.path.isfile(env_file):
                raise ConfigError(f"Env file not found: {env_file}", context={"path": env_file})
            environment.update({key: value for key, value in dotenv_values(env_file).items() if value is not None})
        source = dict(os.environ) if context is None else context
        environment.update({key: value for key, value in source.items() if value is not None})
        self.context = environment

    def parse(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Parses a configuration file from a path.
        A missing path yields the defaults plus environment overrides.

        :param config_path: Path to the YAML file.
        :return: Validated configuration.
        """
        if not config_path:
            return self.parse_from_string("")
        try:
            with open(config_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config file: {e}", context={"path": config_path}) from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> AppConfig:
        """
        Parses configuration from a YAML string.

        :param content: YAML content.
        :return: Validated configuration.
        """
        try:
            data = yaml.safe_load(content) if content else None
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        merged = self._apply_environment(self._normalize(data))
        try:
            return AppConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        """Accepts camelCase keys ('accessTokens', 'containerCheckInterval') as well."""
        normalized: Dict[str, Any] = {}
        for section, values in data.items():
            section_name = _snake_case(str(section))
            if isinstance(values, dict):
                normalized[section_name] = {_snake_case(str(key)): value for key, value in values.items()}
            else:
                normalized[section_name] = values
        return normalized

    def _apply_environment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        for section_name, section_model in AppConfig.model_fields.items():
            section_class = section_model.annotation
            section = data.get(section_name)
            if section is None:
                section = {}
            elif not isinstance(section, dict):
                raise ConfigError(f"Section '{section_name}' must be a mapping")
            for key in section_class.model_fields:
                variable = f"{section_name}_{key}".upper()
                if variable in self.context:
                    section[key] = self.context[variable]
            data[section_name] = section
        return data


def _snake_case(name: str) -> str:
    result = []
    for char in name:
        if char.isupper():
            if result:
                result.append("_")
            result.append(char.lower())
        else:
            result.append(char)
    return "".join(result)
