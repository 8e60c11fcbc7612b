import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# ${VAR} or ${VAR:default}
_PLACEHOLDER = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_.]*)(?::([^}]*))?\}')


class PropertiesConfigurator:
    """
    Reads Java-style .properties files.

    Lines are key=value (or key: value); lines starting with # or ! are
    comments. Values may reference environment variables as ${VAR} or
    ${VAR:default}; an earlier property of the same name is used when the
    variable is not set. Later files override earlier ones.
    """

    def __init__(self, files: Optional[List[str]] = None):
        self.properties: Dict[str, str] = {}
        self.files = list(files or [])
        for file_path in self.files:
            self.load_file(file_path)

    def load_file(self, file_path: str):
        """Load one properties file; a missing file is logged and skipped"""
        if not os.path.exists(file_path):
            logger.warning(f"Properties file not found: {file_path}")
            return

        with open(file_path, 'r', encoding='utf-8') as f:
            for line_number, raw_line in enumerate(f, start=1):
                line = raw_line.strip()
                if not line or line.startswith('#') or line.startswith('!'):
                    continue

                match = re.match(r'^([^=:]+?)\s*[=:]\s*(.*)$', line)
                if not match:
                    logger.warning(f"Ignoring malformed line {line_number} in {file_path}: {line}")
                    continue

                key, value = match.group(1).strip(), match.group(2).strip()
                self.properties[key] = self.resolve(value)

        logger.info(f"Loaded properties from {file_path}")

    def resolve(self, value: str) -> str:
        """Substitute ${VAR} and ${VAR:default} placeholders"""
        def replace(match):
            name, default = match.group(1), match.group(2)
            if name in os.environ:
                return os.environ[name]
            if name in self.properties:
                return self.properties[name]
            if default is not None:
                return default
            logger.warning(f"Unresolved placeholder ${{{name}}}")
            return match.group(0)

        return _PLACEHOLDER.sub(replace, value)

    def set(self, key: str, value: Any):
        self.properties[key] = str(value)

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.properties.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Property {key}={value} is not an integer, using {default}")
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.properties.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Property {key}={value} is not a number, using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.properties.get(key)
        if value is None:
            return default
        return value.strip().lower() in ('true', 'yes', '1', 'on')

    def get_values_by_pattern(self, pattern: str) -> List[str]:
        """Values of every key matching the regex, in key order"""
        regex = re.compile(pattern)
        return [self.properties[key] for key in sorted(self.properties) if regex.search(key)]

    def load_and_resolve_json_file_content(self, file_path: str) -> Dict[str, Any]:
        """Read a JSON file after substituting placeholders in its text"""
        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return json.loads(self.resolve(content))
