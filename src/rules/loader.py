import logging
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.rules.models import Rules

logger = logging.getLogger(__name__)

# Rules may live in a markdown doc; only the first yaml block is read
_YAML_FENCE = re.compile(r"^\s*```yaml[^\n]*\n(.*?)^\s*```", re.DOTALL | re.MULTILINE)


def _extract_yaml(content: str) -> str:
    match = _YAML_FENCE.search(content)
    return match.group(1) if match else content


def parse_rules(content: str) -> Rules:
    """
    Parse and validate rules text.
    Raises ValueError on bad YAML or schema violations.
    """
    try:
        data = yaml.safe_load(_extract_yaml(content))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in rules: {e}") from e

    try:
        return Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def load_rules(path: Path) -> Rules:
    """
    Read rules.yaml (or a markdown file embedding it).

    Raises:
        FileNotFoundError: path does not exist
        ValueError: syntax or schema invalid
    """
    try:
        content = Path(path).read_text()
    except FileNotFoundError as e:
        raise FileNotFoundError(f"Rules file not found: {path}") from e

    rules = parse_rules(content)
    logger.debug("Rules %s loaded from %s", rules.project.rules_version, path)
    return rules
