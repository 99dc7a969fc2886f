"""
Skill Loader - Semantic functions from prompt directories

Layout:

    skills/
      Summarize/
        skprompt.txt     prompt template
        config.json      optional settings
      Answer/
        skprompt.txt

config.json may carry ``description``, a ``completion`` object with
generation settings and ``input.parameters``, a list of
``{"name", "description", "defaultValue"}`` objects.

License: MIT
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import json
import logging

from ..core.text_generation import GenerationSettings
from ..exceptions import InvalidArgumentError
from .functions import ParameterSpec, SemanticFunction

logger = logging.getLogger(__name__)

PROMPT_FILE = "skprompt.txt"
CONFIG_FILE = "config.json"


def load_function_config(config_path: Path) -> Dict[str, Any]:
    """
    Read a function's config.json.

    Raises:
        InvalidArgumentError: If the file is not a JSON object
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidArgumentError(f"Malformed JSON in {config_path}: {str(e)}") from e

    if not isinstance(config, dict):
        raise InvalidArgumentError(f"{config_path} must contain a JSON object")

    return config


def _parse_parameters(config: Dict[str, Any], config_path: Path) -> List[ParameterSpec]:
    parameters = (config.get("input") or {}).get("parameters") or []
    if not isinstance(parameters, list):
        raise InvalidArgumentError(f"input.parameters in {config_path} must be a list")

    specs = []
    for entry in parameters:
        if not isinstance(entry, dict) or "name" not in entry:
            raise InvalidArgumentError(f"Invalid parameter entry in {config_path}: {entry!r}")

        default = entry.get("defaultValue")
        specs.append(
            ParameterSpec(
                name=entry["name"],
                description=entry.get("description", ""),
                default_value=None if default is None else str(default),
            )
        )
    return specs


def load_semantic_function(function_dir: Path, skill_name: str) -> SemanticFunction:
    """
    Build one semantic function from its directory.

    Args:
        function_dir: Directory containing skprompt.txt
        skill_name: Skill the function belongs to

    Returns:
        The semantic function, named after the directory
    """
    template = (function_dir / PROMPT_FILE).read_text(encoding="utf-8")

    config: Dict[str, Any] = {}
    config_path = function_dir / CONFIG_FILE
    if config_path.exists():
        config = load_function_config(config_path)

    return SemanticFunction(
        skill_name=skill_name,
        name=function_dir.name,
        template=template,
        settings=GenerationSettings.from_dict(config.get("completion") or {}),
        parameters=_parse_parameters(config, config_path),
        description=config.get("description", ""),
    )


def load_semantic_skill(directory: str, skill_name: Optional[str] = None) -> List[SemanticFunction]:
    """
    Load every function of a skill directory, eagerly.

    Sub-directories without a skprompt.txt are skipped.

    Args:
        directory: Skill directory
        skill_name: Skill name, defaults to the directory name

    Returns:
        Semantic functions sorted by name

    Raises:
        FileNotFoundError: If the directory does not exist
        InvalidArgumentError: If a config.json is malformed
        TemplateSyntaxError: If a prompt cannot be parsed
    """
    skill_dir = Path(directory)
    if not skill_dir.is_dir():
        raise FileNotFoundError(f"Skill directory not found: {directory}")

    skill_name = skill_name or skill_dir.name
    functions = []

    for function_dir in sorted(skill_dir.iterdir()):
        if not function_dir.is_dir():
            continue
        if not (function_dir / PROMPT_FILE).exists():
            logger.debug(f"Skipping {function_dir}: no {PROMPT_FILE}")
            continue

        functions.append(load_semantic_function(function_dir, skill_name))

    logger.info(f"Loaded skill {skill_name}: {[f.name for f in functions]}")
    return functions


def load_semantic_skills(directory: str) -> Dict[str, List[SemanticFunction]]:
    """
    Load every skill under a skills root, one skill per sub-directory.

    Sub-directories holding no prompt functions are skipped.

    Args:
        directory: Skills root directory

    Returns:
        Semantic functions keyed by skill name, in directory name order

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Skills directory not found: {directory}")

    skills: Dict[str, List[SemanticFunction]] = {}
    for skill_dir in sorted(root.iterdir()):
        if not skill_dir.is_dir():
            continue

        functions = load_semantic_skill(str(skill_dir))
        if functions:
            skills[skill_dir.name] = functions
        else:
            logger.warning(f"Skipping {skill_dir}: no prompt functions")

    return skills
