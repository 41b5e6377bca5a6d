"""Application configuration for the locale sync tool."""
import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from locale_sync.logging_config import setup_logger

LANGUAGE_CODE_PATTERN = re.compile(r'^[a-z]{2}$')


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Core paths
    project_root: str
    base_dir: str

    # Languages
    source_language: str
    target_languages: List[str]
    language_codes: Dict[str, str]

    # Translation settings
    enable_translation: bool
    model_name: str
    max_model_tokens: int
    batch_size: int
    max_concurrent_api_calls: int
    requests_per_minute: int

    # Processing settings
    dry_run: bool
    fill_empty_strings: bool

    # OpenAI client, None when translation is disabled
    openai_client: Optional[AsyncOpenAI]

    @property
    def source_dir(self) -> str:
        return os.path.join(self.base_dir, self.source_language)

    def target_dir(self, language: str) -> str:
        return os.path.join(self.base_dir, language)


def _compute_project_root() -> str:
    """Compute the project root directory."""
    package_dir = os.path.dirname(os.path.realpath(__file__))
    return os.path.abspath(os.path.join(package_dir, os.pardir))


def _load_dotenv_files(project_root: str) -> None:
    """Load .env files from project root or docker directory."""
    dotenv_path_project_root = os.path.join(project_root, '.env')
    dotenv_path_docker_dir = os.path.join(project_root, 'docker', '.env')

    if os.path.exists(dotenv_path_project_root):
        load_dotenv(dotenv_path_project_root)
    elif os.path.exists(dotenv_path_docker_dir):
        load_dotenv(dotenv_path_docker_dir)


def _load_yaml_config(project_root: str, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to defaults on any problem."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = config_path or os.environ.get('LOCALE_SYNC_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config: Dict[str, Any] = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging') or {}
    log_level_str = str(log_config.get('log_level', 'INFO')).upper()
    log_file_path = log_config.get('log_file_path', 'logs/locale_sync.log')
    log_to_console = log_config.get('log_to_console', True)
    return setup_logger(log_level_str, log_file_path, log_to_console)


def normalize_language_codes(value: Union[str, List[str], None]) -> List[str]:
    """
    Normalize a list or comma-separated string of language codes.

    Codes are stripped and lower-cased, empty entries dropped and duplicates
    removed while keeping the first occurrence.
    """
    if value is None:
        return []
    items = value.split(',') if isinstance(value, str) else value
    codes = [str(item).strip().lower() for item in items]
    return list(dict.fromkeys(code for code in codes if code))


def validate_language_codes(source_language: str, target_languages: List[str]) -> List[str]:
    """
    Validate the configured language codes.

    Returns:
        A list of error messages. An empty list means the codes are valid.
    """
    errors = []
    if not source_language:
        errors.append("Source language cannot be empty.")
    elif not LANGUAGE_CODE_PATTERN.match(source_language):
        errors.append(f"'{source_language}' is not a two-letter ISO 639-1 language code.")

    if not target_languages:
        errors.append("Target languages cannot be empty.")
    invalid_codes = [code for code in target_languages if not LANGUAGE_CODE_PATTERN.match(code)]
    if invalid_codes:
        errors.append(f"Invalid ISO 639-1 codes found: {', '.join(invalid_codes)}. Please use 2-letter codes.")
    return errors


def _build_language_mappings(locales_list: List[Dict[str, str]]) -> Dict[str, str]:
    """Build the code -> language name mapping from supported locales."""
    language_codes: Dict[str, str] = {}
    for locale in locales_list:
        code = locale.get('code')
        name = locale.get('name')
        if code and name:
            language_codes[code.lower()] = name
    return language_codes


def _create_openai_client(enable_translation: bool, dry_run: bool, logger: logging.Logger) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client when translation is enabled and not in dry run mode."""
    if not enable_translation:
        logger.info("Translation disabled.")
        return None
    if dry_run:
        logger.info("Running in dry-run mode, OpenAI client will not be initialized")
        return None

    api_key_from_env = os.environ.get('OPENAI_API_KEY')
    if not api_key_from_env:
        logger.warning("OPENAI_API_KEY environment variable not found. Translation will be disabled.")
        return None

    if not api_key_from_env.startswith('sk-'):
        logger.warning("Warning: OPENAI_API_KEY does not start with 'sk-'. This may be invalid.")

    try:
        client = AsyncOpenAI(api_key=api_key_from_env)
    except Exception as e:
        logger.error("Failed to initialize OpenAI client: %s. Translation will be disabled.", e)
        return None
    logger.info("OpenAI client initialized successfully")
    return client


def load_app_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """
    Load application configuration from the YAML file, the environment and
    command line overrides.

    Args:
        config_path: Explicit configuration file; defaults to
            ``$LOCALE_SYNC_CONFIG_FILE`` or ``config.yaml`` in the project root.
        overrides: Values taking precedence over the file. ``None`` values are ignored.

    Returns:
        AppConfig: The loaded application configuration.
    """
    project_root = _compute_project_root()
    _load_dotenv_files(project_root)

    config = _load_yaml_config(project_root, config_path)
    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    logger = _setup_logger_from_config(config)

    language_codes = _build_language_mappings(config.get('supported_locales') or [])
    source_language = normalize_language_codes(config.get('source_language', 'en'))
    target_languages = normalize_language_codes(config.get('target_languages'))

    enable_translation = bool(config.get('enable_translation', False))
    dry_run = bool(config.get('dry_run', False))
    model_name = os.environ.get('OPENAI_MODEL_NAME', config.get('model_name', 'gpt-4o-mini'))
    batch_size = int(os.environ.get('TRANSLATION_BATCH_SIZE', config.get('batch_size', 30)))

    openai_client = _create_openai_client(enable_translation, dry_run, logger)

    return AppConfig(
        project_root=project_root,
        base_dir=os.path.abspath(config.get('base_dir', './translations')),
        source_language=source_language[0] if source_language else '',
        target_languages=target_languages,
        language_codes=language_codes,
        enable_translation=enable_translation and openai_client is not None,
        model_name=model_name,
        max_model_tokens=int(config.get('max_model_tokens', 4000)),
        batch_size=batch_size,
        max_concurrent_api_calls=int(config.get('max_concurrent_api_calls', 1)),
        requests_per_minute=int(config.get('requests_per_minute', 60)),
        dry_run=dry_run,
        fill_empty_strings=bool(config.get('fill_empty_strings', True)),
        openai_client=openai_client
    )
