"""
E-Paper Configuration Module

This module contains configuration settings for the e-paper generator.
It loads settings from multiple sources in order of priority:
1. Command-line arguments (highest priority)
2. Environment variables
3. Configuration YAML file
4. Default values (lowest priority)
"""

import os
import sys
import copy
import argparse
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
import yaml
# Initialize logger
logger = logging.getLogger(__name__)

# Project paths
ROOT_DIR = Path(__file__).parent.parent.parent
SRC_DIR = ROOT_DIR / "src"
PUBLIC_DIR = ROOT_DIR / "public"
TEMPLATES_DIR = Path(__file__).parent / "templates"
CONFIG_FILE_PATH = ROOT_DIR / "config.yaml"

ENV_PREFIX = "EPAPER_"

# Default configuration values
DEFAULT_CONFIG = {
    # Output locations
    "paths": {
        "output_dir": str(PUBLIC_DIR),  # Publicly served root directory
        "epaper_subdir": "generated-epapers",  # Where PDFs are written, relative to output_dir
        "public_url_prefix": "/generated-epapers",  # Prefix of the returned pdfUrl
        "templates_dir": str(TEMPLATES_DIR),
    },

    # Hosted content store (Supabase PostgREST)
    "supabase": {
        "url": "",  # e.g. https://<project>.supabase.co
        "key": "",  # Service role key, bypasses row level security
        "request_timeout": 10,  # Timeout in seconds for REST calls
    },

    # Article selection
    "article_source": {
        "recency_days": 7,  # Only articles published within this window
        "breaking_news_limit": 3,  # Active breaking news items pulled per run
        "default_max_articles": 10,
        "preview_content_length": 200,  # Characters of body shown in previews
        "fallback_categories": [
            "জাতীয়",
            "আন্তর্জাতিক",
            "রাজনীতি",
            "অর্থনীতি",
            "খেলাধুলা",
            "বিনোদন",
            "প্রযুক্তি",
            "শিক্ষা",
            "স্বাস্থ্য",
        ],
    },

    # PDF rendering
    "rendering": {
        "regular_font_path": "",  # Optional TTF, e.g. NotoSansBengali-Regular.ttf
        "bold_font_path": "",  # Optional TTF, e.g. NotoSansBengali-Bold.ttf
        "truncation_suffix": "...",
        "site_attribution": "Bengali News Time - www.dainiktni.news",
        "weather_title": "আজকের আবহাওয়া",
        "weather_text": "ঢাকা: ২৮°সে | চট্টগ্রাম: ৩০°সে | সিলেট: ২৬°সে",
    },

    # Scheduled daily edition
    "daily_edition": {
        "title": "বাংলা নিউজ টাইম",
        "layout": "traditional",
        "max_articles": 10,
        "include_breaking_news": True,
        "include_weather": True,
    },

    # Edition bookkeeping
    "archive": {
        "record_editions": False,  # Insert generated editions into the epapers table
        "html_index": True,  # Rebuild index.html listing stored editions
    },

    # Extra layout templates declared as data
    "templates": [],

    # Web server settings
    "web_server": {
        "port": 8080,
    },
}

# Container for the merged configuration
config = {}

def load_config() -> Dict[str, Any]:
    """
    Load configuration from all sources in order of priority:
    1. Command-line arguments (highest priority)
    2. Environment variables
    3. Configuration YAML file
    4. Default values (lowest priority)

    Returns:
        Dict[str, Any]: Merged configuration
    """
    global config

    # Start with default configuration
    merged_config = copy.deepcopy(DEFAULT_CONFIG)

    # Load from YAML file if it exists
    yaml_config = load_yaml_config()
    if yaml_config:
        deep_update(merged_config, yaml_config)
        logger.info(f"Loaded configuration from {CONFIG_FILE_PATH}")

    # Load from environment variables
    env_config = load_env_config()
    deep_update(merged_config, env_config)

    # Load from command-line arguments
    args_config = load_args_config()
    deep_update(merged_config, args_config)

    config = merged_config

    initialize_module_vars(config)

    return config

def load_yaml_config(path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """
    Load configuration from a YAML file.

    Args:
        path: File to read. Defaults to config.yaml at the project root.

    Returns:
        Optional[Dict[str, Any]]: Configuration from YAML file or None if file doesn't exist
    """
    config_path = Path(path) if path else CONFIG_FILE_PATH
    if not config_path.exists():
        return None

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {str(e)}")
        return None

def coerce_env_value(value: str) -> Any:
    """Convert an environment string to bool, int or float where it parses as one."""
    if value.lower() in ["true", "false"]:
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit() and value.count(".") == 1:
        return float(value)
    return value

def load_env_config(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Dict[str, Any]: Configuration from environment variables
    """
    environ = os.environ if environ is None else environ
    env_config = {}

    # Supabase credentials, checked in order so the service role key wins
    credential_mappings = [
        ("SUPABASE_URL", ["supabase", "url"]),
        ("SUPABASE_KEY", ["supabase", "key"]),
        ("SUPABASE_SERVICE_ROLE_KEY", ["supabase", "key"]),
    ]
    for env_var, config_path in credential_mappings:
        if environ.get(env_var):
            deep_set(env_config, config_path, environ[env_var])

    if "EPAPER_OUTPUT_DIR" in environ:
        deep_set(env_config, ["paths", "output_dir"], environ["EPAPER_OUTPUT_DIR"])
    if "EPAPER_PORT" in environ:
        deep_set(env_config, ["web_server", "port"], int(environ["EPAPER_PORT"]))

    # Generic form: EPAPER_<SECTION>__<KEY>, e.g. EPAPER_ARTICLE_SOURCE__RECENCY_DAYS=3
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or "__" not in key:
            continue
        section, _, option = key[len(ENV_PREFIX):].lower().partition("__")
        if section not in DEFAULT_CONFIG or not option:
            logger.debug(f"Ignoring unknown configuration variable {key}")
            continue
        deep_set(env_config, [section, option], coerce_env_value(value))

    return env_config

def build_args_parser() -> argparse.ArgumentParser:
    """
    Build the parser for configuration-related command-line options.

    The CLI uses it as a parent parser so both accept the same options.
    """
    parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    parser.add_argument("--config", help="Path to configuration YAML file")
    parser.add_argument("--supabase-url", help="Supabase project URL")
    parser.add_argument("--supabase-key", help="Supabase service role key")
    parser.add_argument("--output-dir", help="Directory generated e-papers are published under")
    parser.add_argument("--public-url-prefix", help="URL prefix of generated e-paper links")
    parser.add_argument("--recency-days", type=int, help="Only include articles from the last N days")
    parser.add_argument("--port", type=int, help="Port for the web server")
    return parser

def load_args_config(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Load configuration from command-line arguments.

    Args:
        argv: Arguments to parse. Defaults to sys.argv[1:].

    Returns:
        Dict[str, Any]: Configuration from command-line arguments
    """
    args_config = {}

    # Only parse args if we're running as the main module
    if argv is None and sys.argv[0].endswith("config.py"):
        return args_config

    # Parse known args only, ignoring unknown ones
    args, _ = build_args_parser().parse_known_args(argv)
    args_dict = vars(args)

    # Handle custom config file path
    if args_dict.get("config"):
        custom_config = load_yaml_config(Path(args_dict["config"]))
        if custom_config:
            deep_update(args_config, custom_config)
            logger.info(f"Loaded configuration from {args_dict['config']}")

    # Map args to config structure
    arg_paths = {
        "supabase_url": ["supabase", "url"],
        "supabase_key": ["supabase", "key"],
        "output_dir": ["paths", "output_dir"],
        "public_url_prefix": ["paths", "public_url_prefix"],
        "recency_days": ["article_source", "recency_days"],
        "port": ["web_server", "port"],
    }
    for key, path in arg_paths.items():
        if args_dict.get(key) is not None:
            deep_set(args_config, path, args_dict[key])

    return args_config

def deep_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively update a dictionary with another dictionary.

    Args:
        d: Dictionary to update
        u: Dictionary with updates

    Returns:
        Updated dictionary
    """
    if not isinstance(u, dict):
        return u

    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            d[k] = deep_update(d[k], v)
        else:
            d[k] = v
    return d

def deep_set(d: Dict[str, Any], path: list, value: Any) -> None:
    """
    Set a value in a nested dictionary by path.

    Args:
        d: Dictionary to update
        path: Path to the value as a list of keys
        value: Value to set
    """
    current = d
    for part in path[:-1]:
        if part not in current:
            current[part] = {}
        current = current[part]
    current[path[-1]] = value

def initialize_module_vars(config: Dict[str, Any]) -> None:
    """
    Initialize module-level variables from the configuration.

    Args:
        config: Configuration dictionary
    """
    # Paths
    global OUTPUT_DIR, EPAPER_SUBDIR, PUBLIC_URL_PREFIX, TEMPLATES_DIR
    OUTPUT_DIR = Path(config["paths"]["output_dir"])
    EPAPER_SUBDIR = config["paths"]["epaper_subdir"]
    PUBLIC_URL_PREFIX = config["paths"]["public_url_prefix"]
    TEMPLATES_DIR = Path(config["paths"]["templates_dir"])

    # Content store
    global SUPABASE_URL, SUPABASE_KEY, SUPABASE_REQUEST_TIMEOUT
    SUPABASE_URL = config["supabase"]["url"]
    SUPABASE_KEY = config["supabase"]["key"]
    SUPABASE_REQUEST_TIMEOUT = config["supabase"]["request_timeout"]

    # Article selection
    global RECENCY_DAYS, BREAKING_NEWS_LIMIT, DEFAULT_MAX_ARTICLES
    global PREVIEW_CONTENT_LENGTH, FALLBACK_CATEGORIES
    RECENCY_DAYS = config["article_source"]["recency_days"]
    BREAKING_NEWS_LIMIT = config["article_source"]["breaking_news_limit"]
    DEFAULT_MAX_ARTICLES = config["article_source"]["default_max_articles"]
    PREVIEW_CONTENT_LENGTH = config["article_source"]["preview_content_length"]
    FALLBACK_CATEGORIES = list(config["article_source"]["fallback_categories"])

    # Rendering
    global REGULAR_FONT_PATH, BOLD_FONT_PATH, TRUNCATION_SUFFIX
    global SITE_ATTRIBUTION, WEATHER_TITLE, WEATHER_TEXT
    REGULAR_FONT_PATH = config["rendering"]["regular_font_path"]
    BOLD_FONT_PATH = config["rendering"]["bold_font_path"]
    TRUNCATION_SUFFIX = config["rendering"]["truncation_suffix"]
    SITE_ATTRIBUTION = config["rendering"]["site_attribution"]
    WEATHER_TITLE = config["rendering"]["weather_title"]
    WEATHER_TEXT = config["rendering"]["weather_text"]

    # Daily edition
    global DAILY_EDITION
    DAILY_EDITION = dict(config["daily_edition"])

    # Archive
    global RECORD_EDITIONS, HTML_INDEX
    RECORD_EDITIONS = config["archive"]["record_editions"]
    HTML_INDEX = config["archive"]["html_index"]

    # Extra templates
    global EXTRA_TEMPLATES
    EXTRA_TEMPLATES = list(config.get("templates") or [])

    # Web server settings
    global WEB_SERVER_PORT
    WEB_SERVER_PORT = config["web_server"]["port"]

def create_default_config_file() -> None:
    """
    Create a default configuration file if it doesn't exist.
    """
    if CONFIG_FILE_PATH.exists():
        return

    try:
        with open(CONFIG_FILE_PATH, 'w', encoding='utf-8') as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        logger.info(f"Created default configuration file: {CONFIG_FILE_PATH}")
    except OSError as e:
        logger.warning(f"Error creating default configuration file: {str(e)}")

def get_config() -> Dict[str, Any]:
    """
    Get the current configuration.

    Returns:
        Dict[str, Any]: Current configuration
    """
    global config
    if not config:
        load_config()
    return config

# Load configuration when the module is imported
load_config()

# Create default configuration file if it doesn't exist
create_default_config_file()

# The following variables are initialized by load_config() based on the merged configuration

# Paths
OUTPUT_DIR = Path(get_config()["paths"]["output_dir"])
EPAPER_SUBDIR = get_config()["paths"]["epaper_subdir"]
PUBLIC_URL_PREFIX = get_config()["paths"]["public_url_prefix"]
TEMPLATES_DIR = Path(get_config()["paths"]["templates_dir"])

# Content store
SUPABASE_URL = get_config()["supabase"]["url"]
SUPABASE_KEY = get_config()["supabase"]["key"]
SUPABASE_REQUEST_TIMEOUT = get_config()["supabase"]["request_timeout"]

# Article selection
RECENCY_DAYS = get_config()["article_source"]["recency_days"]
BREAKING_NEWS_LIMIT = get_config()["article_source"]["breaking_news_limit"]
DEFAULT_MAX_ARTICLES = get_config()["article_source"]["default_max_articles"]
PREVIEW_CONTENT_LENGTH = get_config()["article_source"]["preview_content_length"]
FALLBACK_CATEGORIES = list(get_config()["article_source"]["fallback_categories"])

# Rendering
REGULAR_FONT_PATH = get_config()["rendering"]["regular_font_path"]
BOLD_FONT_PATH = get_config()["rendering"]["bold_font_path"]
TRUNCATION_SUFFIX = get_config()["rendering"]["truncation_suffix"]
SITE_ATTRIBUTION = get_config()["rendering"]["site_attribution"]
WEATHER_TITLE = get_config()["rendering"]["weather_title"]
WEATHER_TEXT = get_config()["rendering"]["weather_text"]

# Daily edition
DAILY_EDITION = dict(get_config()["daily_edition"])

# Archive
RECORD_EDITIONS = get_config()["archive"]["record_editions"]
HTML_INDEX = get_config()["archive"]["html_index"]

# Extra templates
EXTRA_TEMPLATES = list(get_config().get("templates") or [])

# Web server settings
WEB_SERVER_PORT = get_config()["web_server"]["port"]
